from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from noteai.api.v1.deps import get_session
from noteai.api.v1.schemas import (
    ProductOut,
    ProductsResponse,
    PurchaseRequest,
    PurchaseResponse,
    RestoreResponse,
    SubscriptionStatus,
)
from noteai.core.errors import NoteAIError
from noteai.services.session import AppSession
from noteai.services.subscriptions import StoreProduct

router = APIRouter(prefix="/subscription", tags=["subscription"])
logger = logging.getLogger(__name__)


def _product_out(product: StoreProduct | None) -> ProductOut | None:
    if product is None:
        return None
    return ProductOut(product_id=product.product_id, package_id=product.package_id, offering_id=product.offering_id)


@router.get("", response_model=SubscriptionStatus)
def subscription_status(session: AppSession = Depends(get_session)) -> SubscriptionStatus:
    service = session.subscriptions
    is_active = service.has_active_subscription(session.user_id)
    product_ids: list[str] = []
    if is_active:
        try:
            product_ids = sorted(service.purchased_product_ids(session.user_id))
        except NoteAIError:
            logger.warning("purchased_products_lookup_failed", extra={"user_id": str(session.user_id)})
    return SubscriptionStatus(is_active=is_active, product_ids=product_ids)


@router.get("/products", response_model=ProductsResponse)
def list_products(session: AppSession = Depends(get_session)) -> ProductsResponse:
    try:
        catalog = session.subscriptions.load_products(session.user_id)
    except NoteAIError as exc:
        return ProductsResponse(error=f"Failed to load products: {exc.message}")
    return ProductsResponse(monthly=_product_out(catalog.monthly), yearly=_product_out(catalog.yearly))


@router.post("/purchase", response_model=PurchaseResponse)
def purchase(payload: PurchaseRequest, session: AppSession = Depends(get_session)) -> PurchaseResponse:
    try:
        entitlement = session.subscriptions.purchase(session.user_id, payload.product_id, payload.receipt)
    except NoteAIError as exc:
        return PurchaseResponse(ok=False, error=f"Purchase failed: {exc.message}", product_id=payload.product_id)
    if entitlement is None:
        return PurchaseResponse(ok=True, product_id=payload.product_id, entitled=False)
    return PurchaseResponse(
        ok=True,
        product_id=payload.product_id,
        entitled=True,
        expires_at=entitlement.expires_at,
    )


@router.post("/restore", response_model=RestoreResponse)
def restore(session: AppSession = Depends(get_session)) -> RestoreResponse:
    try:
        restored = session.subscriptions.restore_purchases(session.user_id)
    except NoteAIError as exc:
        return RestoreResponse(ok=False, error=f"Restore failed: {exc.message}")
    return RestoreResponse(ok=True, product_ids=sorted(restored))
