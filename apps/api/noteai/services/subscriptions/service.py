from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from noteai.core.errors import RemoteCallError, StoreError
from noteai.domain.records import Subscription
from noteai.services.datastore import DataClient
from noteai.services.subscriptions.store_client import StoreClient, StoreEntitlement, StoreProduct

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductCatalog:
    monthly: StoreProduct | None = None
    yearly: StoreProduct | None = None


class SubscriptionService:
    def __init__(
        self,
        data_client: DataClient,
        store: StoreClient,
        *,
        monthly_product_id: str,
        yearly_product_id: str,
    ) -> None:
        self._data = data_client
        self._store = store
        self.monthly_product_id = monthly_product_id
        self.yearly_product_id = yearly_product_id

    @property
    def product_ids(self) -> list[str]:
        return [self.monthly_product_id, self.yearly_product_id]

    def load_products(self, user_id: uuid.UUID) -> ProductCatalog:
        products = {product.product_id: product for product in self._store.get_products(str(user_id), self.product_ids)}
        return ProductCatalog(
            monthly=products.get(self.monthly_product_id),
            yearly=products.get(self.yearly_product_id),
        )

    def purchase(self, user_id: uuid.UUID, product_id: str, receipt: str) -> StoreEntitlement | None:
        """Submit a store receipt and record the subscription when the store confirms it.

        Returns ``None`` when the store accepted the receipt but grants no current
        entitlement for the product (cancelled or pending purchase).
        """
        if product_id not in self.product_ids:
            raise StoreError(f"Unknown product '{product_id}'")

        entitlements = self._store.submit_purchase(str(user_id), product_id, receipt)
        entitlement = next(
            (item for item in entitlements if item.product_id == product_id and item.is_current()),
            None,
        )
        if entitlement is None:
            logger.info("purchase_not_entitled", extra={"user_id": str(user_id), "product_id": product_id})
            return None

        self._record_purchase(user_id, entitlement)
        return entitlement

    def _record_purchase(self, user_id: uuid.UUID, entitlement: StoreEntitlement) -> Subscription:
        subscription = Subscription(
            user_id=user_id,
            product_id=entitlement.product_id,
            original_transaction_id=entitlement.original_transaction_id,
            latest_transaction_id=entitlement.transaction_id,
            status="active",
            expiration_date=entitlement.expires_at,
        )
        recorded = self._data.create_subscription(subscription)
        logger.info(
            "subscription_recorded",
            extra={"user_id": str(user_id), "product_id": entitlement.product_id, "subscription_id": str(recorded.id)},
        )
        return recorded

    def purchased_product_ids(self, user_id: uuid.UUID, *, now: datetime | None = None) -> set[str]:
        return {
            item.product_id
            for item in self._store.current_entitlements(str(user_id))
            if item.product_id in self.product_ids and item.is_current(now)
        }

    def restore_purchases(self, user_id: uuid.UUID) -> set[str]:
        restored = {
            item.product_id
            for item in self._store.sync(str(user_id))
            if item.product_id in self.product_ids and item.is_current()
        }
        if not restored:
            raise StoreError("No purchases to restore")
        return restored

    def has_active_subscription(self, user_id: uuid.UUID, *, now: datetime | None = None) -> bool:
        """Either an active remote record or a current store entitlement is enough."""
        try:
            subscription = self._data.get_subscription(user_id)
        except RemoteCallError:
            logger.warning("subscription_record_lookup_failed", extra={"user_id": str(user_id)})
            subscription = None
        if subscription is not None and subscription.is_active(now):
            return True

        try:
            return bool(self.purchased_product_ids(user_id, now=now))
        except (RemoteCallError, StoreError):
            logger.exception("store_entitlement_lookup_failed", extra={"user_id": str(user_id)})
            return False
