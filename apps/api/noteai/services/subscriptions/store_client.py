from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import httpx

from noteai.core.config import Settings
from noteai.core.errors import RemoteCallError, StoreError
from noteai.domain.records import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreProduct:
    product_id: str
    package_id: str | None = None
    offering_id: str | None = None


@dataclass(frozen=True)
class StoreEntitlement:
    product_id: str
    transaction_id: str | None = None
    original_transaction_id: str | None = None
    expires_at: datetime | None = None
    revoked_at: datetime | None = None

    def is_current(self, now: datetime | None = None) -> bool:
        if self.revoked_at is not None:
            return False
        if self.expires_at is None:
            # Non-expiring purchase.
            return True
        return as_utc(self.expires_at) > (as_utc(now) if now is not None else utcnow())


class StoreClient(Protocol):
    def get_products(self, user_id: str, product_ids: list[str]) -> list[StoreProduct]: ...

    def current_entitlements(self, user_id: str) -> list[StoreEntitlement]: ...

    def submit_purchase(self, user_id: str, product_id: str, receipt: str) -> list[StoreEntitlement]: ...

    def sync(self, user_id: str) -> list[StoreEntitlement]: ...

    def close(self) -> None: ...


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        logger.warning("store_timestamp_unparseable", extra={"value": str(value)})
        return None


def _entitlements_from_subscriber(payload: dict[str, Any]) -> list[StoreEntitlement]:
    subscriber = payload.get("subscriber") or {}
    subscriptions = subscriber.get("subscriptions") or {}
    entitlements: list[StoreEntitlement] = []
    for product_id, details in subscriptions.items():
        if not isinstance(details, dict):
            continue
        entitlements.append(
            StoreEntitlement(
                product_id=str(product_id),
                transaction_id=details.get("store_transaction_id"),
                original_transaction_id=details.get("original_transaction_id") or details.get("store_transaction_id"),
                expires_at=_parse_timestamp(details.get("expires_date")),
                revoked_at=_parse_timestamp(details.get("refunded_at")),
            )
        )
    return entitlements


class RevenueCatStoreClient:
    """Server-side entitlement lookups against the RevenueCat REST API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        platform: str = "ios",
        timeout: float = 20,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("STORE_API_KEY is not configured")
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "X-Platform": platform,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, path: str, *, json: Any = None) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.exception("store_transport_failed", extra={"path": path})
            raise RemoteCallError(f"Store request failed: {exc}") from exc
        if response.status_code >= 500:
            raise RemoteCallError(f"Store returned HTTP {response.status_code}", status_code=response.status_code)
        if response.status_code >= 400:
            logger.error("store_request_rejected", extra={"path": path, "status_code": response.status_code})
            raise StoreError(f"Store rejected the request: {response.text[:300]}")
        payload = response.json()
        if not isinstance(payload, dict):
            raise RemoteCallError(f"Unexpected store payload type: {type(payload).__name__}")
        return payload

    def get_products(self, user_id: str, product_ids: list[str]) -> list[StoreProduct]:
        payload = self._request("GET", f"/subscribers/{user_id}/offerings")
        wanted = set(product_ids)
        products: dict[str, StoreProduct] = {}
        for offering in payload.get("offerings") or []:
            for package in offering.get("packages") or []:
                product_id = package.get("platform_product_identifier")
                if product_id in wanted and product_id not in products:
                    products[product_id] = StoreProduct(
                        product_id=product_id,
                        package_id=package.get("identifier"),
                        offering_id=offering.get("identifier"),
                    )
        return [products[product_id] for product_id in product_ids if product_id in products]

    def current_entitlements(self, user_id: str) -> list[StoreEntitlement]:
        return _entitlements_from_subscriber(self._request("GET", f"/subscribers/{user_id}"))

    def submit_purchase(self, user_id: str, product_id: str, receipt: str) -> list[StoreEntitlement]:
        payload = self._request(
            "POST",
            "/receipts",
            json={"app_user_id": user_id, "fetch_token": receipt, "product_id": product_id},
        )
        return _entitlements_from_subscriber(payload)

    def sync(self, user_id: str) -> list[StoreEntitlement]:
        return self.current_entitlements(user_id)

    def close(self) -> None:
        self._client.close()


class NullStoreClient:
    """Used when no store is configured: nothing is for sale and nothing is entitled."""

    def get_products(self, user_id: str, product_ids: list[str]) -> list[StoreProduct]:
        return []

    def current_entitlements(self, user_id: str) -> list[StoreEntitlement]:
        return []

    def submit_purchase(self, user_id: str, product_id: str, receipt: str) -> list[StoreEntitlement]:
        raise StoreError("No store is configured")

    def sync(self, user_id: str) -> list[StoreEntitlement]:
        return []

    def close(self) -> None:
        return None


def build_store_client(settings: Settings) -> StoreClient:
    backend = settings.store_backend.strip().lower()
    if backend == "revenuecat":
        return RevenueCatStoreClient(
            settings.store_api_url,
            settings.store_api_key,
            platform=settings.store_platform,
            timeout=settings.rest_timeout_seconds,
        )
    if backend == "none":
        return NullStoreClient()
    raise ValueError(f"Unknown STORE_BACKEND: {settings.store_backend!r}")
