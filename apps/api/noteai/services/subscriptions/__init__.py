from __future__ import annotations

from noteai.services.subscriptions.service import ProductCatalog, SubscriptionService
from noteai.services.subscriptions.store_client import (
    NullStoreClient,
    RevenueCatStoreClient,
    StoreClient,
    StoreEntitlement,
    StoreProduct,
    build_store_client,
)

__all__ = [
    "ProductCatalog",
    "SubscriptionService",
    "NullStoreClient",
    "RevenueCatStoreClient",
    "StoreClient",
    "StoreEntitlement",
    "StoreProduct",
    "build_store_client",
]
