from __future__ import annotations

from functools import lru_cache

from sqlalchemy.orm import sessionmaker

from noteai.core.config import Settings
from noteai.db.session import build_session_factory
from noteai.services.datastore.base import DataClient
from noteai.services.datastore.rest_client import RestDataClient
from noteai.services.datastore.sql_client import SqlDataClient


@lru_cache(maxsize=4)
def _session_factory(dsn: str) -> sessionmaker:
    return build_session_factory(dsn)


def build_data_client(settings: Settings, *, access_token: str | None = None) -> DataClient:
    backend = settings.data_backend.strip().lower()
    if backend == "rest":
        return RestDataClient(
            settings.supabase_url,
            settings.supabase_key,
            access_token=access_token,
            timeout=settings.rest_timeout_seconds,
        )
    if backend == "sql":
        return SqlDataClient(_session_factory(settings.database_dsn))
    raise ValueError(f"Unknown DATA_BACKEND: {settings.data_backend!r}")


__all__ = ["DataClient", "RestDataClient", "SqlDataClient", "build_data_client"]
