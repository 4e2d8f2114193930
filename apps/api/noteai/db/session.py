from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from noteai.db.base import Base


def _sqlalchemy_dsn(dsn: str) -> str:
    if dsn.startswith("postgresql://"):
        return dsn.replace("postgresql://", "postgresql+psycopg://", 1)
    return dsn


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(dsn: str) -> Engine:
    resolved = _sqlalchemy_dsn(dsn)
    engine = create_engine(resolved, future=True, pool_pre_ping=True)
    if engine.url.get_backend_name() == "sqlite":
        # Join rows rely on ON DELETE CASCADE.
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_session_factory(dsn: str, *, create_schema: bool = True) -> sessionmaker:
    engine = build_engine(dsn)
    if create_schema:
        from noteai.db import models as _models  # noqa: F401

        Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
