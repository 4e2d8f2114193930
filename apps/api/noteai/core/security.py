from __future__ import annotations

import uuid

from fastapi import Header, HTTPException, status

from noteai.core.config import Settings
from noteai.core.errors import AuthenticationError, RemoteCallError
from noteai.services.auth import SupabaseAuthClient


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_owner_id(settings: Settings, owner_header: str | None, authorization: str | None) -> uuid.UUID:
    mode = settings.auth_mode.strip().lower()
    if mode == "header":
        if not owner_header:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing X-Owner-Id header",
            )
        try:
            return uuid.UUID(owner_header)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid X-Owner-Id header",
            ) from exc

    if mode == "supabase":
        token = bearer_token(authorization)
        if token is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
            )
        client = SupabaseAuthClient(settings.supabase_url, settings.supabase_key, timeout=settings.rest_timeout_seconds)
        try:
            return client.get_user(token).id
        except AuthenticationError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc
        except RemoteCallError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc
        finally:
            client.close()

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Unknown AUTH_MODE: {settings.auth_mode}",
    )


def owner_id_header(x_owner_id: str | None = Header(default=None)) -> str | None:
    return x_owner_id


def authorization_header(authorization: str | None = Header(default=None)) -> str | None:
    return authorization
