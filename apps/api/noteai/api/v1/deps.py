from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, Request, status

from noteai.core.config import Settings, get_settings
from noteai.core.security import authorization_header, owner_id_header, resolve_owner_id
from noteai.services.session import AppSession, SessionRegistry


def get_settings_dep() -> Settings:
    return get_settings()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_owner_id(
    settings: Settings = Depends(get_settings_dep),
    x_owner_id: str | None = Depends(owner_id_header),
    authorization: str | None = Depends(authorization_header),
) -> uuid.UUID:
    return resolve_owner_id(settings, x_owner_id, authorization)


def get_session(
    owner_id: uuid.UUID = Depends(get_owner_id),
    registry: SessionRegistry = Depends(get_registry),
) -> AppSession:
    session = registry.get(owner_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No active session; POST /session first",
        )
    return session
