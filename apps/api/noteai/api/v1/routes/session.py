from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status

from noteai.api.v1.deps import get_owner_id, get_registry, get_settings_dep
from noteai.api.v1.schemas import SessionResponse, SignOutResponse
from noteai.core.errors import NoteAIError
from noteai.core.security import authorization_header, bearer_token
from noteai.services.auth import SupabaseAuthClient
from noteai.services.session import SessionRegistry

router = APIRouter(prefix="/session", tags=["session"])
logger = logging.getLogger(__name__)


@router.post("", response_model=SessionResponse)
def start_session(
    owner_id: uuid.UUID = Depends(get_owner_id),
    registry: SessionRegistry = Depends(get_registry),
    authorization: str | None = Depends(authorization_header),
) -> SessionResponse:
    try:
        session = registry.open(owner_id, bearer_token(authorization))
    except NoteAIError as exc:
        logger.warning("session_start_failed", extra={"user_id": str(owner_id), "error": exc.message})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Sign in failed: {exc.message}") from exc

    workspace = session.workspace
    return SessionResponse(
        owner_id=owner_id,
        has_completed_onboarding=session.onboarding.has_completed_onboarding,
        contacts=len(workspace.contacts),
        labels=len(workspace.labels),
        error=workspace.error_message,
    )


@router.delete("", response_model=SignOutResponse)
def end_session(
    owner_id: uuid.UUID = Depends(get_owner_id),
    registry: SessionRegistry = Depends(get_registry),
    settings=Depends(get_settings_dep),
    authorization: str | None = Depends(authorization_header),
) -> SignOutResponse:
    signed_out = registry.sign_out(owner_id)

    token = bearer_token(authorization)
    if settings.auth_mode.strip().lower() == "supabase" and token:
        client = SupabaseAuthClient(settings.supabase_url, settings.supabase_key, timeout=settings.rest_timeout_seconds)
        try:
            client.sign_out(token)
        except NoteAIError:
            logger.exception("remote_sign_out_failed", extra={"user_id": str(owner_id)})
        finally:
            client.close()

    return SignOutResponse(owner_id=owner_id, signed_out=signed_out)
