from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

import httpx

from noteai.core.errors import AuthenticationError, RemoteCallError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: uuid.UUID
    email: str | None = None


class SupabaseAuthClient:
    """Resolves bearer tokens issued by Supabase Auth to the owning user."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 20,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("SUPABASE_URL is not configured")
        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/auth/v1",
            headers={"apikey": api_key},
            timeout=timeout,
            transport=transport,
        )

    def get_user(self, access_token: str) -> AuthenticatedUser:
        try:
            response = self._client.get("/user", headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as exc:
            logger.exception("auth_user_lookup_failed")
            raise RemoteCallError(f"Auth request failed: {exc}") from exc
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired session")
        if response.status_code >= 400:
            raise RemoteCallError(f"Auth returned HTTP {response.status_code}", status_code=response.status_code)

        payload = response.json()
        try:
            user_id = uuid.UUID(str(payload.get("id")))
        except (ValueError, AttributeError) as exc:
            raise AuthenticationError("No user found for session") from exc
        return AuthenticatedUser(id=user_id, email=payload.get("email"))

    def sign_out(self, access_token: str) -> None:
        try:
            response = self._client.post("/logout", headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Sign out failed: {exc}") from exc
        if response.status_code >= 400 and response.status_code not in (401, 403):
            raise RemoteCallError(f"Sign out returned HTTP {response.status_code}", status_code=response.status_code)

    def close(self) -> None:
        self._client.close()
