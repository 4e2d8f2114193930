from __future__ import annotations

import logging
import uuid
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from noteai.core.errors import DuplicateLabelError, RemoteCallError
from noteai.domain.records import Contact, ContactLabel, Label, Subscription, UserPreferences

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

_LABEL_COLUMNS = "id,user_id,name,created_at"


def _eq(value: object) -> str:
    return f"eq.{value}"


class RestDataClient:
    """PostgREST-style client: one collection per table, equality filters and ordering only."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout: float = 20,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("SUPABASE_URL is not configured")
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def _request(
        self,
        method: str,
        collection: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> list[dict[str, Any]]:
        try:
            response = self._client.request(method, f"/{collection}", params=params, json=json)
        except httpx.HTTPError as exc:
            logger.exception("rest_data_client_transport_failed", extra={"collection": collection, "method": method})
            raise RemoteCallError(f"Request to {collection} failed: {exc}") from exc

        if response.status_code >= 400:
            detail = response.text[:500]
            logger.error(
                "rest_data_client_http_error",
                extra={"collection": collection, "method": method, "status_code": response.status_code},
            )
            if response.status_code == 409 and collection == "labels":
                raise DuplicateLabelError(f"Label already exists: {detail}", status_code=409)
            raise RemoteCallError(
                f"{method} {collection} returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        if not response.content:
            return []
        payload = response.json()
        if isinstance(payload, dict):
            return [payload]
        if not isinstance(payload, list):
            raise RemoteCallError(f"Unexpected {collection} payload type: {type(payload).__name__}")
        return payload

    @staticmethod
    def _parse(model: type[RecordT], rows: list[dict[str, Any]]) -> list[RecordT]:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise RemoteCallError(f"Malformed {model.__name__} record: {exc}") from exc

    def _first(self, model: type[RecordT], rows: list[dict[str, Any]]) -> RecordT | None:
        parsed = self._parse(model, rows)
        return parsed[0] if parsed else None

    def _single(self, model: type[RecordT], rows: list[dict[str, Any]], collection: str) -> RecordT:
        record = self._first(model, rows)
        if record is None:
            raise RemoteCallError(f"{collection} returned no representation")
        return record

    # preferences

    def get_user_preferences(self, user_id: uuid.UUID) -> UserPreferences | None:
        rows = self._request("GET", "user_preferences", params={"user_id": _eq(user_id), "limit": "1"})
        return self._first(UserPreferences, rows)

    def create_user_preferences(
        self, user_id: uuid.UUID, *, has_completed_onboarding: bool = False
    ) -> UserPreferences:
        preferences = UserPreferences(user_id=user_id, has_completed_onboarding=has_completed_onboarding)
        rows = self._request("POST", "user_preferences", json=preferences.to_row())
        return self._single(UserPreferences, rows, "user_preferences")

    def update_user_preferences(self, preferences: UserPreferences) -> UserPreferences:
        rows = self._request(
            "PATCH", "user_preferences", params={"id": _eq(preferences.id)}, json=preferences.to_row()
        )
        return self._single(UserPreferences, rows, "user_preferences")

    # subscriptions

    def get_subscription(self, user_id: uuid.UUID) -> Subscription | None:
        rows = self._request(
            "GET",
            "subscriptions",
            params={"user_id": _eq(user_id), "order": "created_at.desc", "limit": "1"},
        )
        return self._first(Subscription, rows)

    def create_subscription(self, subscription: Subscription) -> Subscription:
        rows = self._request("POST", "subscriptions", json=subscription.to_row())
        return self._single(Subscription, rows, "subscriptions")

    def update_subscription(self, subscription: Subscription) -> Subscription:
        rows = self._request(
            "PATCH", "subscriptions", params={"id": _eq(subscription.id)}, json=subscription.to_row()
        )
        return self._single(Subscription, rows, "subscriptions")

    # contacts

    def get_contacts(self, user_id: uuid.UUID) -> list[Contact]:
        rows = self._request("GET", "contacts", params={"user_id": _eq(user_id), "order": "updated_at.desc"})
        return self._parse(Contact, rows)

    def create_contact(self, contact: Contact) -> Contact:
        rows = self._request("POST", "contacts", json=contact.to_row())
        return self._single(Contact, rows, "contacts")

    def update_contact(self, contact: Contact) -> Contact:
        rows = self._request("PATCH", "contacts", params={"id": _eq(contact.id)}, json=contact.to_row())
        return self._single(Contact, rows, "contacts")

    def delete_contact(self, contact_id: uuid.UUID) -> None:
        self._request("DELETE", "contacts", params={"id": _eq(contact_id)})

    # labels

    def get_labels(self, user_id: uuid.UUID) -> list[Label]:
        rows = self._request("GET", "labels", params={"user_id": _eq(user_id), "order": "name.asc"})
        return self._parse(Label, rows)

    def create_label(self, label: Label) -> Label:
        rows = self._request("POST", "labels", json=label.to_row())
        return self._single(Label, rows, "labels")

    def update_label(self, label: Label) -> Label:
        rows = self._request("PATCH", "labels", params={"id": _eq(label.id)}, json=label.to_row())
        return self._single(Label, rows, "labels")

    def delete_label(self, label_id: uuid.UUID) -> None:
        self._request("DELETE", "labels", params={"id": _eq(label_id)})

    # contact <-> label links

    def get_contact_labels(self, contact_id: uuid.UUID) -> list[ContactLabel]:
        rows = self._request("GET", "contact_labels", params={"contact_id": _eq(contact_id)})
        return self._parse(ContactLabel, rows)

    def get_labels_for_contact(self, contact_id: uuid.UUID) -> list[Label]:
        rows = self._request(
            "GET",
            "labels",
            params={
                "select": f"{_LABEL_COLUMNS},contact_labels!inner(contact_id,label_id)",
                "contact_labels.contact_id": _eq(contact_id),
                "order": "name.asc",
            },
        )
        return self._parse(Label, rows)

    def assign_label_to_contact(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> ContactLabel:
        link = ContactLabel(contact_id=contact_id, label_id=label_id)
        rows = self._request("POST", "contact_labels", json=link.to_row())
        return self._single(ContactLabel, rows, "contact_labels")

    def remove_label_from_contact(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> None:
        self._request(
            "DELETE",
            "contact_labels",
            params={"contact_id": _eq(contact_id), "label_id": _eq(label_id)},
        )

    def close(self) -> None:
        self._client.close()
