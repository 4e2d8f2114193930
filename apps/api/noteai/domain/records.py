from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at", "expiration_date", mode="after", check_fields=False)
    @classmethod
    def _timestamps_are_utc(cls, value: datetime | None) -> datetime | None:
        # sqlite hands back naive datetimes for timezone-aware columns.
        return as_utc(value) if value is not None else None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Label(Record):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    name: str
    created_at: datetime = Field(default_factory=utcnow)


class Contact(Record):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    text_description: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    # Loaded separately from the contact_labels join rows; never written back.
    labels: list[Label] | None = Field(default=None, exclude=True)

    def label_names(self) -> list[str]:
        return [label.name for label in self.labels or []]


class ContactLabel(Record):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    contact_id: uuid.UUID
    label_id: uuid.UUID
    created_at: datetime = Field(default_factory=utcnow)


class Subscription(Record):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    product_id: str
    original_transaction_id: str | None = None
    latest_transaction_id: str | None = None
    status: str
    expiration_date: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_active(self, now: datetime | None = None) -> bool:
        if self.expiration_date is None:
            return False
        reference = as_utc(now) if now is not None else utcnow()
        return self.status == "active" and as_utc(self.expiration_date) > reference


class UserPreferences(Record):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    has_completed_onboarding: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


def find_label_by_name(labels: list[Label], name: str) -> Label | None:
    """Case-insensitive lookup; label names are unique per owner by that rule."""
    wanted = name.strip().lower()
    for label in labels:
        if label.name.strip().lower() == wanted:
            return label
    return None
