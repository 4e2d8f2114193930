from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from noteai.domain.records import Contact, Label
from noteai.services.intent import OperationResult

InputModeIn = Literal["add", "search", "command"]


class LabelOut(BaseModel):
    id: uuid.UUID
    name: str
    created_at: datetime

    @classmethod
    def from_label(cls, label: Label) -> "LabelOut":
        return cls(id=label.id, name=label.name, created_at=label.created_at)


class ContactOut(BaseModel):
    id: uuid.UUID
    name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    text_description: str
    created_at: datetime
    updated_at: datetime
    labels: list[LabelOut] = Field(default_factory=list)

    @classmethod
    def from_contact(cls, contact: Contact) -> "ContactOut":
        return cls(
            id=contact.id,
            name=contact.name,
            phone_number=contact.phone_number,
            email=contact.email,
            text_description=contact.text_description,
            created_at=contact.created_at,
            updated_at=contact.updated_at,
            labels=[LabelOut.from_label(label) for label in contact.labels or []],
        )


class SessionResponse(BaseModel):
    owner_id: uuid.UUID
    has_completed_onboarding: bool
    contacts: int
    labels: int
    error: str | None = None


class SignOutResponse(BaseModel):
    owner_id: uuid.UUID
    signed_out: bool


class ContactsResponse(BaseModel):
    input_mode: InputModeIn
    search_query: str = ""
    error: str | None = None
    contacts: list[ContactOut] = Field(default_factory=list)


class InputRequest(BaseModel):
    text: str
    mode: InputModeIn | None = None


class OperationResponse(BaseModel):
    ok: bool
    error: str | None = None
    input_mode: InputModeIn | None = None
    contact: ContactOut | None = None
    label: LabelOut | None = None
    matched_ids: list[uuid.UUID] = Field(default_factory=list)
    explanation: str | None = None
    used_fallback: bool = False

    @classmethod
    def from_result(cls, result: OperationResult, input_mode: InputModeIn | None = None) -> "OperationResponse":
        return cls(
            ok=result.ok,
            error=result.error,
            input_mode=input_mode,
            contact=ContactOut.from_contact(result.contact) if result.contact is not None else None,
            label=LabelOut.from_label(result.label) if result.label is not None else None,
            matched_ids=list(result.matched_ids),
            explanation=result.explanation,
            used_fallback=result.used_fallback,
        )


class DescriptionUpdate(BaseModel):
    text_description: str


class LabelCreate(BaseModel):
    name: str


class LabelsResponse(BaseModel):
    labels: list[LabelOut] = Field(default_factory=list)


class OnboardingStatus(BaseModel):
    has_completed_onboarding: bool


class ImportProgressOut(BaseModel):
    imported: int
    total: int
    fraction: float


class ImportSummaryOut(BaseModel):
    total: int
    processed: int
    created: int
    skipped: int
    labels_created: int


class ImportResponse(BaseModel):
    ok: bool
    error: str | None = None
    has_completed_onboarding: bool
    summary: ImportSummaryOut | None = None
    progress: list[ImportProgressOut] = Field(default_factory=list)


class SubscriptionStatus(BaseModel):
    is_active: bool
    product_ids: list[str] = Field(default_factory=list)


class ProductOut(BaseModel):
    product_id: str
    package_id: str | None = None
    offering_id: str | None = None


class ProductsResponse(BaseModel):
    monthly: ProductOut | None = None
    yearly: ProductOut | None = None
    error: str | None = None


class PurchaseRequest(BaseModel):
    product_id: str
    receipt: str


class PurchaseResponse(BaseModel):
    ok: bool
    error: str | None = None
    product_id: str
    entitled: bool = False
    expires_at: datetime | None = None


class RestoreResponse(BaseModel):
    ok: bool
    error: str | None = None
    product_ids: list[str] = Field(default_factory=list)
