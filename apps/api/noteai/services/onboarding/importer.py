from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from noteai.core.errors import BusyError, ContactsAccessDenied, DuplicateLabelError, LLMRequestError, NoteAIError
from noteai.domain.records import Contact, Label, UserPreferences, utcnow
from noteai.services.datastore import DataClient
from noteai.services.device_contacts import DeviceContact
from noteai.services.llm import DecodeFailure, DecodeResult

logger = logging.getLogger(__name__)

FALLBACK_DESCRIPTION = "Imported from contacts"


class DeviceContactSource(Protocol):
    def request_access(self) -> bool: ...

    def fetch_all_contacts(self) -> list[DeviceContact]: ...


class LabelSuggester(Protocol):
    def suggest_labels(self, description: str, existing_labels: list[str]) -> DecodeResult[list[str]]: ...


@dataclass(frozen=True)
class ImportProgress:
    imported: int
    total: int

    @property
    def fraction(self) -> float:
        return self.imported / self.total if self.total else 1.0


@dataclass(frozen=True)
class ImportSummary:
    total: int
    processed: int
    created: int
    skipped: int
    labels_created: int


def describe_device_contact(device: DeviceContact) -> str:
    if device.note.strip():
        return device.note
    if device.organization.strip():
        return f"Works at {device.organization.strip()}"
    return FALLBACK_DESCRIPTION


class OnboardingService:
    """First-run import of the device address book, in small sequential batches."""

    def __init__(
        self,
        user_id: uuid.UUID,
        data_client: DataClient,
        device_contacts: DeviceContactSource,
        labels_ai: LabelSuggester,
        *,
        batch_size: int = 5,
        busy: threading.Lock | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.user_id = user_id
        self._data = data_client
        self._device = device_contacts
        self._ai = labels_ai
        self.batch_size = batch_size
        self.has_completed_onboarding = False
        self._busy = busy if busy is not None else threading.Lock()

    def _acquire(self) -> None:
        if not self._busy.acquire(blocking=False):
            raise BusyError("Another operation is still in progress")

    def check_status(self) -> bool:
        preferences = self._data.get_user_preferences(self.user_id)
        self.has_completed_onboarding = bool(preferences and preferences.has_completed_onboarding)
        return self.has_completed_onboarding

    def import_contacts(self, progress: Callable[[ImportProgress], None] | None = None) -> ImportSummary:
        self._acquire()
        try:
            return self._import_contacts(progress)
        finally:
            self._busy.release()

    def _import_contacts(self, progress: Callable[[ImportProgress], None] | None) -> ImportSummary:
        if not self._device.request_access():
            raise ContactsAccessDenied("Contacts access denied")

        device_contacts = self._device.fetch_all_contacts()
        total = len(device_contacts)
        logger.info("onboarding_import_started", extra={"user_id": str(self.user_id), "total": total})

        known_labels: dict[str, Label] = {label.name.lower(): label for label in self._data.get_labels(self.user_id)}
        labels_before = len(known_labels)

        processed = created = skipped = 0
        for start in range(0, total, self.batch_size):
            batch = device_contacts[start : start + self.batch_size]
            for device in batch:
                if self._import_one(device, known_labels):
                    created += 1
                else:
                    skipped += 1
            processed += len(batch)
            if progress is not None:
                progress(ImportProgress(imported=processed, total=total))

        self.mark_completed()
        summary = ImportSummary(
            total=total,
            processed=processed,
            created=created,
            skipped=skipped,
            labels_created=len(known_labels) - labels_before,
        )
        logger.info(
            "onboarding_import_finished",
            extra={"user_id": str(self.user_id), "contacts_created": created, "skipped": skipped},
        )
        return summary

    def _import_one(self, device: DeviceContact, known_labels: dict[str, Label]) -> bool:
        full_name = device.full_name
        if not full_name and not device.phone_numbers:
            return False

        description = describe_device_contact(device)
        contact = self._data.create_contact(
            Contact(
                user_id=self.user_id,
                name=full_name or None,
                phone_number=device.phone_numbers[0] if device.phone_numbers else None,
                email=device.emails[0] if device.emails else None,
                text_description=description,
            )
        )

        try:
            suggestion = self._ai.suggest_labels(description, [label.name for label in known_labels.values()])
        except LLMRequestError:
            logger.exception("onboarding_label_suggestion_failed", extra={"contact_id": str(contact.id)})
            return True
        if isinstance(suggestion, DecodeFailure):
            logger.warning(
                "onboarding_label_suggestion_undecodable",
                extra={"contact_id": str(contact.id), "reason": suggestion.reason},
            )
            return True

        for label_name in suggestion.value:
            label = self._label_for(label_name, known_labels)
            self._data.assign_label_to_contact(contact.id, label.id)
        return True

    def _label_for(self, name: str, known_labels: dict[str, Label]) -> Label:
        key = name.strip().lower()
        existing = known_labels.get(key)
        if existing is not None:
            return existing
        try:
            label = self._data.create_label(Label(user_id=self.user_id, name=name.strip()))
        except DuplicateLabelError:
            refreshed = {item.name.lower(): item for item in self._data.get_labels(self.user_id)}
            if key not in refreshed:
                raise
            label = refreshed[key]
        known_labels[key] = label
        return label

    def mark_completed(self) -> UserPreferences:
        preferences = self._data.get_user_preferences(self.user_id)
        if preferences is None:
            saved = self._data.create_user_preferences(self.user_id, has_completed_onboarding=True)
        else:
            saved = self._data.update_user_preferences(
                preferences.model_copy(update={"has_completed_onboarding": True, "updated_at": utcnow()})
            )
        self.has_completed_onboarding = True
        return saved

    def skip_onboarding(self) -> UserPreferences:
        self._acquire()
        try:
            return self.mark_completed()
        finally:
            self._busy.release()


def run_import_safely(
    service: OnboardingService, progress: Callable[[ImportProgress], None] | None = None
) -> tuple[ImportSummary | None, str | None]:
    """Run the import and turn any reported failure into a user-facing message."""
    try:
        return service.import_contacts(progress), None
    except BusyError:
        raise
    except ContactsAccessDenied as exc:
        return None, exc.message
    except NoteAIError as exc:
        logger.warning("onboarding_import_failed", extra={"user_id": str(service.user_id), "error": exc.message})
        return None, f"Failed to import contacts: {exc.message}"
