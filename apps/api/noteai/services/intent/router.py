from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal, Protocol

from noteai.core.errors import BusyError, DuplicateLabelError, NoteAIError, ValidationFailure
from noteai.domain.records import Contact, Label, find_label_by_name, utcnow
from noteai.services.datastore import DataClient
from noteai.services.llm import DecodeFailure, DecodeResult, ExtractedContact, ParsedCommand, SearchMatch

logger = logging.getLogger(__name__)

InputMode = Literal["add", "search", "command"]
INPUT_MODES: tuple[InputMode, ...] = ("add", "search", "command")

UNKNOWN_COMMAND_MESSAGE = "Unknown command. Try 'create label [name]' or 'delete label [name]'"
MISSING_LABEL_NAME_MESSAGE = "Could not determine label name from your input"


class ContactIntelligence(Protocol):
    def extract_contact(self, text: str, existing_labels: list[str]) -> DecodeResult[ExtractedContact]: ...

    def semantic_search(self, query: str, contacts: list[Contact], labels: list[Label]) -> DecodeResult[SearchMatch]: ...

    def parse_command(self, text: str, existing_labels: list[str]) -> DecodeResult[ParsedCommand]: ...


class DeviceContactWriter(Protocol):
    def create_contact(self, name: str, phone_number: str | None, email: str | None, note: str) -> str: ...


@dataclass
class OperationResult:
    ok: bool
    error: str | None = None
    contact: Contact | None = None
    label: Label | None = None
    matched_ids: list[uuid.UUID] = field(default_factory=list)
    explanation: str | None = None
    used_fallback: bool = False


def substring_matches(contacts: list[Contact], query: str) -> list[Contact]:
    """Degraded search: case-insensitive substring over name, description and label names."""
    needle = query.lower()
    matched = []
    for contact in contacts:
        name = (contact.name or "").lower()
        description = contact.text_description.lower()
        label_names = [label.lower() for label in contact.label_names()]
        if needle in name or needle in description or any(needle in label for label in label_names):
            matched.append(contact)
    return matched


class ContactsWorkspace:
    """Per-owner in-memory contact and label state, plus the free-text intent router.

    Every mutation is applied to the in-memory collections only after the
    remote call behind it has succeeded, so a failed operation leaves the
    last-known-good state in place and reports a message instead.
    """

    def __init__(
        self,
        user_id: uuid.UUID,
        data_client: DataClient,
        intelligence: ContactIntelligence,
        device_contacts: DeviceContactWriter | None = None,
        *,
        busy: threading.Lock | None = None,
    ) -> None:
        self.user_id = user_id
        self._data = data_client
        self._ai = intelligence
        self._device = device_contacts

        self.contacts: list[Contact] = []
        self.labels: list[Label] = []
        self.filtered_contacts: list[Contact] = []
        self.input_mode: InputMode = "add"
        self.search_query = ""
        self.is_loading = False
        self.error_message: str | None = None
        # Shared with the onboarding import when both belong to one session.
        self._busy = busy if busy is not None else threading.Lock()

    # plumbing

    def _run(self, operation: str, failure_prefix: str, func: Callable[..., OperationResult], *args) -> OperationResult:
        if not self._busy.acquire(blocking=False):
            raise BusyError("Another operation is still in progress")
        self.is_loading = True
        self.error_message = None
        try:
            return func(*args)
        except ValidationFailure as exc:
            return self._fail(exc.message)
        except NoteAIError as exc:
            logger.warning(
                "workspace_operation_failed",
                extra={"operation": operation, "user_id": str(self.user_id), "error": exc.message},
            )
            return self._fail(f"{failure_prefix}: {exc.message}")
        finally:
            self.is_loading = False
            self._busy.release()

    def _fail(self, message: str) -> OperationResult:
        self.error_message = message
        return OperationResult(ok=False, error=message)

    def _label_names(self) -> list[str]:
        return [label.name for label in self.labels]

    def _find_contact(self, contact_id: uuid.UUID) -> Contact | None:
        return next((contact for contact in self.contacts if contact.id == contact_id), None)

    def _reset_visible(self) -> None:
        self.filtered_contacts = list(self.contacts)

    # loading

    def load_contacts(self) -> OperationResult:
        return self._run("load_contacts", "Failed to load contacts", self._load_contacts)

    def _load_contacts(self) -> OperationResult:
        loaded = self._data.get_contacts(self.user_id)
        for contact in loaded:
            contact.labels = self._data.get_labels_for_contact(contact.id)
        self.contacts = loaded
        self._reset_visible()
        return OperationResult(ok=True)

    def load_labels(self) -> OperationResult:
        return self._run("load_labels", "Failed to load labels", self._load_labels)

    def _load_labels(self) -> OperationResult:
        self.labels = self._data.get_labels(self.user_id)
        return OperationResult(ok=True)

    def set_mode(self, mode: InputMode) -> None:
        if mode not in INPUT_MODES:
            raise ValueError(f"Unknown input mode: {mode!r}")
        self.input_mode = mode
        if mode == "search":
            self.search_query = ""
            self._reset_visible()

    # free-text routing

    def process_input(self, text: str, mode: InputMode | None = None) -> OperationResult:
        target = mode if mode is not None else self.input_mode
        if target not in INPUT_MODES:
            raise ValueError(f"Unknown input mode: {target!r}")
        failure_prefixes = {
            "add": "Failed to create contact",
            "search": "Failed to search contacts",
            "command": "Failed to process command",
        }
        return self._run(f"process_input:{target}", failure_prefixes[target], self._route_input, text, mode)

    def _route_input(self, text: str, mode: InputMode | None) -> OperationResult:
        if mode is not None:
            self.set_mode(mode)
        handlers: dict[str, Callable[[str], OperationResult]] = {
            "add": self._create_contact_from_input,
            "search": self._search_contacts,
            "command": self._process_command,
        }
        return handlers[self.input_mode](text)

    def _create_contact_from_input(self, text: str) -> OperationResult:
        extraction = self._ai.extract_contact(text, self._label_names())
        if isinstance(extraction, DecodeFailure):
            return self._fail(f"Failed to create contact: {extraction.message}")
        info = extraction.value

        created = self._data.create_contact(
            Contact(
                user_id=self.user_id,
                name=info.name,
                phone_number=info.phone_number,
                email=info.email,
                text_description=info.description,
            )
        )
        logger.info("contact_created", extra={"user_id": str(self.user_id), "contact_id": str(created.id)})

        if self._device is not None and (info.name or info.phone_number):
            try:
                self._device.create_contact(info.name or "Unknown", info.phone_number, info.email, info.description)
            except (NoteAIError, OSError):
                # The remote record stays saved.
                logger.exception("device_contact_write_failed", extra={"contact_id": str(created.id)})

        contact_labels: list[Label] = []
        for label_name in info.suggested_labels:
            label = self._resolve_or_create_label(label_name)
            if any(existing.id == label.id for existing in contact_labels):
                continue
            self._data.assign_label_to_contact(created.id, label.id)
            contact_labels.append(label)

        created.labels = contact_labels
        self.contacts.insert(0, created)
        self._reset_visible()
        return OperationResult(ok=True, contact=created)

    def _resolve_or_create_label(self, name: str) -> Label:
        existing = find_label_by_name(self.labels, name)
        if existing is not None:
            return existing
        try:
            created = self._data.create_label(Label(user_id=self.user_id, name=name))
        except DuplicateLabelError:
            # Another flow created the same name first; reuse whatever won.
            self.labels = self._data.get_labels(self.user_id)
            winner = find_label_by_name(self.labels, name)
            if winner is None:
                raise
            return winner
        self.labels.append(created)
        return created

    def _search_contacts(self, query: str) -> OperationResult:
        self.search_query = query
        # Whitespace-only queries reset the list without asking the model.
        needle = query.strip()
        if not needle:
            self._reset_visible()
            return OperationResult(ok=True)

        try:
            outcome = self._ai.semantic_search(needle, self.contacts, self.labels)
        except NoteAIError as exc:
            logger.warning("semantic_search_failed_fallback_substring", extra={"error": exc.message})
            return self._fallback_search(needle)
        if isinstance(outcome, DecodeFailure):
            logger.warning("semantic_search_undecodable_fallback_substring", extra={"reason": outcome.reason})
            return self._fallback_search(needle)

        wanted = set(outcome.value.matched_ids)
        self.filtered_contacts = [contact for contact in self.contacts if contact.id in wanted]
        return OperationResult(
            ok=True,
            matched_ids=[contact.id for contact in self.filtered_contacts],
            explanation=outcome.value.explanation,
        )

    def _fallback_search(self, query: str) -> OperationResult:
        self.filtered_contacts = substring_matches(self.contacts, query)
        return OperationResult(
            ok=True,
            matched_ids=[contact.id for contact in self.filtered_contacts],
            used_fallback=True,
        )

    def _process_command(self, text: str) -> OperationResult:
        parsed = self._ai.parse_command(text, self._label_names())
        if isinstance(parsed, DecodeFailure):
            return self._fail(f"Failed to process command: {parsed.message}")
        command = parsed.value

        if command.kind == "other":
            raise ValidationFailure(UNKNOWN_COMMAND_MESSAGE)
        if not command.label_name:
            raise ValidationFailure(MISSING_LABEL_NAME_MESSAGE)
        if command.kind == "create_label":
            return self._create_label(command.label_name)
        return self._delete_label(command.label_name)

    # labels

    def create_label(self, name: str) -> OperationResult:
        return self._run("create_label", "Failed to create label", self._create_label, name)

    def _create_label(self, name: str) -> OperationResult:
        cleaned = name.strip()
        if not cleaned:
            raise ValidationFailure("Label name cannot be empty")
        if find_label_by_name(self.labels, cleaned) is not None:
            raise ValidationFailure(f"Label '{cleaned}' already exists")
        try:
            created = self._data.create_label(Label(user_id=self.user_id, name=cleaned))
        except DuplicateLabelError as exc:
            self.labels = self._data.get_labels(self.user_id)
            raise ValidationFailure(f"Label '{cleaned}' already exists") from exc
        self.labels.append(created)
        return OperationResult(ok=True, label=created)

    def delete_label(self, name: str) -> OperationResult:
        return self._run("delete_label", "Failed to delete label", self._delete_label, name)

    def _delete_label(self, name: str) -> OperationResult:
        label = find_label_by_name(self.labels, name)
        if label is None:
            raise ValidationFailure(f"Label '{name.strip()}' not found")
        self._data.delete_label(label.id)

        self.labels = [existing for existing in self.labels if existing.id != label.id]
        for contact in self.contacts:
            if contact.labels:
                contact.labels = [existing for existing in contact.labels if existing.id != label.id]
        self._reset_visible()
        return OperationResult(ok=True, label=label)

    # contacts

    def update_contact_description(self, contact_id: uuid.UUID, description: str) -> OperationResult:
        return self._run(
            "update_contact_description", "Failed to update contact", self._update_description, contact_id, description
        )

    def _update_description(self, contact_id: uuid.UUID, description: str) -> OperationResult:
        contact = self._find_contact(contact_id)
        if contact is None:
            raise ValidationFailure("Contact not found")
        saved = self._data.update_contact(
            contact.model_copy(update={"text_description": description, "updated_at": utcnow()})
        )
        contact.text_description = description
        contact.updated_at = saved.updated_at
        return OperationResult(ok=True, contact=contact)

    def delete_contact(self, contact_id: uuid.UUID) -> OperationResult:
        return self._run("delete_contact", "Failed to delete contact", self._delete_contact, contact_id)

    def _delete_contact(self, contact_id: uuid.UUID) -> OperationResult:
        self._data.delete_contact(contact_id)
        self.contacts = [contact for contact in self.contacts if contact.id != contact_id]
        self.filtered_contacts = [contact for contact in self.filtered_contacts if contact.id != contact_id]
        return OperationResult(ok=True)

    def assign_label(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> OperationResult:
        return self._run("assign_label", "Failed to assign label", self._assign_label, contact_id, label_id)

    def _assign_label(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> OperationResult:
        contact = self._find_contact(contact_id)
        if contact is None:
            raise ValidationFailure("Contact not found")
        if any(label.id == label_id for label in contact.labels or []):
            return OperationResult(ok=True, contact=contact)
        label = next((label for label in self.labels if label.id == label_id), None)
        if label is None:
            raise ValidationFailure("Label not found")
        self._data.assign_label_to_contact(contact_id, label_id)
        contact.labels = [*(contact.labels or []), label]
        return OperationResult(ok=True, contact=contact, label=label)

    def remove_label(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> OperationResult:
        return self._run("remove_label", "Failed to remove label", self._remove_label, contact_id, label_id)

    def _remove_label(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> OperationResult:
        self._data.remove_label_from_contact(contact_id, label_id)
        contact = self._find_contact(contact_id)
        if contact is not None and contact.labels:
            contact.labels = [label for label in contact.labels if label.id != label_id]
        return OperationResult(ok=True, contact=contact)
