from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path

import vobject

from noteai.core.config import Settings
from noteai.core.errors import ContactsAccessDenied, DeviceContactsError
from noteai.domain.records import Contact

logger = logging.getLogger(__name__)


@dataclass
class DeviceContact:
    identifier: str
    given_name: str = ""
    family_name: str = ""
    phone_numbers: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    note: str = ""
    organization: str = ""
    has_image: bool = False

    @property
    def full_name(self) -> str:
        return " ".join(part for part in [self.given_name, self.family_name] if part)


def _values(card, key: str) -> list:
    return [item.value for item in card.contents.get(key, [])]


def _first_text(card, key: str) -> str:
    for value in _values(card, key):
        if isinstance(value, list):
            value = " ".join(str(part) for part in value if part)
        text = str(value or "").strip()
        if text:
            return text
    return ""


def _name_part(value) -> str:
    if isinstance(value, list):
        return " ".join(str(part) for part in value if part).strip()
    return str(value or "").strip()


def _card_to_device_contact(card) -> DeviceContact:
    given = family = ""
    names = _values(card, "n")
    if names:
        given = _name_part(names[0].given)
        family = _name_part(names[0].family)
    if not given and not family:
        # Some exporters only write FN.
        formatted = _first_text(card, "fn")
        given, _, family = formatted.partition(" ")

    return DeviceContact(
        identifier=_first_text(card, "uid") or str(uuid.uuid4()),
        given_name=given,
        family_name=family.strip(),
        phone_numbers=[str(value).strip() for value in _values(card, "tel") if str(value).strip()],
        emails=[str(value).strip() for value in _values(card, "email") if str(value).strip()],
        note=_first_text(card, "note"),
        organization=_first_text(card, "org"),
        has_image="photo" in card.contents,
    )


class DeviceContactBridge:
    """Native address book access, backed by a vCard file on disk."""

    def __init__(self, path: str | Path, *, access_granted: bool) -> None:
        self.path = Path(path)
        self._access_granted = access_granted
        self._authorized: bool | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "DeviceContactBridge":
        return cls(settings.device_contacts_path, access_granted=settings.device_contacts_access_granted)

    def request_access(self) -> bool:
        if not self._access_granted:
            self._authorized = False
            return False
        directory = self.path.parent if str(self.path.parent) else Path(".")
        granted = os.access(directory, os.R_OK | os.W_OK)
        if granted and self.path.exists():
            granted = os.access(self.path, os.R_OK | os.W_OK)
        self._authorized = granted
        if not granted:
            logger.warning("device_contacts_access_denied", extra={"path": str(self.path)})
        return granted

    def _require_access(self) -> None:
        authorized = self._authorized if self._authorized is not None else self.request_access()
        if not authorized:
            raise ContactsAccessDenied("Contacts access denied")

    def _read_cards(self) -> list:
        if not self.path.exists():
            return []
        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DeviceContactsError(f"Failed to read address book {self.path}: {exc}") from exc
        if not content.strip():
            return []
        try:
            return list(vobject.readComponents(content))
        except Exception as exc:
            raise DeviceContactsError(f"Failed to parse address book {self.path}: {exc}") from exc

    def fetch_all_contacts(self) -> list[DeviceContact]:
        self._require_access()
        return [_card_to_device_contact(card) for card in self._read_cards()]

    def search_contacts(self, query: str) -> list[DeviceContact]:
        self._require_access()
        needle = query.strip().lower()
        if not needle:
            return []
        return [contact for contact in self.fetch_all_contacts() if needle in contact.full_name.lower()]

    def create_contact(self, name: str, phone_number: str | None, email: str | None, note: str) -> str:
        self._require_access()
        given, _, family = name.strip().partition(" ")

        card = vobject.vCard()
        card.add("uid").value = str(uuid.uuid4())
        card.add("fn").value = name.strip() or "Unknown"
        card.add("n").value = vobject.vcard.Name(family=family.strip(), given=given)
        if phone_number:
            tel = card.add("tel")
            tel.value = phone_number
            tel.type_param = "MAIN"
        if email:
            email_field = card.add("email")
            email_field.value = email
            email_field.type_param = "WORK"
        card.add("note").value = note

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(card.serialize())
        logger.info("device_contact_created", extra={"path": str(self.path)})
        return " ".join(part for part in [given, family.strip()] if part)

    @staticmethod
    def to_app_contacts(device_contacts: list[DeviceContact], user_id: uuid.UUID) -> list[Contact]:
        return [
            Contact(
                user_id=user_id,
                name=device.full_name or None,
                phone_number=device.phone_numbers[0] if device.phone_numbers else None,
                email=device.emails[0] if device.emails else None,
                text_description=device.note,
                labels=[],
            )
            for device in device_contacts
        ]

    def close(self) -> None:
        return None
