from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from noteai.core.errors import BusyError, DeviceContactsError, LLMRequestError, RemoteCallError
from noteai.domain.records import Contact, ContactLabel, Label, utcnow
from noteai.services.intent import ContactsWorkspace, substring_matches
from noteai.services.intent.router import MISSING_LABEL_NAME_MESSAGE, UNKNOWN_COMMAND_MESSAGE
from noteai.services.llm import DecodeFailure, Decoded, ExtractedContact, ParsedCommand, SearchMatch
from noteai.tests.fakes import FakeDataClient, FakeDevice, FakeIntelligence

OWNER = uuid.UUID("11111111-1111-1111-1111-111111111111")


def _seed(data: FakeDataClient) -> tuple[Contact, Contact, Label]:
    work = Label(user_id=OWNER, name="Work")
    data.labels[work.id] = work
    now = utcnow()
    alice = Contact(
        user_id=OWNER,
        name="Alice Chen",
        text_description="Designer at a fintech startup",
        updated_at=now,
    )
    bob = Contact(
        user_id=OWNER,
        name="Bob Ruiz",
        text_description="Climbing partner from the gym",
        updated_at=now - timedelta(days=1),
    )
    data.contacts[alice.id] = alice
    data.contacts[bob.id] = bob
    data.links.append(ContactLabel(contact_id=alice.id, label_id=work.id))
    return alice, bob, work


def _workspace(data, ai, device=None) -> ContactsWorkspace:
    workspace = ContactsWorkspace(OWNER, data, ai, device)
    workspace.load_labels()
    workspace.load_contacts()
    return workspace


def test_load_contacts_attaches_labels_and_resets_visible_list() -> None:
    data = FakeDataClient()
    alice, bob, work = _seed(data)

    workspace = _workspace(data, FakeIntelligence())

    assert [contact.id for contact in workspace.contacts] == [alice.id, bob.id]
    assert workspace.contacts[0].label_names() == ["Work"]
    assert workspace.contacts[1].labels == []
    assert [contact.id for contact in workspace.filtered_contacts] == [alice.id, bob.id]
    assert [label.id for label in workspace.labels] == [work.id]


def test_add_mode_reuses_existing_labels_and_creates_new_ones() -> None:
    data = FakeDataClient()
    _seed(data)
    device = FakeDevice()
    ai = FakeIntelligence(
        extract=Decoded(
            ExtractedContact(
                description="Angel investor, met at demo day",
                name="Dana Kim",
                phone_number="+1 555 0100",
                suggested_labels=["work", "Investor"],
            )
        )
    )
    workspace = _workspace(data, ai, device)

    result = workspace.process_input("Dana Kim, angel investor, +1 555 0100")

    assert result.ok is True
    assert result.contact is not None
    assert workspace.contacts[0].id == result.contact.id
    assert workspace.filtered_contacts[0].id == result.contact.id
    assert result.contact.label_names() == ["Work", "Investor"]
    assert sorted(label.name for label in workspace.labels) == ["Investor", "Work"]
    assert data.calls.count("create_label") == 1
    assert data.calls.count("assign_label_to_contact") == 2
    assert device.written == [("Dana Kim", "+1 555 0100", None, "Angel investor, met at demo day")]
    assert ai.calls[0] == ("extract_contact", "Dana Kim, angel investor, +1 555 0100", ["Work"])


def test_add_mode_decode_failure_reports_and_saves_nothing() -> None:
    data = FakeDataClient()
    ai = FakeIntelligence(extract=DecodeFailure(operation="extract_contact", reason="response is not a JSON object"))
    workspace = _workspace(data, ai)

    result = workspace.process_input("gibberish")

    assert result.ok is False
    assert result.error.startswith("Failed to create contact: Could not understand the AI response")
    assert workspace.error_message == result.error
    assert "create_contact" not in data.calls
    assert workspace.contacts == []


def test_add_mode_keeps_saved_contact_when_device_write_fails() -> None:
    data = FakeDataClient()
    device = FakeDevice(fail_writes=DeviceContactsError("address book is read-only"))
    ai = FakeIntelligence(extract=Decoded(ExtractedContact(description="Neighbour", name="Eve")))
    workspace = _workspace(data, ai, device)

    result = workspace.process_input("Eve, my neighbour")

    assert result.ok is True
    assert len(data.contacts) == 1
    assert workspace.contacts[0].name == "Eve"


def test_add_mode_skips_device_write_without_name_or_phone() -> None:
    data = FakeDataClient()
    device = FakeDevice()
    ai = FakeIntelligence(extract=Decoded(ExtractedContact(description="someone I met", email="x@example.com")))
    workspace = _workspace(data, ai, device)

    result = workspace.process_input("someone I met, x@example.com")

    assert result.ok is True
    assert device.written == []


def test_add_mode_reuses_label_created_concurrently() -> None:
    data = FakeDataClient()
    ai = FakeIntelligence(extract=Decoded(ExtractedContact(description="VC", name="Fay", suggested_labels=["Investor"])))
    workspace = _workspace(data, ai)
    racing = Label(user_id=OWNER, name="investor")
    data.labels[racing.id] = racing

    result = workspace.process_input("Fay, VC")

    assert result.ok is True
    assert [label.id for label in result.contact.labels] == [racing.id]
    assert [label.id for label in workspace.labels] == [racing.id]


def test_add_mode_remote_failure_leaves_state_untouched() -> None:
    data = FakeDataClient()
    _seed(data)
    data.fail_on["create_contact"] = RemoteCallError("HTTP 503")
    ai = FakeIntelligence(extract=Decoded(ExtractedContact(description="x", name="Gus")))
    workspace = _workspace(data, ai)

    result = workspace.process_input("Gus")

    assert result.ok is False
    assert result.error == "Failed to create contact: HTTP 503"
    assert len(workspace.contacts) == 2
    assert workspace.is_loading is False


def test_search_mode_filters_by_semantic_match() -> None:
    data = FakeDataClient()
    alice, bob, _ = _seed(data)
    ai = FakeIntelligence(search=Decoded(SearchMatch(matched_ids=[bob.id, uuid.uuid4()], explanation="climbers")))
    workspace = _workspace(data, ai)
    workspace.set_mode("search")

    result = workspace.process_input("  people who climb  ")

    assert result.ok is True
    assert result.used_fallback is False
    assert result.matched_ids == [bob.id]
    assert result.explanation == "climbers"
    assert [contact.id for contact in workspace.filtered_contacts] == [bob.id]
    assert ai.calls[0][1] == "people who climb"


def test_search_mode_blank_query_resets_without_model_call() -> None:
    data = FakeDataClient()
    _seed(data)
    ai = FakeIntelligence()
    workspace = _workspace(data, ai)
    workspace.filtered_contacts = []

    result = workspace.process_input("   ", mode="search")

    assert result.ok is True
    assert len(workspace.filtered_contacts) == 2
    assert ai.calls == []


@pytest.mark.parametrize(
    "failure",
    [
        LLMRequestError("AI request failed: timeout"),
        DecodeFailure(operation="semantic_search", reason="unexpected response shape (1 errors)"),
    ],
)
def test_search_mode_falls_back_to_substring_matching(failure) -> None:
    data = FakeDataClient()
    alice, _, _ = _seed(data)
    workspace = _workspace(data, FakeIntelligence(search=failure))

    result = workspace.process_input("WORK", mode="search")

    assert result.ok is True
    assert result.error is None
    assert result.used_fallback is True
    assert result.matched_ids == [alice.id]


def test_substring_matches_checks_name_description_and_labels() -> None:
    data = FakeDataClient()
    alice, bob, _ = _seed(data)
    workspace = _workspace(data, FakeIntelligence())

    assert [c.id for c in substring_matches(workspace.contacts, "ruiz")] == [bob.id]
    assert [c.id for c in substring_matches(workspace.contacts, "fintech")] == [alice.id]
    assert [c.id for c in substring_matches(workspace.contacts, "work")] == [alice.id]
    assert substring_matches(workspace.contacts, "nobody") == []


def test_command_mode_creates_label() -> None:
    data = FakeDataClient()
    ai = FakeIntelligence(command=Decoded(ParsedCommand(kind="create_label", label_name="Family")))
    workspace = _workspace(data, ai)

    result = workspace.process_input("create a label called Family", mode="command")

    assert result.ok is True
    assert result.label.name == "Family"
    assert [label.name for label in workspace.labels] == ["Family"]


def test_command_mode_rejects_case_insensitive_duplicate_without_remote_call() -> None:
    data = FakeDataClient()
    _seed(data)
    ai = FakeIntelligence(command=Decoded(ParsedCommand(kind="create_label", label_name="work")))
    workspace = _workspace(data, ai)

    result = workspace.process_input("add label work", mode="command")

    assert result.ok is False
    assert result.error == "Label 'work' already exists"
    assert "create_label" not in data.calls


def test_command_mode_delete_label_unlinks_contacts() -> None:
    data = FakeDataClient()
    alice, _, work = _seed(data)
    ai = FakeIntelligence(command=Decoded(ParsedCommand(kind="delete_label", label_name="WORK")))
    workspace = _workspace(data, ai)
    workspace.filtered_contacts = []

    result = workspace.process_input("delete label WORK", mode="command")

    assert result.ok is True
    assert workspace.labels == []
    assert workspace.contacts[0].labels == []
    assert len(workspace.filtered_contacts) == 2
    assert work.id not in data.labels


def test_command_mode_delete_unknown_label() -> None:
    data = FakeDataClient()
    ai = FakeIntelligence(command=Decoded(ParsedCommand(kind="delete_label", label_name="Ghosts")))
    workspace = _workspace(data, ai)

    result = workspace.process_input("remove label Ghosts", mode="command")

    assert result.error == "Label 'Ghosts' not found"
    assert "delete_label" not in data.calls


def test_command_mode_other_and_missing_label_name() -> None:
    data = FakeDataClient()
    workspace = _workspace(data, FakeIntelligence(command=Decoded(ParsedCommand(kind="other"))))
    assert workspace.process_input("export everything", mode="command").error == UNKNOWN_COMMAND_MESSAGE

    workspace = _workspace(data, FakeIntelligence(command=Decoded(ParsedCommand(kind="create_label"))))
    assert workspace.process_input("create a label", mode="command").error == MISSING_LABEL_NAME_MESSAGE


def test_create_label_rejects_blank_name() -> None:
    workspace = _workspace(FakeDataClient(), FakeIntelligence())

    result = workspace.create_label("   ")

    assert result.error == "Label name cannot be empty"


def test_update_description_and_delete_contact() -> None:
    data = FakeDataClient()
    alice, bob, _ = _seed(data)
    workspace = _workspace(data, FakeIntelligence())

    updated = workspace.update_contact_description(alice.id, "Now leads design at a bank")
    deleted = workspace.delete_contact(bob.id)

    assert updated.ok is True
    assert workspace.contacts[0].text_description == "Now leads design at a bank"
    assert data.contacts[alice.id].text_description == "Now leads design at a bank"
    assert deleted.ok is True
    assert [contact.id for contact in workspace.contacts] == [alice.id]
    assert [contact.id for contact in workspace.filtered_contacts] == [alice.id]


def test_update_description_of_unknown_contact() -> None:
    workspace = _workspace(FakeDataClient(), FakeIntelligence())

    assert workspace.update_contact_description(uuid.uuid4(), "x").error == "Contact not found"


def test_delete_contact_failure_keeps_contact() -> None:
    data = FakeDataClient()
    _, bob, _ = _seed(data)
    data.fail_on["delete_contact"] = RemoteCallError("connection reset")
    workspace = _workspace(data, FakeIntelligence())

    result = workspace.delete_contact(bob.id)

    assert result.error == "Failed to delete contact: connection reset"
    assert workspace.error_message == result.error
    assert len(workspace.contacts) == 2


def test_assign_label_is_noop_when_already_assigned() -> None:
    data = FakeDataClient()
    alice, bob, work = _seed(data)
    workspace = _workspace(data, FakeIntelligence())

    again = workspace.assign_label(alice.id, work.id)
    fresh = workspace.assign_label(bob.id, work.id)

    assert again.ok is True
    assert fresh.ok is True
    assert data.calls.count("assign_label_to_contact") == 1
    assert workspace.contacts[1].label_names() == ["Work"]


def test_remove_label_updates_contact() -> None:
    data = FakeDataClient()
    alice, _, work = _seed(data)
    workspace = _workspace(data, FakeIntelligence())

    result = workspace.remove_label(alice.id, work.id)

    assert result.ok is True
    assert workspace.contacts[0].labels == []
    assert data.links == []


def test_operation_in_flight_raises_busy() -> None:
    workspace = _workspace(FakeDataClient(), FakeIntelligence())
    workspace._busy.acquire()
    try:
        with pytest.raises(BusyError):
            workspace.create_label("Later")
    finally:
        workspace._busy.release()

    assert workspace.create_label("Later").ok is True


def test_rejected_input_does_not_switch_mode() -> None:
    data = FakeDataClient()
    _seed(data)
    workspace = _workspace(data, FakeIntelligence())
    workspace.filtered_contacts = workspace.contacts[:1]
    workspace.search_query = "alice"

    workspace._busy.acquire()
    try:
        with pytest.raises(BusyError):
            workspace.process_input("bob", mode="search")
    finally:
        workspace._busy.release()

    assert workspace.input_mode == "add"
    assert workspace.search_query == "alice"
    assert len(workspace.filtered_contacts) == 1


def test_set_mode_rejects_unknown_mode() -> None:
    workspace = _workspace(FakeDataClient(), FakeIntelligence())

    with pytest.raises(ValueError):
        workspace.set_mode("delete")  # type: ignore[arg-type]
