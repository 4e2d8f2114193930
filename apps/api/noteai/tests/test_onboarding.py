from __future__ import annotations

import logging
import threading
import uuid

import pytest

from noteai.core.errors import BusyError, ContactsAccessDenied, LLMRequestError, RemoteCallError
from noteai.domain.records import Label, UserPreferences
from noteai.services.device_contacts import DeviceContact
from noteai.services.llm import DecodeFailure, Decoded
from noteai.services.onboarding import OnboardingService, describe_device_contact, run_import_safely
from noteai.tests.fakes import FakeDataClient, FakeDevice, FakeIntelligence

OWNER = uuid.UUID("55555555-5555-5555-5555-555555555555")


def _people(count: int) -> list[DeviceContact]:
    return [DeviceContact(identifier=f"d-{i}", given_name=f"Person{i}", note=f"Friend number {i}") for i in range(count)]


def test_describe_device_contact_prefers_note_then_organisation() -> None:
    assert describe_device_contact(DeviceContact(identifier="a", note="Met at PyCon", organization="Acme")) == "Met at PyCon"
    assert describe_device_contact(DeviceContact(identifier="b", organization="Acme")) == "Works at Acme"
    assert describe_device_contact(DeviceContact(identifier="c")) == "Imported from contacts"


def test_import_reports_progress_after_each_batch() -> None:
    data = FakeDataClient()
    service = OnboardingService(
        OWNER, data, FakeDevice(_people(5)), FakeIntelligence(labels=Decoded(["Friends"])), batch_size=2
    )
    steps = []

    summary = service.import_contacts(steps.append)

    assert [(step.imported, step.total) for step in steps] == [(2, 5), (4, 5), (5, 5)]
    assert steps[-1].fraction == 1.0
    assert summary.created == 5
    assert summary.labels_created == 1
    assert len(data.contacts) == 5
    assert len(data.labels) == 1
    assert len(data.links) == 5


def test_import_skips_contacts_without_name_or_phone() -> None:
    data = FakeDataClient()
    device = FakeDevice(
        [
            DeviceContact(identifier="1", emails=["only@example.com"]),
            DeviceContact(identifier="2", phone_numbers=["+1 555 0100"], organization="Acme"),
        ]
    )
    service = OnboardingService(OWNER, data, device, FakeIntelligence(labels=Decoded([])))

    summary = service.import_contacts()

    assert summary.skipped == 1
    assert summary.created == 1
    saved = next(iter(data.contacts.values()))
    assert saved.name is None
    assert saved.phone_number == "+1 555 0100"
    assert saved.text_description == "Works at Acme"


def test_import_reuses_existing_labels_case_insensitively() -> None:
    data = FakeDataClient()
    work = Label(user_id=OWNER, name="Work")
    data.labels[work.id] = work
    ai = FakeIntelligence(labels=lambda description: Decoded(["work", "Tech"]))
    service = OnboardingService(OWNER, data, FakeDevice(_people(2)), ai)

    summary = service.import_contacts()

    assert summary.labels_created == 1
    assert sorted(label.name for label in data.labels.values()) == ["Tech", "Work"]
    assert all(link.label_id in data.labels for link in data.links)
    assert ai.calls[0][2] == ["Work"]


@pytest.mark.parametrize(
    "suggestion",
    [
        DecodeFailure(operation="suggest_labels", reason="response is not JSON"),
        LLMRequestError("AI request failed"),
    ],
)
def test_label_suggestion_failure_leaves_contact_unlabeled(suggestion) -> None:
    data = FakeDataClient()
    service = OnboardingService(OWNER, data, FakeDevice(_people(1)), FakeIntelligence(labels=suggestion))

    summary = service.import_contacts()

    assert summary.created == 1
    assert data.links == []


def test_import_marks_onboarding_completed() -> None:
    data = FakeDataClient()
    service = OnboardingService(OWNER, data, FakeDevice([]), FakeIntelligence(labels=Decoded([])))

    service.import_contacts()

    assert data.preferences[OWNER].has_completed_onboarding is True
    assert service.check_status() is True


def test_access_denied_aborts_import() -> None:
    data = FakeDataClient()
    service = OnboardingService(OWNER, data, FakeDevice(_people(3), granted=False), FakeIntelligence())

    with pytest.raises(ContactsAccessDenied):
        service.import_contacts()
    assert data.contacts == {}
    assert OWNER not in data.preferences


def test_run_import_safely_turns_failures_into_messages() -> None:
    denied = OnboardingService(OWNER, FakeDataClient(), FakeDevice(granted=False), FakeIntelligence())
    assert run_import_safely(denied) == (None, "Contacts access denied")

    data = FakeDataClient()
    data.fail_on["create_contact"] = RemoteCallError("HTTP 500")
    failing = OnboardingService(OWNER, data, FakeDevice(_people(1)), FakeIntelligence(labels=Decoded([])))
    summary, message = run_import_safely(failing)
    assert summary is None
    assert message == "Failed to import contacts: HTTP 500"


def test_skip_updates_existing_preferences() -> None:
    data = FakeDataClient()
    data.preferences[OWNER] = UserPreferences(user_id=OWNER)
    service = OnboardingService(OWNER, data, FakeDevice(), FakeIntelligence())

    assert service.check_status() is False
    saved = service.skip_onboarding()

    assert saved.has_completed_onboarding is True
    assert "update_user_preferences" in data.calls
    assert "create_user_preferences" not in data.calls


def test_batch_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        OnboardingService(OWNER, FakeDataClient(), FakeDevice(), FakeIntelligence(), batch_size=0)


def test_import_logs_summary_at_info_level(caplog) -> None:
    caplog.set_level(logging.INFO)
    data = FakeDataClient()
    service = OnboardingService(OWNER, data, FakeDevice(_people(1)), FakeIntelligence(labels=Decoded([])))

    summary, message = run_import_safely(service)

    assert message is None
    assert summary is not None and summary.created == 1
    finished = [record for record in caplog.records if record.getMessage() == "onboarding_import_finished"]
    assert finished[0].contacts_created == 1
    assert finished[0].skipped == 0


def test_import_and_skip_refuse_to_run_while_busy() -> None:
    busy = threading.Lock()
    data = FakeDataClient()
    service = OnboardingService(
        OWNER, data, FakeDevice(_people(2)), FakeIntelligence(labels=Decoded([])), busy=busy
    )

    busy.acquire()
    try:
        with pytest.raises(BusyError):
            run_import_safely(service)
        with pytest.raises(BusyError):
            service.skip_onboarding()
    finally:
        busy.release()

    assert data.contacts == {}
    assert OWNER not in data.preferences
    assert service.import_contacts().created == 2
