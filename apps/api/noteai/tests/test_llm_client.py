from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from noteai.core.errors import LLMRequestError
from noteai.domain.records import Contact, Label
from noteai.services.llm import DecodeFailure, Decoded, LanguageModelClient


def _client_returning(monkeypatch, raw: str) -> tuple[LanguageModelClient, list[dict]]:
    client = LanguageModelClient(api_key="test-key", model="gpt-4o")
    calls: list[dict] = []

    def fake_complete_json(**kwargs) -> str:
        calls.append(kwargs)
        return raw

    monkeypatch.setattr(client, "_complete_json", fake_complete_json)
    return client, calls


def test_extract_contact_normalises_fields(monkeypatch) -> None:
    client, calls = _client_returning(
        monkeypatch,
        '{"name": " Dana Kim ", "phoneNumber": "", "email": null, "description": "Angel investor", '
        '"suggestedLabels": ["Investor", "investor", " Startups "]}',
    )

    result = client.extract_contact("Dana Kim, angel investor", ["Work"])

    assert isinstance(result, Decoded)
    assert result.value.name == "Dana Kim"
    assert result.value.phone_number is None
    assert result.value.email is None
    assert result.value.description == "Angel investor"
    assert result.value.suggested_labels == ["Investor", "Startups"]
    assert "Available labels: Work" in calls[0]["system"]
    assert calls[0]["user"] == "Dana Kim, angel investor"
    assert calls[0]["temperature"] == 0.2


def test_extract_contact_falls_back_to_raw_input_for_description(monkeypatch) -> None:
    client, calls = _client_returning(monkeypatch, '{"name": "Eve", "description": null, "suggestedLabels": []}')

    result = client.extract_contact("Eve from book club", [])

    assert result.value.description == "Eve from book club"
    assert "Available labels: (none yet)" in calls[0]["system"]


def test_extract_contact_requires_suggested_labels(monkeypatch) -> None:
    client, _ = _client_returning(monkeypatch, '{"name": "Eve", "description": "x"}')

    result = client.extract_contact("Eve", [])

    assert isinstance(result, DecodeFailure)
    assert result.ok is False
    assert result.operation == "extract_contact"
    assert "Could not understand the AI response for extract_contact" in result.message


def test_extract_contact_reads_json_wrapped_in_prose(monkeypatch) -> None:
    client, _ = _client_returning(
        monkeypatch,
        'Here you go:\n```json\n{"name": "Gus", "suggestedLabels": ["Family"]}\n```',
    )

    result = client.extract_contact("my cousin Gus", [])

    assert isinstance(result, Decoded)
    assert result.value.name == "Gus"
    assert result.value.suggested_labels == ["Family"]


def test_non_json_answer_is_a_decode_failure(monkeypatch) -> None:
    client, _ = _client_returning(monkeypatch, "I cannot help with that.")

    result = client.parse_command("do something", [])

    assert isinstance(result, DecodeFailure)
    assert result.reason == "response is not a JSON object"


def test_semantic_search_drops_unparseable_ids(monkeypatch) -> None:
    owner = uuid.uuid4()
    contact = Contact(user_id=owner, name="Bob", text_description="Climber", labels=[])
    label = Label(user_id=owner, name="Sports")
    client, calls = _client_returning(
        monkeypatch,
        f'{{"matchedIds": ["{contact.id}", "not-a-uuid"], "explanation": "climbers"}}',
    )

    result = client.semantic_search("climbers", [contact], [label])

    assert result.value.matched_ids == [contact.id]
    assert result.value.explanation == "climbers"
    assert f"ID: {contact.id}" in calls[0]["user"]
    assert "Search query: climbers" in calls[0]["user"]
    assert "Available labels: Sports" in calls[0]["user"]


def test_suggest_labels_accepts_object_or_bare_array(monkeypatch) -> None:
    client, calls = _client_returning(monkeypatch, '{"labels": ["Work", "Tech"]}')
    assert client.suggest_labels("Engineer at Acme", ["Work"]).value == ["Work", "Tech"]
    assert calls[0]["temperature"] == 0.3

    client, _ = _client_returning(monkeypatch, '["Family"]')
    assert client.suggest_labels("My aunt", []).value == ["Family"]

    client, _ = _client_returning(monkeypatch, '{"tags": ["Family"]}')
    assert isinstance(client.suggest_labels("My aunt", []), DecodeFailure)


def test_parse_command_maps_fields(monkeypatch) -> None:
    client, _ = _client_returning(
        monkeypatch,
        '{"commandType": "delete_label", "labelName": " Old Friends ", "explanation": "Removes a label"}',
    )

    result = client.parse_command("delete label Old Friends", ["Old Friends"])

    assert result.value.kind == "delete_label"
    assert result.value.label_name == "Old Friends"


def test_parse_command_unknown_type_is_decode_failure(monkeypatch) -> None:
    client, _ = _client_returning(monkeypatch, '{"commandType": "rename_label", "labelName": "X"}')

    assert isinstance(client.parse_command("rename label X", []), DecodeFailure)


def test_complete_json_requests_json_object_format() -> None:
    captured: dict = {}

    def create(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content='{"labels": ["A"]}'))])

    fake_openai = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    client = LanguageModelClient(api_key="", model="gpt-4o-mini", client=fake_openai)  # type: ignore[arg-type]

    assert client.suggest_labels("x", []).value == ["A"]
    assert captured["model"] == "gpt-4o-mini"
    assert captured["response_format"] == {"type": "json_object"}
    assert captured["messages"][0]["role"] == "system"


def test_complete_json_without_choices_raises() -> None:
    fake_openai = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=lambda **_kwargs: SimpleNamespace(choices=[])))
    )
    client = LanguageModelClient(api_key="", model="gpt-4o", client=fake_openai)  # type: ignore[arg-type]

    with pytest.raises(LLMRequestError):
        client.extract_contact("x", [])


def test_missing_api_key_raises_request_error(monkeypatch) -> None:
    client = LanguageModelClient(api_key="", model="gpt-4o")

    with pytest.raises(LLMRequestError, match="OPENAI_API_KEY"):
        client.parse_command("create label X", [])


def test_from_settings_rejects_other_providers() -> None:
    settings = SimpleNamespace(
        llm_provider="anthropic",
        llm_model="x",
        llm_temperature=0.2,
        llm_label_temperature=0.3,
        resolved_openai_api_key=lambda: "",
    )

    with pytest.raises(RuntimeError):
        LanguageModelClient.from_settings(settings)  # type: ignore[arg-type]
