from __future__ import annotations

import json
import logging
import uuid
from typing import Any, TypeVar

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from noteai.core.config import Settings
from noteai.core.errors import LLMRequestError
from noteai.domain.records import Contact, Label
from noteai.services.llm.results import (
    CommandKind,
    DecodeFailure,
    DecodeResult,
    Decoded,
    ExtractedContact,
    ParsedCommand,
    SearchMatch,
)
from noteai.services.prompts import render_prompt

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class _ContactPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    email: str | None = None
    description: str | None = None
    suggested_labels: list[str] = Field(alias="suggestedLabels")


class _SearchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    matched_ids: list[str] = Field(alias="matchedIds")
    explanation: str | None = None


class _LabelsPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    labels: list[str]


class _CommandPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    command_type: CommandKind = Field(alias="commandType")
    label_name: str | None = Field(default=None, alias="labelName")
    explanation: str | None = None


def _extract_json(text: str) -> dict[str, Any] | list[Any] | None:
    raw = text.strip()
    if not raw:
        return None

    candidates = [raw]
    for opener, closer in (("{", "}"), ("[", "]")):
        start = raw.find(opener)
        end = raw.rfind(closer)
        if start >= 0 and end > start:
            candidates.append(raw[start : end + 1])

    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(payload, (dict, list)):
            return payload
    return None


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _dedupe_label_names(names: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        cleaned = name.strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def _format_label_names(names: list[str]) -> str:
    return ", ".join(names) if names else "(none yet)"


def _contacts_block(contacts: list[Contact]) -> str:
    entries = []
    for contact in contacts:
        entries.append(
            "\n".join(
                [
                    f"ID: {contact.id}",
                    f"Name: {contact.name or 'Unknown'}",
                    f"Labels: {', '.join(contact.label_names())}",
                    f"Description: {contact.text_description}",
                ]
            )
        )
    return "\n\n".join(entries)


class LanguageModelClient:
    """Prompted chat-completion calls with strictly decoded JSON answers."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        temperature: float = 0.2,
        label_temperature: float = 0.3,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.label_temperature = label_temperature
        self._api_key = api_key
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "LanguageModelClient":
        if settings.llm_provider.strip().lower() != "openai":
            raise RuntimeError("The language-model client currently supports only LLM_PROVIDER=openai.")
        return cls(
            api_key=settings.resolved_openai_api_key(),
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            label_temperature=settings.llm_label_temperature,
        )

    def _openai(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise LLMRequestError("OPENAI_API_KEY is not configured")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def _complete_json(self, *, operation: str, system: str, user: str, temperature: float) -> str:
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        try:
            response = self._openai().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            logger.exception("llm_request_failed", extra={"operation": operation, "llm_model": self.model})
            raise LLMRequestError(f"AI request failed: {exc}") from exc

        if not response.choices:
            raise LLMRequestError("AI service returned no completion")
        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise LLMRequestError("AI service returned an empty completion")
        return content

    @staticmethod
    def _validate(operation: str, raw: str, model: type[PayloadT]) -> PayloadT | DecodeFailure:
        payload = _extract_json(raw)
        if not isinstance(payload, dict):
            logger.warning("llm_response_not_json_object", extra={"operation": operation})
            return DecodeFailure(operation=operation, reason="response is not a JSON object", raw=raw)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "llm_response_schema_mismatch",
                extra={"operation": operation, "errors": exc.error_count()},
            )
            return DecodeFailure(operation=operation, reason=f"unexpected response shape ({exc.error_count()} errors)", raw=raw)

    def extract_contact(self, text: str, existing_labels: list[str]) -> DecodeResult[ExtractedContact]:
        raw = self._complete_json(
            operation="extract_contact",
            system=render_prompt("extract_contact_system", existing_labels=_format_label_names(existing_labels)),
            user=text,
            temperature=self.temperature,
        )
        parsed = self._validate("extract_contact", raw, _ContactPayload)
        if isinstance(parsed, DecodeFailure):
            return parsed
        return Decoded(
            ExtractedContact(
                name=_clean_optional(parsed.name),
                phone_number=_clean_optional(parsed.phone_number),
                email=_clean_optional(parsed.email),
                # Falls back to the raw input.
                description=_clean_optional(parsed.description) or text,
                suggested_labels=_dedupe_label_names(parsed.suggested_labels),
            )
        )

    def semantic_search(self, query: str, contacts: list[Contact], labels: list[Label]) -> DecodeResult[SearchMatch]:
        raw = self._complete_json(
            operation="semantic_search",
            system=render_prompt("semantic_search_system"),
            user=render_prompt(
                "semantic_search_user",
                query=query,
                existing_labels=_format_label_names([label.name for label in labels]),
                contacts_block=_contacts_block(contacts),
            ),
            temperature=self.temperature,
        )
        parsed = self._validate("semantic_search", raw, _SearchPayload)
        if isinstance(parsed, DecodeFailure):
            return parsed

        matched: list[uuid.UUID] = []
        dropped = 0
        for value in parsed.matched_ids:
            try:
                matched.append(uuid.UUID(value))
            except ValueError:
                dropped += 1
        if dropped:
            logger.info("semantic_search_dropped_invalid_ids", extra={"dropped": dropped})
        return Decoded(SearchMatch(matched_ids=matched, explanation=_clean_optional(parsed.explanation)))

    def suggest_labels(self, description: str, existing_labels: list[str]) -> DecodeResult[list[str]]:
        raw = self._complete_json(
            operation="suggest_labels",
            system=render_prompt("suggest_labels_system", existing_labels=_format_label_names(existing_labels)),
            user=description,
            temperature=self.label_temperature,
        )
        payload = _extract_json(raw)
        if isinstance(payload, list):
            # Some models answer with a bare array despite the object response format.
            payload = {"labels": payload}
        if not isinstance(payload, dict):
            return DecodeFailure(operation="suggest_labels", reason="response is not JSON", raw=raw)
        try:
            parsed = _LabelsPayload.model_validate(payload)
        except ValidationError as exc:
            return DecodeFailure(
                operation="suggest_labels", reason=f"unexpected response shape ({exc.error_count()} errors)", raw=raw
            )
        return Decoded(_dedupe_label_names(parsed.labels))

    def parse_command(self, text: str, existing_labels: list[str]) -> DecodeResult[ParsedCommand]:
        raw = self._complete_json(
            operation="parse_command",
            system=render_prompt("parse_command_system", existing_labels=_format_label_names(existing_labels)),
            user=text,
            temperature=self.temperature,
        )
        parsed = self._validate("parse_command", raw, _CommandPayload)
        if isinstance(parsed, DecodeFailure):
            return parsed
        return Decoded(
            ParsedCommand(
                kind=parsed.command_type,
                label_name=_clean_optional(parsed.label_name),
                explanation=_clean_optional(parsed.explanation),
            )
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
