from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import ClassVar, Generic, Literal, TypeVar

T = TypeVar("T")

CommandKind = Literal["create_label", "delete_label", "other"]


@dataclass(frozen=True)
class Decoded(Generic[T]):
    value: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class DecodeFailure:
    """The model answered, but not in the shape the operation requires."""

    operation: str
    reason: str
    raw: str = ""
    ok: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return f"Could not understand the AI response for {self.operation}: {self.reason}"


DecodeResult = Decoded[T] | DecodeFailure


@dataclass(frozen=True)
class ExtractedContact:
    description: str
    name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    suggested_labels: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SearchMatch:
    matched_ids: list[uuid.UUID]
    explanation: str | None = None


@dataclass(frozen=True)
class ParsedCommand:
    kind: CommandKind
    label_name: str | None = None
    explanation: str | None = None
