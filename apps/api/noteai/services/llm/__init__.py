from __future__ import annotations

from noteai.services.llm.client import LanguageModelClient
from noteai.services.llm.results import (
    DecodeFailure,
    DecodeResult,
    Decoded,
    ExtractedContact,
    ParsedCommand,
    SearchMatch,
)

__all__ = [
    "LanguageModelClient",
    "DecodeFailure",
    "DecodeResult",
    "Decoded",
    "ExtractedContact",
    "ParsedCommand",
    "SearchMatch",
]
