from __future__ import annotations

from noteai.services.intent.router import (
    INPUT_MODES,
    ContactsWorkspace,
    InputMode,
    OperationResult,
    substring_matches,
)

__all__ = ["INPUT_MODES", "ContactsWorkspace", "InputMode", "OperationResult", "substring_matches"]
