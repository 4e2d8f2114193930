from __future__ import annotations


class NoteAIError(Exception):
    """Base class for failures that are reported back to the user as a message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RemoteCallError(NoteAIError):
    """Network or HTTP failure talking to the data, auth or store backends."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DuplicateLabelError(RemoteCallError):
    pass


class LLMRequestError(NoteAIError):
    """The hosted model call failed or produced no completion."""


class ContactsAccessDenied(NoteAIError):
    pass


class StoreError(NoteAIError):
    pass


class ValidationFailure(NoteAIError):
    pass


class BusyError(NoteAIError):
    pass


class AuthenticationError(NoteAIError):
    pass


class DeviceContactsError(NoteAIError):
    pass
