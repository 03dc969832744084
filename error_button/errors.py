"""Exception types raised by the error-button package."""

from __future__ import annotations


class ErrorButtonError(Exception):
    """Base class for all package errors."""


class CompletionError(ErrorButtonError):
    """The remote completion request failed.

    Covers transport failures, non-2xx responses and response bodies that do
    not carry ``choices[0].message.content``. ``str(exc)`` is the
    human-readable message shown to the user.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
