"""Error kinds raised by the chapter pipeline.

Every ``PagesyError`` carries the HTTP status it maps to; ``pagesy.main``
renders them as ``{"error": <message>}``. The worker never lets these escape:
each one ends in an ack or a nack.
"""
from __future__ import annotations


class PagesyError(Exception):
    status_code = 500
    default_message = "internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class BadRequest(PagesyError):
    status_code = 400
    default_message = "bad request"


class BookNotFound(PagesyError):
    # also raised when the book exists but the caller is not its author
    status_code = 404
    default_message = "book not found"


class ChapterNotFound(PagesyError):
    status_code = 404
    default_message = "chapter not found"


class NotInLibrary(PagesyError):
    status_code = 404
    default_message = "book not in library"


class ChapterAlreadyExists(PagesyError):
    status_code = 409
    default_message = "chapter number already exists for this book"


class TransientError(PagesyError):
    """DB timeout, broker outage, interrupted consume. Safe to retry."""


class PoisonMessage(PagesyError):
    """Queue envelope that can never be processed."""

    status_code = 400
    default_message = "undecodable queue envelope"


__all__ = [
    "PagesyError",
    "BadRequest",
    "BookNotFound",
    "ChapterNotFound",
    "NotInLibrary",
    "ChapterAlreadyExists",
    "TransientError",
    "PoisonMessage",
]
