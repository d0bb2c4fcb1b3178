"""
Error taxonomy shared by the repository, scheduler, storage and record codec.

Every error carries the offending entry id and/or field name when known so
the caller can correct the input. Nothing here is retried automatically.
"""
from __future__ import annotations


class PrepDeckError(Exception):
    """Base class for all PrepDeck errors."""

    def __init__(
        self,
        message: str,
        *,
        entry_id: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entry_id = entry_id
        self.field = field

    def __str__(self) -> str:
        return self.message


class ValidationError(PrepDeckError, ValueError):
    """Malformed or missing fields on add, update or import."""


class DuplicateIdError(PrepDeckError):
    """An entry with the same id already exists."""


class NotFoundError(PrepDeckError):
    """No entry with the requested id."""


class StorageError(PrepDeckError):
    """I/O failure while persisting or loading entries."""
