"""
Error taxonomy for the fieldcollect data-access layer.

``NotFound`` is recoverable by the caller (e.g. show an empty state).
``StorageError`` wraps failures of the underlying store and is surfaced
unchanged for the caller to retry or report.
"""

from typing import Optional


class DataAccessError(Exception):
    """Base exception for data-access errors."""
    pass


class NotFound(DataAccessError):
    """Raised when a requested root record does not exist."""

    def __init__(self, entity: str, entity_id: str, message: Optional[str] = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} with id {entity_id} not found")


class StorageError(DataAccessError):
    """Raised on I/O, corruption or timeout failures from the persistence layer."""
    pass
