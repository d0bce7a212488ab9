"""Error taxonomy shared by the store, cache and HTTP layers.

Every condition a caller can observe derives from ``BookServiceError`` and
carries the HTTP status it maps to. ``CacheError`` sits outside that
hierarchy: cache failures are absorbed by the service and never reach a
client.
"""

from fastapi import status


class BookServiceError(Exception):
    """Base class for errors rendered to clients as ``{"error": message}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BookValidationError(BookServiceError):
    """Malformed body or a field that breaks a Book invariant."""

    status_code = status.HTTP_400_BAD_REQUEST


class BookNotFoundError(BookServiceError):
    """No book row matches the requested id."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Book not found") -> None:
        super().__init__(message)


class StoreError(BookServiceError):
    """Any relational store failure other than a missing row."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class CacheError(RuntimeError):
    """The cache backend could not serve a get, set or delete."""
