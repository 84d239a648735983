"""Exception hierarchy shared by the resolver, stores and CLI."""
from __future__ import annotations

from typing import Optional


class CivicMapError(Exception):
    """Base class for every error raised by civicmap."""


class StorageError(CivicMapError):
    """Raised when the attachment store cannot satisfy a request."""

    def __init__(self, message: str, *, path: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.path = path
        self.status = status


class StorageObjectError(StorageError):
    """A single object could not be served (missing, forbidden, bad path)."""


class StorageUnavailableError(StorageError):
    """The store itself is unreachable or failing."""


class IssueStoreError(CivicMapError):
    """Raised when the issue data store rejects or fails a request."""


class PermissionDeniedError(CivicMapError):
    """The current viewer is not allowed to perform the operation."""


class UnsupportedReferenceError(CivicMapError, TypeError):
    """An attachment field holds a value shape that cannot be normalised."""
