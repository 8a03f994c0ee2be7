"""
Exceptions raised by the back-office controllers and collaborators.
"""

from __future__ import annotations

from typing import Iterable, Optional


class BackofficeError(Exception):
    """Base class for every error the service surfaces to an operator."""


class ValidationError(BackofficeError):
    """Required input is missing; raised before any remote call."""

    def __init__(self, missing: Iterable[str], message: Optional[str] = None):
        self.missing = list(missing)
        super().__init__(
            message or "Please fill in all required fields: " + ", ".join(self.missing)
        )


class StoreError(BackofficeError):
    """A remote read or write failed (connectivity, permission, not found)."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(message)


class IdentityConflictError(BackofficeError):
    """Account creation failed because the e-mail is already registered."""


class NotFoundError(BackofficeError):
    """A mutation targets a record that is not loaded or no longer exists."""


class CacheError(BackofficeError):
    """The local cache backend could not be read or written."""
