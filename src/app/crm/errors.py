"""Domain exceptions raised by the CRM service layer.

The API layer maps each class to an HTTP status in
src/app/api/errors.py; the service layer never builds HTTP responses.
"""

from __future__ import annotations

from typing import Any


class CrmError(Exception):
    """Base class for CRM failures. Unmapped subclasses surface as 500."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(CrmError):
    """The addressed record does not exist."""


class ValidationFailed(CrmError):
    """Input is missing or malformed; nothing was written."""


class AuthorizationError(CrmError):
    """The caller's role does not permit the operation."""


class ConflictError(CrmError):
    """The write collides with existing state (duplicate name, invalid transition)."""


class AuthenticationFailed(CrmError):
    """Credentials were missing or did not match."""
