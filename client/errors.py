"""
Errors reported by the gateway. They never escape a repository: every public
operation hands them back inside a `Result`.
"""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class AuthError(GatewayError):
    """No session, an ended session, or the backend rejected the credentials."""


class ValidationError(GatewayError):
    """Malformed or constraint-violating input."""


class NotFoundError(GatewayError):
    """The referenced record, table or bucket does not exist for this user."""


class StorageError(GatewayError):
    """A binary upload failed (quota, permission, storage outage)."""


class StoreConnectionError(GatewayError):
    """The backend could not be reached."""


class RemoteError(GatewayError):
    """A remote procedure failed; `message` is the collaborator's text as-is."""


def describe_failure(action: str, error: Optional[GatewayError] = None) -> str:
    """
    User-facing notification text for a failed operation.

    Remote procedure errors are already written for people and are shown
    verbatim; everything else gets the generic retry hint.
    """
    if isinstance(error, (RemoteError, ValidationError)) and error.message:
        return error.message
    return f"Failed to {action}. Please try again."
