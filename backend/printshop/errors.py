"""
Service error taxonomy.

Every service raises a ServiceError subclass; routes turn it into a JSON body
with the matching HTTP status. Validation and authorization errors are raised
before any mutation, so the session never holds partial state when they
surface.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected, client-visible failures."""

    kind = "INTERNAL"
    status_code = 500

    def __init__(self, code: str, message: str | None = None, details: dict | None = None):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {
            "error": self.code,
            "kind": self.kind,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError):
    """Malformed or missing input."""
    kind = "VALIDATION"
    status_code = 400


class StateConflictError(ServiceError):
    """Illegal state transition."""
    kind = "STATE_CONFLICT"
    status_code = 409


class AuthorizationError(ServiceError):
    """Role or branch scope violation."""
    kind = "AUTHORIZATION"
    status_code = 403


class AccountBlockedError(ServiceError):
    """Caller is locked out of redemption and checkout."""
    kind = "ACCOUNT_BLOCKED"
    status_code = 403


class InsufficientFundsError(ServiceError):
    kind = "INSUFFICIENT_FUNDS"
    status_code = 400


class NotFoundError(ServiceError):
    kind = "NOT_FOUND"
    status_code = 404
