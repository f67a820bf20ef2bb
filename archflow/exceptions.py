"""Exceptions raised by the submission and document services.

Every failure path in the services raises one of these. The HTTP layer maps
them onto status codes in :mod:`archflow.errors`; nothing here knows about
HTTP beyond the suggested ``status_code``.
"""

from typing import Any


class CoreError(Exception):
    """Base class for all domain failures."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(CoreError):
    """A referenced entity does not exist."""

    code = "not_found"
    status_code = 404


class ValidationError(CoreError):
    """Caller input is malformed or incomplete.

    ``details`` is a list of ``{"field": ..., "message": ...}`` entries, one per
    problem found, so callers can fix everything in one round trip.
    """

    code = "validation_error"
    status_code = 422


class IncompleteSubmissionError(CoreError):
    """A submission lacks the documents its category requires."""

    code = "incomplete_submission"
    status_code = 422


class InvalidStateTransitionError(CoreError):
    """The requested transition is not allowed from the current state."""

    code = "invalid_state_transition"
    status_code = 409


class InvalidStepStateError(CoreError):
    """A workflow step cannot be acted on in its current state."""

    code = "invalid_step_state"
    status_code = 409


class ConcurrentModificationError(CoreError):
    """The stored row changed between read and write; reload and retry."""

    code = "concurrent_modification"
    status_code = 409


class OperationTimeoutError(CoreError, TimeoutError):
    """An external call exceeded the caller-supplied timeout."""

    code = "timeout"
    status_code = 504


class AuthorityGatewayError(CoreError):
    """The authority API could not be reached or answered nonsense."""

    code = "authority_gateway_error"
    status_code = 502


class VersionNotFoundError(NotFoundError):
    """The version does not exist or belongs to another document."""

    code = "version_not_found"


class ShareExpiredError(CoreError):
    code = "share_expired"
    status_code = 410


class ShareRevokedError(CoreError):
    code = "share_revoked"
    status_code = 410


class PasswordRequiredError(CoreError):
    code = "password_required"
    status_code = 401
