class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class SessionClosedError(DomainError):
    """Raised when a write targets a finalized or no longer editable session."""


class ConflictError(DomainError):
    """Raised when a concurrent write on the same key could not be resolved.

    Callers may retry.
    """
