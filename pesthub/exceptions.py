"""Custom exception hierarchy for PestHub.

Provides structured error types that the centralized error handler
translates into consistent JSON responses. Every authorization outcome
maps to exactly one status code.
"""

from __future__ import annotations


class PestHubError(Exception):
    """Base exception for all PestHub errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class InternalError(PestHubError):
    """Downstream (identity or storage) failure or unexpected condition."""

    status_code = 500
    error_type = "internal_error"


class Unauthenticated(PestHubError):
    """No valid session accompanied the request."""

    status_code = 401
    error_type = "unauthenticated"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class Forbidden(PestHubError):
    """Caller is authenticated but lacks the capability or role."""

    status_code = 403
    error_type = "forbidden"

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class InvalidSelfTarget(PestHubError):
    """Caller targeted their own account for a destructive operation."""

    status_code = 400
    error_type = "invalid_self_target"

    def __init__(self, message: str = "You cannot delete your own account") -> None:
        super().__init__(message)


class ProtectedAccount(PestHubError):
    """Target is the System Administrator account."""

    status_code = 403
    error_type = "protected_account"

    def __init__(
        self, message: str = "The System Administrator account cannot be deleted"
    ) -> None:
        super().__init__(message)


class NotFound(PestHubError):
    """Requested resource was not found."""

    status_code = 404
    error_type = "not_found"


class ProfileNotFound(NotFound):
    error_type = "profile_not_found"

    def __init__(self, message: str = "User profile not found") -> None:
        super().__init__(message)


class TargetNotFound(NotFound):
    error_type = "target_not_found"

    def __init__(self, message: str = "Target user not found") -> None:
        super().__init__(message)


class TokenNotFound(NotFound):
    error_type = "token_not_found"

    def __init__(self, message: str = "Token not found") -> None:
        super().__init__(message)


class InvalidInput(PestHubError):
    """Input validation failure (bad email, missing field)."""

    status_code = 400
    error_type = "invalid_input"


class Conflict(PestHubError):
    """Duplicate resource, e.g. an email that is already registered."""

    status_code = 409
    error_type = "conflict"


class Expired(PestHubError):
    """Share token has lapsed."""

    status_code = 410
    error_type = "expired"

    def __init__(self, message: str = "This link has expired") -> None:
        super().__init__(message)


class Revoked(PestHubError):
    """Share token was revoked."""

    status_code = 410
    error_type = "revoked"

    def __init__(self, message: str = "Invalid or revoked link") -> None:
        super().__init__(message)
