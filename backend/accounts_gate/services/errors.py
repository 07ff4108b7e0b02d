"""Authentication, authorization and admission errors.

Every error carries the HTTP status, the machine-readable code and the client
message it maps to. The API layer renders them as
``{"success": false, "message": ..., "code": ..., **context}``.
"""

from typing import Any


class AuthError(Exception):
    """Base error for every gate in the request pipeline."""

    status_code: int = 401
    code: str = "AUTH_ERROR"
    message: str = "Authentication error"

    def __init__(self, message: str | None = None, *, code: str | None = None, **context: Any):
        self.message = message or self.message
        if code is not None:
            self.code = code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Render the client-facing error body."""
        return {"success": False, "message": self.message, "code": self.code, **self.context}


# --- Authentication (401) ---


class AuthenticationError(AuthError):
    """The request could not be tied to a live account."""

    status_code = 401


class TokenMissingError(AuthenticationError):
    code = "TOKEN_MISSING"
    message = "Access token required"


class TokenMalformedError(AuthenticationError):
    """Token is not decodable, or lacks a subject or issue time."""

    code = "TOKEN_INVALID"
    message = "Invalid token"


class TokenSignatureError(TokenMalformedError):
    """Token integrity check failed."""

    message = "Invalid token signature"


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"
    message = "Token expired"


class TokenNotYetActiveError(AuthenticationError):
    code = "TOKEN_NOT_ACTIVE"
    message = "Token not active yet"


class TokenRevokedError(AuthenticationError):
    code = "TOKEN_REVOKED"
    message = "Token has been revoked"


class AccountNotFoundError(AuthenticationError):
    code = "USER_NOT_FOUND"
    message = "Invalid token - user not found"


class AccountDeactivatedError(AuthenticationError):
    code = "ACCOUNT_DEACTIVATED"
    message = "Account is deactivated"


class CredentialStaleError(AuthenticationError):
    """Token was issued before the account's last password change."""

    code = "TOKEN_OUTDATED"
    message = "Token invalid due to password change"


class UnauthenticatedError(AuthenticationError):
    """An authorization check ran without a resolved account."""

    code = "AUTH_REQUIRED"
    message = "Authentication required"


# --- Authorization (403) ---


class AuthorizationError(AuthError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class ForbiddenError(AuthorizationError):
    code = "INSUFFICIENT_PERMISSIONS"
    message = "Insufficient permissions"


class AccessDeniedError(ForbiddenError):
    code = "ACCESS_DENIED"
    message = "Access denied - can only access own resources or admin required"


class IPBlockedError(AuthorizationError):
    code = "IP_BLOCKED"
    message = "Access denied from this IP address"


# --- Admission (429) ---


class RateLimitedError(AuthError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Too many requests, please try again later"

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: int,
        code: str | None = None,
        **context: Any,
    ):
        super().__init__(message, code=code, retry_after=retry_after, **context)
        self.retry_after = retry_after


# --- Internal (500) ---


class InternalAuthError(AuthError):
    """Unexpected failure while authenticating. Details stay in the server log."""

    status_code = 500
    code = "AUTH_ERROR"
    message = "Authentication error"
