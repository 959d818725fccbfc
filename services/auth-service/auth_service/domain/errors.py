"""Error taxonomy for the authentication service.

Two families live here. Component failures (:class:`StoreError`,
:class:`IdentityProviderError` and their subclasses) are raised by the
account store and the identity provider adapter. :class:`AuthService`
translates every one of them into an :class:`AuthError`, which is the only
family that crosses the service boundary. Each ``AuthError`` carries a
:class:`Reason`, an HTTP status and a fixed client-facing message; the
optional ``detail`` is for server-side logs only.
"""

from __future__ import annotations

from enum import Enum


class Reason(str, Enum):
    """Why an operation failed; selects the fixed client-facing message."""

    INVALID_PAYLOAD = "invalid_payload"
    EMAIL_TAKEN = "email_taken"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    REVOKED_OR_STALE = "revoked_or_stale"
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    INVALID_IDENTITY_TOKEN = "invalid_identity_token"
    EXCHANGE_FAILED = "exchange_failed"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    STORE_FAILURE = "store_failure"


PUBLIC_MESSAGES: dict[Reason, str] = {
    Reason.INVALID_PAYLOAD: "Invalid payload",
    Reason.EMAIL_TAKEN: "Email already registered",
    Reason.INVALID_CREDENTIALS: "Invalid credentials",
    Reason.INVALID_REFRESH_TOKEN: "Invalid refresh token",
    Reason.REVOKED_OR_STALE: "Refresh token is invalid or has been revoked",
    Reason.MISSING_TOKEN: "Missing token",
    Reason.INVALID_TOKEN: "Invalid token",
    Reason.INVALID_IDENTITY_TOKEN: "Invalid Google id_token",
    Reason.EXCHANGE_FAILED: "Google OAuth error",
    Reason.PROVIDER_UNAVAILABLE: "Google OAuth error",
    Reason.STORE_FAILURE: "Internal server error",
}


class AuthError(Exception):
    """Base class for failures surfaced by the service to the HTTP layer."""

    status_code: int = 500

    def __init__(self, reason: Reason, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(detail or reason.value)

    @property
    def public_message(self) -> str:
        return PUBLIC_MESSAGES[self.reason]


class InvalidRequestError(AuthError):
    """Malformed or out-of-range input (400)."""

    status_code = 400

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(Reason.INVALID_PAYLOAD, detail)


class ConflictError(AuthError):
    """The request collides with existing state, such as a taken email (409)."""

    status_code = 409


class UnauthorizedError(AuthError):
    """Credentials or tokens were rejected (401)."""

    status_code = 401


class UpstreamError(AuthError):
    """Identity provider failure; 400 when the caller's code was bad, 500 otherwise."""

    def __init__(self, reason: Reason, detail: str | None = None, *, status_code: int = 500) -> None:
        super().__init__(reason, detail)
        self.status_code = status_code


class InternalError(AuthError):
    """Storage or another internal dependency failed (500)."""

    status_code = 500


class StoreError(Exception):
    """Raised by account stores when the underlying storage fails."""


class DuplicateEmailError(StoreError):
    """Raised when the email uniqueness constraint rejects an insert."""


class IdentityProviderError(Exception):
    """Base class for identity provider adapter failures."""


class ExchangeFailedError(IdentityProviderError):
    """The provider refused the authorization code or returned no identity token."""


class InvalidIdentityTokenError(IdentityProviderError):
    """The identity token failed signature or claim verification."""


class ProviderUnavailableError(IdentityProviderError):
    """The provider could not be reached within the configured timeout."""
