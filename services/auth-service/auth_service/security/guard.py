"""Request-time bearer token verification."""

from __future__ import annotations

from dataclasses import dataclass

from ..domain.errors import Reason, UnauthorizedError
from .tokens import TokenCodec

_SCHEME = "Bearer"


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated caller, valid for the lifetime of a single request."""

    id: int
    email: str


class AuthGuard:
    """Turns an ``Authorization`` header into an :class:`Identity`."""

    def __init__(self, codec: TokenCodec) -> None:
        self._codec = codec

    def authenticate(self, header_value: str | None) -> Identity:
        """Return the caller identity or raise :class:`UnauthorizedError`.

        The header must read exactly ``Bearer <token>``. Any other shape is
        reported as a missing token; a token that fails verification is
        reported as invalid.
        """
        token = _extract_bearer(header_value)
        if token is None:
            raise UnauthorizedError(Reason.MISSING_TOKEN, "authorization header absent or malformed")
        claims = self._codec.verify_access(token)
        if claims is None:
            raise UnauthorizedError(Reason.INVALID_TOKEN, "access token failed verification")
        return Identity(id=claims.subject, email=claims.email)


def _extract_bearer(header_value: str | None) -> str | None:
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme != _SCHEME or not token or " " in token:
        return None
    return token
