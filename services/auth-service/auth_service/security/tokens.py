"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any

import jwt

from ..config import Settings

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """Claims carried by a short-lived access token."""

    subject: int
    email: str


@dataclass(frozen=True, slots=True)
class RefreshTokenClaims:
    """Claims carried by a long-lived refresh token."""

    subject: int


@dataclass(frozen=True, slots=True)
class TokenContext:
    """Signing secret and lifetime for one kind of token."""

    secret: str
    ttl_seconds: int


class TokenCodec:
    """Signs and verifies access and refresh tokens with independent secrets."""

    def __init__(self, access: TokenContext, refresh: TokenContext) -> None:
        self._access = access
        self._refresh = refresh

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        """Build a codec from the access/refresh secrets and TTLs in ``settings``."""
        return cls(
            access=TokenContext(settings.jwt_secret, settings.access_token_ttl_seconds),
            refresh=TokenContext(settings.refresh_secret, settings.refresh_token_ttl_seconds),
        )

    @property
    def access_ttl_seconds(self) -> int:
        return self._access.ttl_seconds

    def sign_access(self, claims: AccessTokenClaims) -> str:
        """Create a signed access token for ``claims``.

        Parameters
        ----------
        claims:
            Account identifier and email to embed; the identifier is written to
            ``sub`` as a decimal string.

        Returns
        -------
        str
            The encoded JWT.
        """
        return _sign(self._access, {"sub": str(claims.subject), "email": claims.email})

    def sign_refresh(self, claims: RefreshTokenClaims) -> str:
        """Create a signed refresh token for ``claims``."""
        return _sign(self._refresh, {"sub": str(claims.subject)})

    def verify_access(self, token: str) -> AccessTokenClaims | None:
        """Return the claims of a valid access token, or ``None`` when it is not.

        A token is rejected when its signature does not match, it cannot be
        decoded, it has expired, its subject is not an integer, or it carries
        no email.
        """
        payload = _decode(self._access, token)
        if payload is None:
            return None
        subject = _parse_subject(payload.get("sub"))
        email = payload.get("email")
        if subject is None or not isinstance(email, str) or not email:
            logger.debug("access token rejected: missing typed claims")
            return None
        return AccessTokenClaims(subject=subject, email=email)

    def verify_refresh(self, token: str) -> RefreshTokenClaims | None:
        """Return the claims of a valid refresh token, or ``None`` when it is not."""
        payload = _decode(self._refresh, token)
        if payload is None:
            return None
        subject = _parse_subject(payload.get("sub"))
        if subject is None:
            logger.debug("refresh token rejected: subject is not an integer")
            return None
        return RefreshTokenClaims(subject=subject)


def _sign(context: TokenContext, claims: dict[str, Any]) -> str:
    now = int(time.time())
    payload: dict[str, Any] = {
        **claims,
        "iat": now,
        "exp": now + context.ttl_seconds,
        # Keeps two tokens minted in the same second for the same account distinct.
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, context.secret, algorithm=_ALGORITHM)


def _decode(context: TokenContext, token: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(
            token,
            context.secret,
            algorithms=[_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as exc:
        logger.debug("token rejected: %s", exc)
        return None


def _parse_subject(value: Any) -> int | None:
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    return None
