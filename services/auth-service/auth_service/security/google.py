"""Google OpenID Connect adapter used for provider logins."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx
import jwt
from jwt.exceptions import PyJWKClientConnectionError

from ..config import Settings
from ..domain.contracts import ProviderTokens, VerifiedIdentity
from ..domain.errors import (
    ExchangeFailedError,
    InvalidIdentityTokenError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})
DEFAULT_SCOPES = ("openid", "email", "profile")


class GoogleIdentityVerifier:
    """Stateless Google OAuth/OIDC client: consent URL, code exchange, id_token checks.

    The HTTP client and JWKS client are injected so tests can substitute
    transports; :meth:`from_settings` builds production instances with the
    configured timeout applied to both.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: httpx.Client,
        jwks_client: jwt.PyJWKClient,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._http = http_client
        self._jwks = jwks_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleIdentityVerifier":
        timeout = settings.provider_timeout_seconds
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
            http_client=httpx.Client(timeout=timeout),
            jwks_client=jwt.PyJWKClient(GOOGLE_CERTS_URL, cache_keys=True, timeout=timeout),
        )

    def close(self) -> None:
        self._http.close()

    def build_authorization_url(self, state: str | None = None) -> str:
        """Return the consent URL requesting offline access and identity scopes."""
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(DEFAULT_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> ProviderTokens:
        """Trade an authorization code for provider tokens.

        Raises
        ------
        ExchangeFailedError
            Google rejected the code or returned no ``id_token``.
        ProviderUnavailableError
            The token endpoint timed out, was unreachable, or answered 5xx.
        """
        data = {
            "grant_type": "authorization_code",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "redirect_uri": self._redirect_uri,
            "code": code,
        }
        try:
            response = self._http.post(GOOGLE_TOKEN_URL, data=data)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(f"token endpoint unreachable: {exc!r}") from exc

        if response.status_code >= 500:
            raise ProviderUnavailableError(
                f"token endpoint returned {response.status_code}: {response.text}"
            )
        if response.is_error:
            raise ExchangeFailedError(
                f"token endpoint returned {response.status_code}: {response.text}"
            )

        try:
            body: Any = response.json()
        except ValueError as exc:
            raise ExchangeFailedError("token endpoint returned a non-JSON body") from exc
        if not isinstance(body, dict) or not body.get("id_token"):
            raise ExchangeFailedError("no id_token returned from Google")

        return ProviderTokens(
            id_token=body["id_token"],
            access_token=body.get("access_token"),
            refresh_token=body.get("refresh_token"),
        )

    def verify_identity_token(self, token: str) -> VerifiedIdentity:
        """Validate an id_token against Google's keys and the configured client id.

        Raises
        ------
        InvalidIdentityTokenError
            Signature, audience, issuer or expiry checks failed, or the token
            carries no usable email.
        ProviderUnavailableError
            Google's signing keys could not be fetched.
        """
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(token)
        except PyJWKClientConnectionError as exc:
            raise ProviderUnavailableError(f"unable to fetch Google signing keys: {exc}") from exc
        except jwt.PyJWTError as exc:
            raise InvalidIdentityTokenError(f"no signing key for token: {exc}") from exc

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._client_id,
                options={"require": ["exp", "iss", "aud"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidIdentityTokenError(f"id_token rejected: {exc}") from exc

        if payload.get("iss") not in GOOGLE_ISSUERS:
            raise InvalidIdentityTokenError(f"unexpected issuer {payload.get('iss')!r}")

        email = payload.get("email")
        if not isinstance(email, str) or not email:
            raise InvalidIdentityTokenError("id_token carries no email claim")
        if payload.get("email_verified") in (False, "false"):
            raise InvalidIdentityTokenError("Google reports the email as unverified")

        name = payload.get("name")
        return VerifiedIdentity(email=email, name=name if isinstance(name, str) and name else None)
