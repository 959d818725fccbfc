"""Authentication service orchestrating credentials, provider logins and token issuance."""

from __future__ import annotations

import logging
import secrets
from contextlib import contextmanager
from typing import Iterator

from email_validator import EmailNotValidError, validate_email

from schemas import AccountProfile

from .account import Account
from .contracts import (
    AccountStore,
    CreateAccountInput,
    IdentityProvider,
    ProviderLogin,
    TokenPair,
    VerifiedIdentity,
)
from .errors import (
    ConflictError,
    DuplicateEmailError,
    ExchangeFailedError,
    InternalError,
    InvalidIdentityTokenError,
    InvalidRequestError,
    ProviderUnavailableError,
    Reason,
    StoreError,
    UnauthorizedError,
    UpstreamError,
)
from ..security.passwords import PasswordHasher
from ..security.tokens import AccessTokenClaims, RefreshTokenClaims, TokenCodec

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 150
MIN_PASSWORD_LENGTH = 6


class AuthService:
    """Registration, password and provider logins, and refresh-token exchange.

    Each account holds at most one refresh token. Every login overwrites the
    stored value, and :meth:`refresh` only accepts the token that is currently
    stored, so issuing a new pair revokes the previous one.
    """

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
        identity_provider: IdentityProvider,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._store = store
        self._hasher = hasher
        self._codec = codec
        self._identity_provider = identity_provider

    def register(self, name: str, email: str, password: str) -> AccountProfile:
        """Create a password account and return its public projection."""
        name = name.strip()
        if not name or len(name) > MAX_NAME_LENGTH:
            raise InvalidRequestError("name must be between 1 and 100 characters")
        _require_email_shape(email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidRequestError("password shorter than 6 characters")

        with self._storage("register"):
            if self._store.find_by_email(email) is not None:
                raise ConflictError(Reason.EMAIL_TAKEN, "email already registered")
            password_hash = self._hasher.hash(password)
            try:
                account = self._store.create(
                    CreateAccountInput(name=name, email=email, password_hash=password_hash)
                )
            except DuplicateEmailError as exc:
                raise ConflictError(Reason.EMAIL_TAKEN, f"concurrent registration: {exc}") from exc

        logger.info("account %s registered", account.id)
        return _profile(account)

    def login(self, email: str, password: str) -> TokenPair:
        """Verify email/password credentials and issue a fresh token pair."""
        _require_email_shape(email)
        if not password:
            raise InvalidRequestError("password is required")

        with self._storage("login"):
            account = self._store.find_by_email(email)

        if account is None or not account.has_password:
            self._hasher.verify_dummy(password)
            raise UnauthorizedError(Reason.INVALID_CREDENTIALS, "no password account for email")
        if not self._hasher.verify(password, account.password_hash):
            raise UnauthorizedError(
                Reason.INVALID_CREDENTIALS, f"password mismatch for account {account.id}"
            )

        tokens = self._issue_tokens(account)
        logger.info("account %s logged in with password", account.id)
        return tokens

    def authorization_url(self, state: str | None = None) -> str:
        """Return the provider consent URL for the redirect flow."""
        return self._identity_provider.build_authorization_url(state)

    def login_with_identity_provider(
        self, *, code: str | None = None, id_token: str | None = None
    ) -> ProviderLogin:
        """Log in through the identity provider, creating the account on first use.

        Parameters
        ----------
        code:
            Authorization code from the redirect flow; exchanged for an id_token.
        id_token:
            Identity token submitted directly by a native or single-page client.

        Exactly one of the two must be given. Both paths converge on the same
        verified identity and the same find-or-create routine.
        """
        if bool(code) == bool(id_token):
            raise InvalidRequestError("exactly one of code or id_token is required")

        identity = self._verify_provider_identity(code=code, id_token=id_token)
        account = self._resolve_account(identity)
        tokens = self._issue_tokens(account)
        logger.info("account %s logged in through identity provider", account.id)
        return ProviderLogin(account=_profile(account), tokens=tokens)

    def refresh(self, refresh_token: str) -> str:
        """Exchange the currently stored refresh token for a new access token."""
        if not refresh_token or not refresh_token.strip():
            raise InvalidRequestError("refresh token is required")

        claims = self._codec.verify_refresh(refresh_token)
        if claims is None:
            raise UnauthorizedError(Reason.INVALID_REFRESH_TOKEN, "refresh token failed verification")

        with self._storage("refresh"):
            account = self._store.find_by_id(claims.subject)

        if account is None or not _same_token(account.refresh_token, refresh_token):
            raise UnauthorizedError(
                Reason.REVOKED_OR_STALE,
                f"refresh token for account {claims.subject} is not the stored one",
            )
        return self._codec.sign_access(AccessTokenClaims(subject=account.id, email=account.email))

    def _verify_provider_identity(
        self, *, code: str | None, id_token: str | None
    ) -> VerifiedIdentity:
        try:
            if code:
                id_token = self._identity_provider.exchange_code(code).id_token
            return self._identity_provider.verify_identity_token(id_token or "")
        except InvalidIdentityTokenError as exc:
            logger.warning("identity token rejected: %s", exc)
            raise UnauthorizedError(Reason.INVALID_IDENTITY_TOKEN, str(exc)) from exc
        except ExchangeFailedError as exc:
            logger.warning("authorization code exchange failed: %s", exc)
            raise UpstreamError(Reason.EXCHANGE_FAILED, str(exc), status_code=400) from exc
        except ProviderUnavailableError as exc:
            logger.error("identity provider unavailable: %s", exc)
            raise UpstreamError(Reason.PROVIDER_UNAVAILABLE, str(exc), status_code=500) from exc

    def _resolve_account(self, identity: VerifiedIdentity) -> Account:
        """Find the account for a verified identity or create a provider-only one."""
        with self._storage("resolve provider account"):
            account = self._store.find_by_email(identity.email)
            if account is not None:
                return account

            name = (identity.name or identity.email.split("@", 1)[0])[:MAX_NAME_LENGTH]
            try:
                account = self._store.create(CreateAccountInput(name=name, email=identity.email))
            except DuplicateEmailError:
                # Another first login for this email won the insert.
                account = self._store.find_by_email(identity.email)
                if account is None:
                    raise InternalError(
                        Reason.STORE_FAILURE, "account vanished after duplicate insert"
                    ) from None
                return account

        logger.info("account %s created from identity provider", account.id)
        return account

    def _issue_tokens(self, account: Account) -> TokenPair:
        access_token = self._codec.sign_access(
            AccessTokenClaims(subject=account.id, email=account.email)
        )
        refresh_token = self._codec.sign_refresh(RefreshTokenClaims(subject=account.id))
        with self._storage("persist refresh token"):
            self._store.set_refresh_token(account.id, refresh_token)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    @contextmanager
    def _storage(self, operation: str) -> Iterator[None]:
        """Map storage failures other than duplicate emails to :class:`InternalError`."""
        try:
            yield
        except DuplicateEmailError as exc:
            logger.exception("unexpected duplicate email during %s", operation)
            raise InternalError(Reason.STORE_FAILURE, f"{operation}: {exc}") from exc
        except StoreError as exc:
            logger.exception("account store failed during %s", operation)
            raise InternalError(Reason.STORE_FAILURE, f"{operation}: {exc}") from exc


def _require_email_shape(email: str) -> None:
    if not email or len(email) > MAX_EMAIL_LENGTH:
        raise InvalidRequestError("email must be between 1 and 150 characters")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidRequestError(f"invalid email: {exc}") from exc


def _same_token(stored: str | None, presented: str) -> bool:
    if stored is None:
        return False
    return secrets.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


def _profile(account: Account) -> AccountProfile:
    return AccountProfile(id=account.id, name=account.name, email=account.email)
