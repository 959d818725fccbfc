"""Domain-level contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from schemas import AccountProfile

from .account import Account


@dataclass(slots=True)
class CreateAccountInput:
    """Validated inputs required to create an account."""

    name: str
    email: str
    password_hash: str | None = None


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access/refresh token pair handed back after a successful login."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class ProviderLogin:
    """Result of an identity-provider login: the resolved account plus its tokens."""

    account: AccountProfile
    tokens: TokenPair


@dataclass(frozen=True, slots=True)
class VerifiedIdentity:
    """Identity asserted by a verified provider token."""

    email: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class ProviderTokens:
    """Tokens returned by the provider in exchange for an authorization code."""

    id_token: str
    access_token: str | None = None
    refresh_token: str | None = None


class AccountStore(Protocol):
    """Persistence port for account records.

    Implementations raise :class:`~auth_service.domain.errors.DuplicateEmailError`
    when the email uniqueness constraint rejects ``create`` and
    :class:`~auth_service.domain.errors.StoreError` for any other storage failure.
    """

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_id(self, account_id: int) -> Account | None: ...

    def create(self, payload: CreateAccountInput) -> Account: ...

    def set_refresh_token(self, account_id: int, token: str) -> None: ...


class IdentityProvider(Protocol):
    """Port for the third-party identity provider used by provider logins."""

    def build_authorization_url(self, state: str | None = None) -> str: ...

    def exchange_code(self, code: str) -> ProviderTokens: ...

    def verify_identity_token(self, token: str) -> VerifiedIdentity: ...
