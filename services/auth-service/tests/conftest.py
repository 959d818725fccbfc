from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from auth_service.api import routes
from auth_service.domain.account import Account
from auth_service.domain.contracts import CreateAccountInput, ProviderTokens, VerifiedIdentity
from auth_service.domain.errors import (
    DuplicateEmailError,
    ExchangeFailedError,
    InvalidIdentityTokenError,
    StoreError,
)
from auth_service.domain.service import AuthService
from auth_service.security.guard import AuthGuard
from auth_service.security.passwords import PasswordHasher
from auth_service.security.tokens import TokenCodec, TokenContext

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"


class FakeAccountStore:
    """In-memory store mimicking the Postgres unique constraint on email."""

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._lock = threading.Lock()
        self._seq = 0
        self.broken = False

    def _check(self) -> None:
        if self.broken:
            raise StoreError("connection refused")

    def find_by_email(self, email: str) -> Account | None:
        self._check()
        with self._lock:
            for account in self._accounts.values():
                if account.email == email:
                    return replace(account)
        return None

    def find_by_id(self, account_id: int) -> Account | None:
        self._check()
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account else None

    def create(self, payload: CreateAccountInput) -> Account:
        self._check()
        with self._lock:
            if any(a.email == payload.email for a in self._accounts.values()):
                raise DuplicateEmailError('duplicate key value violates unique constraint "accounts_email_key"')
            self._seq += 1
            account = Account(
                id=self._seq,
                name=payload.name,
                email=payload.email,
                created_at=datetime.now(timezone.utc),
                password_hash=payload.password_hash,
            )
            self._accounts[account.id] = account
            return replace(account)

    def set_refresh_token(self, account_id: int, token: str) -> None:
        self._check()
        with self._lock:
            if account_id in self._accounts:
                self._accounts[account_id].refresh_token = token

    def delete(self, account_id: int) -> None:
        with self._lock:
            self._accounts.pop(account_id, None)

    def __len__(self) -> int:
        return len(self._accounts)


class FakeIdentityProvider:
    """Identity provider double keyed by pre-registered codes and id_tokens."""

    def __init__(self) -> None:
        self.identities: dict[str, VerifiedIdentity] = {}
        self.codes: dict[str, str] = {}
        self.error: Exception | None = None

    def add_identity(self, id_token: str, email: str, name: str | None = None, code: str | None = None) -> None:
        self.identities[id_token] = VerifiedIdentity(email=email, name=name)
        if code:
            self.codes[code] = id_token

    def build_authorization_url(self, state: str | None = None) -> str:
        url = "https://accounts.example.test/consent?client_id=test"
        return f"{url}&state={state}" if state else url

    def exchange_code(self, code: str) -> ProviderTokens:
        if self.error:
            raise self.error
        if code not in self.codes:
            raise ExchangeFailedError("invalid_grant")
        return ProviderTokens(id_token=self.codes[code])

    def verify_identity_token(self, token: str) -> VerifiedIdentity:
        if self.error:
            raise self.error
        if token not in self.identities:
            raise InvalidIdentityTokenError("signature verification failed")
        return self.identities[token]


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(
        access=TokenContext(ACCESS_SECRET, 900),
        refresh=TokenContext(REFRESH_SECRET, 7 * 24 * 3600),
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def service(store, hasher, codec, provider) -> AuthService:
    return AuthService(store=store, hasher=hasher, codec=codec, identity_provider=provider)


@pytest.fixture
def api_client(service, codec):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    routes.install_exception_handlers(app)
    app.state.auth_service = service
    app.state.auth_guard = AuthGuard(codec)

    with TestClient(app) as client:
        yield client
