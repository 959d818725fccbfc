from __future__ import annotations

import time

import jwt
import pytest

from auth_service.domain.errors import Reason, UnauthorizedError
from auth_service.security.guard import AuthGuard, Identity
from auth_service.security.tokens import AccessTokenClaims, RefreshTokenClaims, TokenCodec, TokenContext


@pytest.fixture
def guard(codec) -> AuthGuard:
    return AuthGuard(codec)


def test_valid_bearer_token_yields_identity(guard, codec):
    token = codec.sign_access(AccessTokenClaims(subject=5, email="ada@example.com"))

    assert guard.authenticate(f"Bearer {token}") == Identity(id=5, email="ada@example.com")


@pytest.mark.parametrize(
    "header",
    [None, "", "Bearer", "Bearer ", "bearer abc.def.ghi", "Token abc.def.ghi", "abc.def.ghi", "Bearer  abc", "Bearer a b"],
)
def test_malformed_header_is_missing_token(guard, header):
    with pytest.raises(UnauthorizedError) as excinfo:
        guard.authenticate(header)
    assert excinfo.value.reason is Reason.MISSING_TOKEN


def test_wrong_signature_is_invalid_token(guard):
    forged = jwt.encode(
        {"sub": "5", "email": "ada@example.com", "exp": int(time.time()) + 60},
        "not-the-access-secret-0123456789abcdef",
    )

    with pytest.raises(UnauthorizedError) as excinfo:
        guard.authenticate(f"Bearer {forged}")
    assert excinfo.value.reason is Reason.INVALID_TOKEN


def test_expired_token_is_invalid_token(codec):
    expired_codec = TokenCodec(
        access=TokenContext("test-access-secret-0123456789abcdef", -1),
        refresh=TokenContext("test-refresh-secret-0123456789abcdef", -1),
    )
    token = expired_codec.sign_access(AccessTokenClaims(subject=5, email="ada@example.com"))

    with pytest.raises(UnauthorizedError) as excinfo:
        AuthGuard(codec).authenticate(f"Bearer {token}")
    assert excinfo.value.reason is Reason.INVALID_TOKEN
    assert excinfo.value.status_code == 401


def test_refresh_token_is_not_accepted_as_access_token(guard, codec):
    token = codec.sign_refresh(RefreshTokenClaims(subject=5))

    with pytest.raises(UnauthorizedError):
        guard.authenticate(f"Bearer {token}")
