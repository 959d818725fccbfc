"""HTTP route definitions for the auth service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from schemas import AccountProfile

from ..domain.errors import AuthError, PUBLIC_MESSAGES, Reason
from ..domain.service import AuthService
from ..metrics import record_outcome
from ..security.guard import AuthGuard, Identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    """Payload accepted when registering a password account."""

    name: str
    email: str
    password: str


class RegisterResponse(BaseModel):
    message: str = "User registered successfully"
    user: AccountProfile


class LoginRequest(BaseModel):
    """Email/password credentials."""

    email: str
    password: str


class TokenPairResponse(BaseModel):
    """Access/refresh pair returned after a password login."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Login successful"
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


class ProviderLoginResponse(BaseModel):
    """Account projection and token pair returned after a Google login."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Google login successful"
    user: AccountProfile
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


class IdTokenRequest(BaseModel):
    """Google id_token submitted by native or single-page clients."""

    id_token: str


class RefreshRequest(BaseModel):
    """Request body for exchanging a refresh token for a new access token."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., alias="refreshToken")


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")


class IdentityResponse(BaseModel):
    id: int
    email: str


def get_service(request: Request) -> AuthService:
    """Resolve the `AuthService` stored on the FastAPI application state."""
    service: AuthService = request.app.state.auth_service
    return service


def get_guard(request: Request) -> AuthGuard:
    """Resolve the `AuthGuard` stored on the FastAPI application state."""
    guard: AuthGuard = request.app.state.auth_guard
    return guard


def require_identity(
    request: Request,
    authorization: str | None = Header(default=None),
    guard: AuthGuard = Depends(get_guard),
) -> Identity:
    """Authenticate the bearer token and expose the identity for this request only."""
    try:
        identity = guard.authenticate(authorization)
    except AuthError as exc:
        raise _http_error_from_auth_error("authenticate", exc) from exc
    request.state.identity = identity
    return identity


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    service: AuthService = Depends(get_service),
) -> RegisterResponse:
    """Create a password account."""
    try:
        profile = service.register(payload.name, payload.email, payload.password)
    except AuthError as exc:
        raise _http_error_from_auth_error("register", exc) from exc
    record_outcome("register", "success")
    return RegisterResponse(user=profile)


@router.post("/login", response_model=TokenPairResponse)
def login(
    payload: LoginRequest,
    service: AuthService = Depends(get_service),
) -> TokenPairResponse:
    """Exchange email/password credentials for an access/refresh pair."""
    try:
        tokens = service.login(payload.email, payload.password)
    except AuthError as exc:
        raise _http_error_from_auth_error("login", exc) from exc
    record_outcome("login", "success")
    return TokenPairResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


@router.get("/google")
def google_start(
    state: str | None = Query(default=None),
    service: AuthService = Depends(get_service),
) -> RedirectResponse:
    """Redirect the browser to Google's consent screen."""
    return RedirectResponse(service.authorization_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/google/callback", response_model=ProviderLoginResponse)
def google_callback(
    code: str | None = Query(default=None),
    service: AuthService = Depends(get_service),
) -> ProviderLoginResponse:
    """Complete the redirect flow by exchanging the authorization code."""
    try:
        result = service.login_with_identity_provider(code=code)
    except AuthError as exc:
        raise _http_error_from_auth_error("google_callback", exc) from exc
    record_outcome("google_callback", "success")
    return ProviderLoginResponse(
        user=result.account,
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/google/idtoken", response_model=ProviderLoginResponse)
def google_id_token(
    payload: IdTokenRequest,
    service: AuthService = Depends(get_service),
) -> ProviderLoginResponse:
    """Log in with a Google id_token obtained by the client itself."""
    try:
        result = service.login_with_identity_provider(id_token=payload.id_token)
    except AuthError as exc:
        raise _http_error_from_auth_error("google_idtoken", exc) from exc
    record_outcome("google_idtoken", "success")
    return ProviderLoginResponse(
        user=result.account,
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(
    payload: RefreshRequest,
    service: AuthService = Depends(get_service),
) -> AccessTokenResponse:
    """Issue a new access token for the account's current refresh token."""
    try:
        access_token = service.refresh(payload.refresh_token)
    except AuthError as exc:
        raise _http_error_from_auth_error("refresh", exc) from exc
    record_outcome("refresh", "success")
    return AccessTokenResponse(access_token=access_token)


@router.get("/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(require_identity)) -> IdentityResponse:
    """Return the identity carried by the caller's access token."""
    return IdentityResponse(id=identity.id, email=identity.email)


def install_exception_handlers(app: FastAPI) -> None:
    """Report body validation failures as 400 instead of FastAPI's default 422."""

    @app.exception_handler(RequestValidationError)
    async def invalid_payload(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": PUBLIC_MESSAGES[Reason.INVALID_PAYLOAD],
                "errors": jsonable_encoder(exc.errors()),
            },
        )


def _http_error_from_auth_error(operation: str, exc: AuthError) -> HTTPException:
    record_outcome(operation, exc.reason.value)
    if exc.status_code >= 500:
        logger.error("%s failed: %s (%s)", operation, exc.reason.value, exc.detail)
    else:
        logger.warning("%s rejected: %s (%s)", operation, exc.reason.value, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=exc.status_code, detail=exc.public_message, headers=headers)
