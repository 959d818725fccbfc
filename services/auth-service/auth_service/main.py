"""FastAPI application wiring for the auth service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import install_exception_handlers, router as auth_router
from .config import get_settings
from .domain.service import AuthService
from .repository import AccountRepository
from .security.google import GoogleIdentityVerifier
from .security.guard import AuthGuard
from .security.passwords import PasswordHasher
from .security.tokens import TokenCodec

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, provider client, services) for the app lifecycle."""
    statement_timeout_ms = int(settings.database_timeout_seconds * 1000)
    pool = ConnectionPool(
        settings.database_url,
        open=False,
        max_size=settings.database_pool_max_size,
        timeout=settings.database_timeout_seconds,
        kwargs={"options": f"-c statement_timeout={statement_timeout_ms}"},
    )
    pool.open()
    repository = AccountRepository(pool, timeout=settings.database_timeout_seconds)
    repository.ensure_schema()

    codec = TokenCodec.from_settings(settings)
    verifier = GoogleIdentityVerifier.from_settings(settings)
    app.state.pool = pool
    app.state.auth_service = AuthService(
        store=repository,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        codec=codec,
        identity_provider=verifier,
    )
    app.state.auth_guard = AuthGuard(codec)
    logger.info("%s %s started (%s)", settings.app_name, settings.version, settings.environment)
    try:
        yield
    finally:
        verifier.close()
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)
install_exception_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """Expose Prometheus metrics for scrapes."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth_router, prefix=settings.api_prefix)
