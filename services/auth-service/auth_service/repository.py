"""Database repository for account data."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account
from .domain.contracts import CreateAccountInput
from .domain.errors import DuplicateEmailError, StoreError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    id BIGSERIAL PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    email VARCHAR(150) NOT NULL UNIQUE,
    password_hash VARCHAR(255),
    refresh_token TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

_ACCOUNT_COLUMNS = "id, name, email, created_at, password_hash, refresh_token"


class AccountRepository:
    """Postgres-backed account persistence.

    Every psycopg failure is re-raised as :class:`StoreError`; a unique
    violation on ``email`` becomes :class:`DuplicateEmailError` so callers can
    resolve registration races without a prior read.
    """

    def __init__(self, pool: ConnectionPool, *, timeout: float | None = None) -> None:
        """Store the connection pool and the bound on waiting for a connection."""
        self._pool = pool
        self._timeout = timeout

    @contextmanager
    def _connection(self) -> Iterator[psycopg.Connection]:
        try:
            with self._pool.connection(timeout=self._timeout) as conn:
                yield conn
        except UniqueViolation as exc:
            raise DuplicateEmailError(str(exc)) from exc
        except psycopg.Error as exc:
            logger.error("account store failure: %s", exc)
            raise StoreError(str(exc)) from exc

    def ensure_schema(self) -> None:
        """Create the ``accounts`` table when it does not exist yet."""
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()

    def find_by_email(self, email: str) -> Account | None:
        """Fetch the account registered under ``email`` or return ``None``."""
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = %s",
                    (email,),
                )
                row = cur.fetchone()
        return self._map_record(row) if row else None

    def find_by_id(self, account_id: int) -> Account | None:
        """Fetch an account by primary key or return ``None``."""
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
        return self._map_record(row) if row else None

    def create(self, payload: CreateAccountInput) -> Account:
        """Insert a new account; the unique constraint on ``email`` arbitrates races."""
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO accounts (name, email, password_hash)
                    VALUES (%s, %s, %s)
                    RETURNING {_ACCOUNT_COLUMNS}
                    """,
                    (payload.name, payload.email, payload.password_hash),
                )
                row = cur.fetchone()
            conn.commit()
        return self._map_record(row)

    def set_refresh_token(self, account_id: int, token: str) -> None:
        """Overwrite the stored refresh token, invalidating the previous one."""
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE accounts SET refresh_token = %s WHERE id = %s",
                    (token, account_id),
                )
                updated = cur.rowcount
            conn.commit()
        if updated == 0:
            logger.warning("refresh token not stored: account %s not found", account_id)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            id=row[0],
            name=row[1],
            email=row[2],
            created_at=row[3],
            password_hash=row[4],
            refresh_token=row[5],
        )
