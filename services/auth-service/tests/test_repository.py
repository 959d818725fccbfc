from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone

import psycopg
import pytest
from psycopg.errors import UniqueViolation

from auth_service.domain.contracts import CreateAccountInput
from auth_service.domain.errors import DuplicateEmailError, StoreError
from auth_service.repository import AccountRepository

CREATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn
        self.rowcount = conn.rowcount

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc) -> None:
        return None

    def execute(self, query, params=None) -> None:
        if self._conn.error:
            raise self._conn.error
        self._conn.executed.append((" ".join(query.split()), params))

    def fetchone(self):
        return self._conn.row


class FakeConnection:
    def __init__(self) -> None:
        self.executed: list[tuple[str, tuple | None]] = []
        self.row: tuple | None = None
        self.rowcount = 1
        self.error: Exception | None = None
        self.commits = 0

    def cursor(self, row_factory=None) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1


class FakePool:
    def __init__(self) -> None:
        self.conn = FakeConnection()
        self.timeouts: list[float | None] = []

    @contextmanager
    def connection(self, timeout=None):
        self.timeouts.append(timeout)
        yield self.conn


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


@pytest.fixture
def repository(pool) -> AccountRepository:
    return AccountRepository(pool, timeout=2.5)


def test_find_by_email_maps_row(repository, pool):
    pool.conn.row = (7, "Ada", "ada@example.com", CREATED_AT, "$2b$hash", "refresh")

    account = repository.find_by_email("ada@example.com")

    assert account.id == 7
    assert account.email == "ada@example.com"
    assert account.password_hash == "$2b$hash"
    assert account.refresh_token == "refresh"
    assert pool.conn.executed[-1][1] == ("ada@example.com",)
    assert pool.timeouts == [2.5]


def test_find_by_id_returns_none_when_absent(repository):
    assert repository.find_by_id(99) is None


def test_create_inserts_and_commits(repository, pool):
    pool.conn.row = (1, "Gina", "gina@example.com", CREATED_AT, None, None)

    account = repository.create(CreateAccountInput(name="Gina", email="gina@example.com"))

    query, params = pool.conn.executed[-1]
    assert query.startswith("INSERT INTO accounts")
    assert params == ("Gina", "gina@example.com", None)
    assert account.password_hash is None
    assert pool.conn.commits == 1


def test_create_unique_violation_becomes_duplicate_email(repository, pool):
    pool.conn.error = UniqueViolation("duplicate key value violates unique constraint")

    with pytest.raises(DuplicateEmailError):
        repository.create(CreateAccountInput(name="Ada", email="ada@example.com"))


def test_other_database_errors_become_store_errors(repository, pool):
    pool.conn.error = psycopg.OperationalError("server closed the connection")

    with pytest.raises(StoreError) as excinfo:
        repository.find_by_email("ada@example.com")
    assert not isinstance(excinfo.value, DuplicateEmailError)


def test_set_refresh_token_overwrites_stored_value(repository, pool):
    repository.set_refresh_token(3, "new-token")

    query, params = pool.conn.executed[-1]
    assert query == "UPDATE accounts SET refresh_token = %s WHERE id = %s"
    assert params == ("new-token", 3)
    assert pool.conn.commits == 1


def test_ensure_schema_declares_unique_email(repository, pool):
    repository.ensure_schema()

    query, _ = pool.conn.executed[-1]
    assert "CREATE TABLE IF NOT EXISTS accounts" in query
    assert "email VARCHAR(150) NOT NULL UNIQUE" in query
