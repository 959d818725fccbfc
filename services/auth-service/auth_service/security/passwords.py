"""Password hashing backed by bcrypt."""

from __future__ import annotations

from functools import cached_property

import bcrypt

# bcrypt ignores everything past the first 72 bytes of input.
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Salted, self-describing bcrypt hashes with a tunable work factor."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, password: str) -> str:
        """Return a ``$2b$`` digest for ``password`` using a fresh random salt."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str | None) -> bool:
        """Return ``True`` when ``password`` matches; malformed digests yield ``False``."""
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, password: str) -> None:
        """Spend one bcrypt comparison so unknown accounts cost the same as wrong passwords."""
        self.verify(password, self._dummy_hash)

    @cached_property
    def _dummy_hash(self) -> str:
        return self.hash("dummy-password-for-timing")


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
