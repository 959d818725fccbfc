from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered identity."""

    id: int
    name: str
    email: str
    created_at: datetime
    password_hash: str | None = None
    refresh_token: str | None = None

    @property
    def has_password(self) -> bool:
        """Provider-created accounts carry no password hash."""
        return bool(self.password_hash)
