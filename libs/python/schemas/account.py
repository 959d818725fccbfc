"""Account-related DTOs shared across services."""

from __future__ import annotations

from pydantic import BaseModel


class AccountProfile(BaseModel):
    """Public projection of an account; never carries credentials."""

    id: int
    name: str
    email: str
