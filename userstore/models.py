"""Domain models for the user directory."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the directory table.

    ``credential`` is an opaque hashed password and is never compared against
    plaintext outside :mod:`userstore.security`.
    """

    id: str
    email: str
    name: str
    credential: str = ""
    last_login: Optional[datetime] = None

    def with_changes(self, **changes: object) -> "User":
        return replace(self, **changes)


__all__ = ["User"]
