"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in inventory/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A login identity.

    Users are created by the admin CLI (main.py) and are never mutated by the
    request pipeline. role is one of the auth.permissions.Role values.
    """

    username: str
    role: str  # "admin" | "viewer"
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None


@dataclass
class SessionUser:
    """The identity snapshot held by a session: exactly {id, username, role}.

    This is what handlers receive from the auth dependencies and what the
    auth routes echo back to the client. The password digest never leaves
    the store.
    """

    id: int
    username: str
    role: str

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role}


@dataclass
class Session:
    """Server-held proof of authentication.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token lives only
    in the client's cookie (or Authorization header) and is never persisted.
    """

    token_hash: str
    user: SessionUser
    expires_at: str
    created_at: str | None = None
    id: int | None = None
