"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; api/models.py owns the HTTP representation.

The password hash lives outside User. Only UserStore.find_by_email()
returns it (wrapped in UserCredentials) and only AuthService.signin() reads it,
so a User can be serialized anywhere without risk of leaking the hash.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered account as seen by everything outside the User Store."""

    id: str
    email: str
    full_name: str
    avatar_url: str | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None
    roles: list[str] = field(default_factory=list)


@dataclass
class UserCredentials:
    """A User plus its bcrypt hash. Internal to signin; never serialized."""

    user: User
    password_hash: str


@dataclass
class Session:
    """Server-side record of one issued refresh token.

    refresh_token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token is
    only ever held by the client cookie.
    """

    id: str
    user_id: str
    refresh_token_hash: str
    expires_at: str
    created_at: str | None = None


@dataclass
class Role:
    id: str
    name: str
    description: str | None = None


@dataclass
class AuthTokens:
    """The pair of credentials handed to a client after signin or refresh."""

    access_token: str
    refresh_token: str
