"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore, SessionStore and RoleStore are the repositories; the _row_to_*
functions are the mappers. Services never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UserStore.update() accepts only known columns. Unknown keys raise
  ValueError rather than being silently dropped, so a caller bug that tries
  to write e.g. "email" through the profile path fails loudly.

  SessionStore never sees a raw refresh token in SQL: every method hashes the
  token first (auth.tokens.hash_refresh_token) and queries by hash.

Concurrency:
  No in-process locks. Email uniqueness is enforced by the UNIQUE index (the
  IntegrityError is translated to DuplicateEmailError). Sweeps and revocations
  are single DELETE statements; rotation runs in one transaction so a token
  can be exchanged at most once.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.db import now_iso, roles, sessions, to_iso, user_roles, users
from auth.models import Role, Session, User, UserCredentials
from auth.tokens import hash_refresh_token
from core.errors import DuplicateEmailError

logger = logging.getLogger("authgate.store")

DEFAULT_ROLES: tuple[tuple[str, str], ...] = (
    ("user", "Standard user with basic access"),
    ("admin", "Administrator with full access"),
)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(db.engine)
        user = store.create("a@x.com", hash_password("secret"), "A B")
        creds = store.find_by_email("a@x.com")
    """

    # Columns writable through update(). Checked before any SQL is built.
    _MUTABLE_COLUMNS: frozenset[str] = frozenset({"full_name", "avatar_url", "is_active", "password_hash"})

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, email: str, password_hash: str, full_name: str, role: str | None = None) -> User:
        """Insert a user and return it (without the hash).

        With role, the user_roles row is written in the same transaction, so
        either both rows exist or neither does. A role name that is not
        seeded is logged and skipped.

        Raises DuplicateEmailError if the email is already taken, including
        when a concurrent request won the race after email_exists() said no.
        """
        user_id = _new_id()
        now = now_iso()
        role_names: list[str] = []
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    users.insert().values(
                        id=user_id,
                        email=email,
                        password_hash=password_hash,
                        full_name=full_name,
                        is_active=1,
                        created_at=now,
                        updated_at=now,
                    )
                )
                if role is not None:
                    role_id = conn.execute(select(roles.c.id).where(roles.c.name == role)).scalar()
                    if role_id is None:
                        logger.warning("Role %r is not seeded; user %s has no role", role, user_id)
                    else:
                        conn.execute(user_roles.insert().values(user_id=user_id, role_id=role_id, created_at=now))
                        role_names.append(role)
        except IntegrityError as exc:
            raise DuplicateEmailError(reason="unique constraint on users.email") from exc
        return User(id=user_id, email=email, full_name=full_name, created_at=now, updated_at=now, roles=role_names)

    def email_exists(self, email: str) -> bool:
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(users).where(users.c.email == email)).scalar()
        return (count or 0) > 0

    def find_by_email(self, email: str) -> UserCredentials | None:
        """Exact (case-sensitive) lookup. Includes the hash -- internal use only."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
            if row is None:
                return None
            user = _row_to_user(row, _role_names(conn, row.id))
        return UserCredentials(user=user, password_hash=row.password_hash)

    def find_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, _role_names(conn, row.id))

    def update(self, user_id: str, **fields) -> User | None:
        """Update mutable columns and return the fresh record.

        Returns None if user_id does not exist. Raises ValueError for any
        column outside _MUTABLE_COLUMNS. Allow-listing *which* of these a
        given caller may touch is the caller's job (see ProfileService).
        """
        unknown = set(fields) - self._MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown or immutable user columns: {sorted(unknown)!r}")
        if not fields:
            return self.find_by_id(user_id)
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        with self.engine.begin() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(updated_at=now_iso(), **fields))
        if result.rowcount == 0:
            return None
        return self.find_by_id(user_id)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for refresh-token sessions.

    A session is live iff a row with the token's hash exists, belongs to the
    expected user, and expires_at > now. Raw tokens are hashed with
    secret_key before they reach SQL.
    """

    def __init__(self, engine: Engine, secret_key: str) -> None:
        self.engine = engine
        self._secret_key = secret_key

    def _hash(self, refresh_token: str) -> str:
        return hash_refresh_token(self._secret_key, refresh_token)

    def create(self, user_id: str, refresh_token: str, expires_at: datetime) -> Session:
        with self.engine.begin() as conn:
            return _insert_session(conn, user_id, self._hash(refresh_token), expires_at)

    def find_valid(self, refresh_token: str, user_id: str) -> Session | None:
        """Return the live session for (token, user) or None.

        Ownership and expiry are checked in the same WHERE clause: a token
        whose signature verifies but whose claims name another user, or whose
        row has expired or been deleted, finds nothing.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                sessions.select().where(
                    (sessions.c.refresh_token_hash == self._hash(refresh_token))
                    & (sessions.c.user_id == user_id)
                    & (sessions.c.expires_at > now_iso())
                )
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_by_token(self, refresh_token: str) -> int:
        """Delete the session for refresh_token. Unknown tokens delete 0 rows."""
        with self.engine.begin() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.refresh_token_hash == self._hash(refresh_token)))
        return result.rowcount

    def delete_all_for_user(self, user_id: str) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.user_id == user_id))
        return result.rowcount

    def delete_expired(self) -> int:
        """Sweep every session whose expires_at is in the past. One statement."""
        with self.engine.begin() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.expires_at < now_iso()))
        return result.rowcount

    def rotate(self, old_token: str, user_id: str, new_token: str, expires_at: datetime) -> Session | None:
        """Atomically replace the live session for old_token with one for new_token.

        Returns None without inserting anything if old_token has no live
        session for user_id -- including when a concurrent rotate already
        consumed it. Only one of two racing callers can see rowcount == 1.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                sessions.delete().where(
                    (sessions.c.refresh_token_hash == self._hash(old_token))
                    & (sessions.c.user_id == user_id)
                    & (sessions.c.expires_at > now_iso())
                )
            )
            if result.rowcount != 1:
                return None
            return _insert_session(conn, user_id, self._hash(new_token), expires_at)

    def count_for_user(self, user_id: str) -> int:
        """Number of live sessions for user_id."""
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(sessions)
                .where((sessions.c.user_id == user_id) & (sessions.c.expires_at > now_iso()))
            ).scalar()
        return count or 0


# ---------------------------------------------------------------------------
# Roles (optional extension -- a flat tag, no permission checks)
# ---------------------------------------------------------------------------


class RoleStore:
    """Repository for Role and UserRole records."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def ensure_default_roles(self) -> int:
        """Create any missing DEFAULT_ROLES. Safe to call on every startup.

        Returns the number of roles created. A concurrent creator winning the
        race shows up as IntegrityError on the UNIQUE(name) index and is
        treated as "already exists".
        """
        created = 0
        for name, description in DEFAULT_ROLES:
            if self.find_by_name(name) is not None:
                continue
            try:
                with self.engine.begin() as conn:
                    conn.execute(roles.insert().values(id=_new_id(), name=name, description=description))
                created += 1
            except IntegrityError:
                logger.debug("Role %r created concurrently", name)
        return created

    def find_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(roles.select().where(roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def list_roles(self) -> list[Role]:
        with self.engine.connect() as conn:
            rows = conn.execute(roles.select().order_by(roles.c.name)).fetchall()
        return [_row_to_role(r) for r in rows]

    def assign(self, user_id: str, role_name: str) -> bool:
        """Give user_id the named role. Returns False if it was already assigned.

        Raises ValueError for an unknown role name.
        """
        role = self.find_by_name(role_name)
        if role is None:
            raise ValueError(f"Unknown role: {role_name!r}")
        if self.user_has_role(user_id, role_name):
            return False
        try:
            with self.engine.begin() as conn:
                conn.execute(user_roles.insert().values(user_id=user_id, role_id=role.id, created_at=now_iso()))
        except IntegrityError:
            # Lost a race with an identical assignment; anything else is real.
            if self.user_has_role(user_id, role_name):
                return False
            raise
        return True

    def roles_for_user(self, user_id: str) -> list[str]:
        with self.engine.connect() as conn:
            return _role_names(conn, user_id)

    def user_has_role(self, user_id: str, role_name: str) -> bool:
        return role_name in self.roles_for_user(user_id)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _role_names(conn: Connection, user_id: str) -> list[str]:
    rows = conn.execute(
        select(roles.c.name)
        .select_from(user_roles.join(roles, user_roles.c.role_id == roles.c.id))
        .where(user_roles.c.user_id == user_id)
        .order_by(roles.c.name)
    ).fetchall()
    return [r.name for r in rows]


def _insert_session(conn: Connection, user_id: str, token_hash: str, expires_at: datetime) -> Session:
    session = Session(
        id=_new_id(),
        user_id=user_id,
        refresh_token_hash=token_hash,
        expires_at=to_iso(expires_at),
        created_at=now_iso(),
    )
    conn.execute(
        sessions.insert().values(
            id=session.id,
            user_id=session.user_id,
            refresh_token_hash=session.refresh_token_hash,
            expires_at=session.expires_at,
            created_at=session.created_at,
        )
    )
    return session


def _row_to_user(row, role_names: list[str]) -> User:
    return User(
        id=row.id,
        email=row.email,
        full_name=row.full_name,
        avatar_url=row.avatar_url,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
        roles=role_names,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        refresh_token_hash=row.refresh_token_hash,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name, description=row.description)
