"""
auth/service.py -- The authentication protocol: signup, signin, sessions, refresh, signout.

AuthService is constructed once at startup with explicit collaborators
(stores, signer, settings) and shared by every request. It holds no
per-request state, so concurrent calls from the threadpool are safe; all
shared mutable state lives in the database.

Per-user state is implicit: a user is "signed in" exactly as long as at
least one live session row exists for them.

  signup   -> user row (+ default role)
  signin   -> verified user           (no state change)
  create_auth_session -> +1 session row, access + refresh token
  refresh_access_token -> new access token (session unchanged, or replaced
                          when rotation is enabled)
  signout  -> -1 session row (idempotent)

Security:
  [enumeration] signin() fails with one InvalidCredentialsError for unknown
      email, wrong password and inactive account, and always runs bcrypt.

  [refresh] every refresh failure -- bad signature, expiry, malformed token,
      wrong token type, missing session, session owned by another user,
      deactivated user -- raises the same InvalidTokenError. The reason goes
      to the server log only.

  [defence in depth] a refresh token whose signature and exp are valid is
      still rejected unless a live session row matches its hash and user_id.

Storage failures surface as InternalError; nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from auth.models import AuthTokens, User
from auth.passwords import burn_verify, hash_password, verify_password
from auth.tokens import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, USER_ID_CLAIM, TokenError, TokenSigner
from core.errors import (
    DuplicateEmailError,
    InternalError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
    ValidationError,
)

if TYPE_CHECKING:
    from auth.store import RoleStore, SessionStore, UserStore
    from core.config import Settings

logger = logging.getLogger("authgate.auth")

DEFAULT_ROLE = "user"


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into InternalError with a safe message.

    The original exception is chained (raise ... from) and logged with its
    stack trace; the client only ever sees the generic message.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Storage failure during %s", operation)
        raise InternalError(reason=f"storage failure during {operation}") from exc


class AuthService:
    """Orchestrates the user/session stores and the token signer."""

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        signer: TokenSigner,
        settings: Settings,
        roles: RoleStore | None = None,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.signer = signer
        self.settings = settings
        self.roles = roles

    @property
    def access_ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.access_token_expire_seconds)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.refresh_token_expire_seconds)

    # ------------------------------------------------------------------
    # Registration and credential checks
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str, full_name: str) -> User:
        """Register a new user and return it (never the hash).

        Not idempotent: a second call with the same email raises
        DuplicateEmailError. The UNIQUE index still backs the pre-check,
        so a concurrent duplicate fails the same way.
        The user row and its default role are written in one transaction.
        """
        if not email or not password or not full_name or not full_name.strip():
            raise ValidationError("email, password and full name are required.")
        with storage_errors("signup"):
            if self.users.email_exists(email):
                raise DuplicateEmailError(reason="email_exists pre-check")
        try:
            password_hash = hash_password(password, self.settings.bcrypt_rounds)
        except ValueError as exc:
            raise ValidationError("Password is too long.") from exc
        role = DEFAULT_ROLE if self.roles is not None and self.settings.assign_default_role else None
        with storage_errors("signup"):
            user = self.users.create(email, password_hash, full_name.strip(), role=role)
        logger.info("User registered: %s", user.id)
        return user

    def signin(self, email: str, password: str) -> User:
        """Return the user if email/password match an active account.

        Every failure raises the same InvalidCredentialsError. bcrypt runs on
        every path so response time does not reveal which check failed.
        """
        with storage_errors("signin"):
            creds = self.users.find_by_email(email or "")
        if creds is None:
            burn_verify(password or "", self.settings.bcrypt_rounds)
            raise InvalidCredentialsError(reason="unknown email")
        if not verify_password(password or "", creds.password_hash):
            raise InvalidCredentialsError(reason="password mismatch")
        if not creds.user.is_active:
            raise InvalidCredentialsError(reason="inactive account")
        return creds.user

    # ------------------------------------------------------------------
    # Sessions and tokens
    # ------------------------------------------------------------------

    def _issue_access_token(self, user: User) -> str:
        return self.signer.sign(
            {USER_ID_CLAIM: user.id, "email": user.email, "type": ACCESS_TOKEN_TYPE},
            self.access_ttl,
        )

    def _issue_refresh_token(self, user_id: str) -> str:
        return self.signer.sign({USER_ID_CLAIM: user_id, "type": REFRESH_TOKEN_TYPE}, self.refresh_ttl)

    def _session_expiry(self) -> datetime:
        return datetime.now(timezone.utc) + self.refresh_ttl

    def create_auth_session(self, user: User) -> AuthTokens:
        """Issue an access/refresh pair and persist a session for the refresh token.

        Every signin gets its own session; concurrent sessions per user are
        allowed.
        """
        access_token = self._issue_access_token(user)
        refresh_token = self._issue_refresh_token(user.id)
        with storage_errors("create_auth_session"):
            self.sessions.create(user.id, refresh_token, self._session_expiry())
        return AuthTokens(access_token=access_token, refresh_token=refresh_token)

    def _verified_claims(self, token: str, expected_type: str) -> dict[str, Any]:
        try:
            claims = self.signer.verify(token)
        except TokenError as exc:
            raise InvalidTokenError(reason=f"{type(exc).__name__}: {exc}") from exc
        if claims.get("type") != expected_type:
            raise InvalidTokenError(reason=f"wrong token type {claims.get('type')!r}")
        if not isinstance(claims.get(USER_ID_CLAIM), str) or not claims[USER_ID_CLAIM]:
            raise InvalidTokenError(reason="missing userId claim")
        return claims

    def refresh_access_token(self, refresh_token: str | None) -> AuthTokens:
        """Exchange a refresh token for a new access token.

        Without rotation (the default) the refresh token and its session are
        left untouched and returned as-is; the same refresh token may be used
        again until signout or expiry. With ROTATE_REFRESH_TOKENS the old
        session is atomically replaced, so each refresh token works once.
        """
        if not refresh_token:
            raise MissingTokenError(reason="no refresh token supplied")
        claims = self._verified_claims(refresh_token, REFRESH_TOKEN_TYPE)
        user_id = claims[USER_ID_CLAIM]

        with storage_errors("refresh_access_token"):
            if not self.settings.rotate_refresh_tokens:
                if self.sessions.find_valid(refresh_token, user_id) is None:
                    raise InvalidTokenError(reason="no live session for token")
            user = self.users.find_by_id(user_id)
            if user is None or not user.is_active:
                raise InvalidTokenError(reason="user missing or inactive")

            if self.settings.rotate_refresh_tokens:
                new_refresh = self._issue_refresh_token(user_id)
                if self.sessions.rotate(refresh_token, user_id, new_refresh, self._session_expiry()) is None:
                    logger.warning("Refresh token reuse or expired session for user %s", user_id)
                    raise InvalidTokenError(reason="no live session for token (rotation)")
                refresh_token = new_refresh

        return AuthTokens(access_token=self._issue_access_token(user), refresh_token=refresh_token)

    def authenticate_access_token(self, access_token: str | None) -> User:
        """Return the active user an access token belongs to.

        Refresh tokens are rejected here by their type claim, so a stolen
        refresh cookie cannot be replayed as an access credential.
        """
        if not access_token:
            raise InvalidTokenError("Authentication required.", reason="no access token supplied")
        try:
            claims = self._verified_claims(access_token, ACCESS_TOKEN_TYPE)
        except InvalidTokenError as exc:
            raise InvalidTokenError("Authentication required.", reason=exc.reason) from exc
        with storage_errors("authenticate_access_token"):
            user = self.users.find_by_id(claims[USER_ID_CLAIM])
        if user is None or not user.is_active:
            raise InvalidTokenError("Authentication required.", reason="user missing or inactive")
        return user

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def signout(self, refresh_token: str | None) -> int:
        """Best-effort revocation of one session.

        A missing token is a no-op. A storage failure is logged and reported
        as 0 deleted rows: the caller's logout (cookie clearing) must go ahead
        regardless.
        """
        if not refresh_token:
            return 0
        try:
            return self.sessions.delete_by_token(refresh_token)
        except SQLAlchemyError:
            logger.exception("Session delete failed during signout")
            return 0

    def signout_everywhere(self, user_id: str) -> int:
        """Revoke every session of user_id. Returns the number removed."""
        with storage_errors("signout_everywhere"):
            count = self.sessions.delete_all_for_user(user_id)
        logger.info("Revoked %d session(s) for user %s", count, user_id)
        return count

    def sweep_expired_sessions(self) -> int:
        with storage_errors("sweep_expired_sessions"):
            count = self.sessions.delete_expired()
        if count:
            logger.info("Swept %d expired session(s)", count)
        return count
