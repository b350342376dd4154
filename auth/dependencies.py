"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two places an access token may come from, checked in priority order:
  1. "token" cookie -- set by POST /auth/signin and POST /auth/refresh.
  2. Authorization: Bearer <token> header -- API clients that manage tokens.

Both converge on AuthService.authenticate_access_token(), which verifies the
signature, expiry and type claim and loads the active user.

get_current_user() raises InvalidTokenError, which the boundary renders as 401.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User

ACCESS_COOKIE = "token"
REFRESH_COOKIE = "refreshToken"


def _extract_access_token(request: Request) -> str | None:
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


def get_current_user(request: Request) -> User:
    """Return the authenticated user or raise InvalidTokenError (401)."""
    return request.app.state.auth_service.authenticate_access_token(_extract_access_token(request))
