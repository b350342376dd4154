"""
api/cookies.py -- Writing and clearing the auth cookies.

httponly=True: JS cannot read the cookies (XSS mitigation).
samesite="strict": cookies are never sent on cross-site requests.
secure: only sent over HTTPS outside development (Settings.secure_cookies).
max_age: matches the embedded token expiry so cookie and token expire together.
"""

from __future__ import annotations

from fastapi import Response

from auth.dependencies import ACCESS_COOKIE, REFRESH_COOKIE
from core.config import Settings


def _set(response: Response, name: str, value: str, max_age: int, settings: Settings) -> None:
    response.set_cookie(
        name,
        value=value,
        httponly=True,
        samesite="strict",
        secure=settings.secure_cookies,
        max_age=max_age,
    )


def set_access_cookie(response: Response, token: str, settings: Settings) -> None:
    _set(response, ACCESS_COOKIE, token, settings.access_token_expire_seconds, settings)


def set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    _set(response, REFRESH_COOKIE, token, settings.refresh_token_expire_seconds, settings)


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, samesite="strict", secure=settings.secure_cookies)
