"""
api/routes/auth.py -- Registration, signin, token refresh and signout endpoints.

Routes:
  POST /auth/signup        -- create an account; 201 {message, userId}
  POST /auth/signin        -- verify credentials; sets token + refreshToken cookies
  POST /auth/refresh       -- new access token from the refreshToken cookie
  POST /auth/signout       -- revoke this session; clears cookies (requires auth)
  POST /auth/signout-all   -- revoke every session of the caller (requires auth)

Security:
  POST /signin is rate-limited to 5 requests per 15 minutes per IP, /signup to 10.
  Signin and refresh failures are uniform (see auth/service.py); the precise
  reason is written to the audit log only.
  Cache-Control: no-store on every response that carries tokens.

Handlers are plain `def` so FastAPI runs them in its threadpool: bcrypt and
database calls never block the event loop.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.cookies import clear_auth_cookies, set_access_cookie, set_refresh_cookie
from api.errors import error_response
from api.limiter import SIGNIN_LIMIT, SIGNUP_LIMIT, limiter
from api.models import (
    MessageResponse,
    SigninRequest,
    SigninResponse,
    SignoutAllResponse,
    SignupRequest,
    SignupResponse,
    UserOut,
)
from auth.dependencies import REFRESH_COOKIE, get_current_user
from auth.models import User
from auth.service import AuthService
from core.audit import audit_event
from core.errors import InvalidCredentialsError, InvalidTokenError

logger = logging.getLogger("authgate.api.auth")

# Auth policy:
# - POST /auth/signup:      public
# - POST /auth/signin:      public (rate-limited)
# - POST /auth/refresh:     refreshToken cookie, verified by AuthService
# - POST /auth/signout:     requires auth (get_current_user)
# - POST /auth/signout-all: requires auth (get_current_user)
router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", status_code=201, response_model=SignupResponse)
@limiter.limit(SIGNUP_LIMIT)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Register a new account. 409 if the email is already registered."""
    user = _service(request).signup(body.email, body.password, body.full_name)
    audit_event("auth.signup", user_id=user.id, email=user.email, ip=_client_ip(request))
    return JSONResponse(
        status_code=201,
        content=SignupResponse(message="User registered successfully", user_id=user.id).model_dump(by_alias=True),
    )


@router.post("/auth/signin", response_model=SigninResponse)
@limiter.limit(SIGNIN_LIMIT)  # brute-force mitigation
def signin(request: Request, body: SigninRequest) -> JSONResponse:
    """Verify credentials, open a session and set both auth cookies.

    Unknown email and wrong password produce the identical 401 body.
    """
    service = _service(request)
    settings = request.app.state.settings
    try:
        user = service.signin(body.email, body.password)
    except InvalidCredentialsError as exc:
        audit_event(
            "auth.signin_failed",
            level=logging.WARNING,
            email=body.email,
            ip=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            reason=exc.reason,
        )
        raise

    tokens = service.create_auth_session(user)
    audit_event(
        "auth.signin_success",
        user_id=user.id,
        email=user.email,
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    resp = JSONResponse(
        status_code=200,
        content=SigninResponse(message="Login successful", user=UserOut.from_user(user)).model_dump(by_alias=True),
    )
    set_access_cookie(resp, tokens.access_token, settings)
    set_refresh_cookie(resp, tokens.refresh_token, settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/refresh", response_model=MessageResponse)
def refresh(request: Request) -> JSONResponse:
    """Exchange the refreshToken cookie for a new access-token cookie.

    On any failure both cookies are cleared so the client drops back to a
    clean signed-out state.
    """
    settings = request.app.state.settings
    presented = request.cookies.get(REFRESH_COOKIE)
    try:
        tokens = _service(request).refresh_access_token(presented)
    except InvalidTokenError as exc:
        audit_event("auth.refresh_failed", level=logging.WARNING, ip=_client_ip(request), reason=exc.reason)
        resp = error_response(exc)
        clear_auth_cookies(resp, settings)
        return resp

    audit_event("auth.refresh", ip=_client_ip(request))
    resp = JSONResponse(content=MessageResponse(message="Token refreshed successfully").model_dump())
    set_access_cookie(resp, tokens.access_token, settings)
    if tokens.refresh_token != presented:
        set_refresh_cookie(resp, tokens.refresh_token, settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signout", response_model=MessageResponse)
def signout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Revoke the session behind the refreshToken cookie and clear both cookies."""
    revoked = _service(request).signout(request.cookies.get(REFRESH_COOKIE))
    audit_event("auth.signout", user_id=current_user.id, revoked=revoked, ip=_client_ip(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    clear_auth_cookies(resp, request.app.state.settings)
    return resp


@router.post("/auth/signout-all", response_model=SignoutAllResponse)
def signout_all(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Revoke every session the caller has open, on every device."""
    revoked = _service(request).signout_everywhere(current_user.id)
    audit_event("auth.signout_all", user_id=current_user.id, revoked=revoked, ip=_client_ip(request))
    resp = JSONResponse(
        content=SignoutAllResponse(message="Logged out from all sessions", revoked=revoked).model_dump()
    )
    clear_auth_cookies(resp, request.app.state.settings)
    return resp
