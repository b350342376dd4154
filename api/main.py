"""
api/main.py -- FastAPI application factory for AuthGate.

create_app(settings) builds a fully wired application. Nothing here reads the
environment at import time: the caller passes a validated Settings instance
(asgi.py and main.py obtain it from core.config.get_settings()).

Run with:  uvicorn asgi:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. log_requests        -- one access-log line per request with latency, plus
                            the Prometheus request counter
  2. security_headers    -- nosniff / frame-deny / referrer / HSTS in production
  3. CORSMiddleware      -- adds CORS headers for allowed browser origins
  4. SlowAPIMiddleware   -- enforces per-route and default rate limits

Lifespan creates the Database, stores, signer and services once, seeds the
default roles, optionally starts the session sweep task, and tears all of it
down symmetrically on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.errors import error_response
from api.limiter import limiter
from api.metrics import metrics_response, record_request
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.user import router as user_router
from auth.db import Database
from auth.profile import ProfileService
from auth.service import AuthService
from auth.store import RoleStore, SessionStore, UserStore
from auth.tokens import TokenSigner
from core.config import Settings, get_settings
from core.errors import AuthError, ErrorKind

__version__ = "0.1.0"

logger = logging.getLogger("authgate.api")


# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval: int) -> None:
    """Delete expired sessions every `interval` seconds.

    The sweep itself is a blocking DELETE, so it runs in a worker thread.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly. A failed sweep is logged
    and retried on the next tick rather than killing the task.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(app.state.auth_service.sweep_expired_sessions)
        except AuthError:
            logger.warning("Session sweep failed; will retry in %ds", interval)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def _build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create shared resources on startup and release them on shutdown.

        Startup order matters: the Database must exist before any store, and
        the default roles must be seeded before the first signup assigns one.
        """
        logger.info("AuthGate API starting up (environment=%s)", settings.environment)
        db = Database(settings.database_url)
        users = UserStore(db.engine)
        roles = RoleStore(db.engine)
        created = roles.ensure_default_roles()
        if created:
            logger.info("Seeded %d default role(s)", created)

        app.state.db = db
        app.state.auth_service = AuthService(
            users=users,
            sessions=SessionStore(db.engine, settings.secret_key),
            signer=TokenSigner(settings.secret_key, settings.jwt_algorithm),
            settings=settings,
            roles=roles,
        )
        app.state.profile_service = ProfileService(users)

        sweep_task = None
        if settings.session_sweep_interval_seconds > 0:
            sweep_task = asyncio.create_task(_sweep_loop(app, settings.session_sweep_interval_seconds))
            app.state.sweep_task = sweep_task
            logger.info("Session sweep every %ds", settings.session_sweep_interval_seconds)

        yield

        if sweep_task is not None:
            sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweep_task
        db.close()
        logger.info("AuthGate API shutdown complete")

    return lifespan


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="AuthGate API",
        description="Credential-based authentication: signup, signin, token refresh, signout and profiles.",
        version=__version__,
        lifespan=_build_lifespan(settings),
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )
    app.state.settings = settings

    # -----------------------------------------------------------------------
    # Middleware stack
    #
    # add_middleware() wraps the existing stack, so the LAST one added is the
    # outermost. Register innermost-first: SlowAPI, CORS, then the
    # @app.middleware functions below.
    # -----------------------------------------------------------------------

    limiter.enabled = settings.rate_limit_enabled
    # SlowAPI looks for app.state.limiter by convention.
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if not settings.is_development:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains; preload")
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        if settings.metrics_enabled:
            record_request(request, response.status_code)
        return response

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    app.include_router(auth_router, tags=["Auth"])
    app.include_router(user_router, tags=["User"])

    _register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    def health(request: Request) -> HealthResponse:
        """Liveness plus a database round-trip. No auth, no rate limit."""
        db_ok = request.app.state.db.ping()
        return HealthResponse(
            status="healthy" if db_ok else "degraded",
            version=__version__,
            components={"app": "ok", "database": "ok" if db_ok else "error"},
        )

    limiter.exempt(health)

    if settings.metrics_enabled:

        @app.get("/metrics", include_in_schema=False)
        def metrics() -> Response:
            """Prometheus scrape endpoint. No auth, no rate limit."""
            return metrics_response()

        limiter.exempt(metrics)

    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        """Map a tagged service error to its status. The only kind -> status mapping."""
        if exc.kind is ErrorKind.INTERNAL:
            logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.reason)
        else:
            logger.info("%s on %s %s (%s)", exc.kind.value, request.method, request.url.path, exc.reason)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed or missing input is a 400 ValidationError.

        Only field locations and messages are echoed back; submitted values
        (which may include a password) are not.
        """
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error=ErrorDetail(
                    code=ErrorKind.VALIDATION.value,
                    message="Request validation failed.",
                    detail=problems,
                )
            ).model_dump(),
        )

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with a structured error when a rate limit is exceeded.

        Plain def: SlowAPIMiddleware calls this handler directly, outside
        Starlette's exception middleware.
        """
        retry_after = int(getattr(exc, "retry_after", 60) or 60)
        response = JSONResponse(
            status_code=429,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="rate_limited",
                    message="Too many requests.",
                    detail=str(exc.detail),
                )
            ).model_dump(),
        )
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The stack trace goes to the server log only; the client receives a
        generic InternalError message.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(
                    code=ErrorKind.INTERNAL.value,
                    message="An unexpected error occurred.",
                )
            ).model_dump(exclude_none=True),
        )
