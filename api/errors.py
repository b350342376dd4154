"""
api/errors.py -- The single mapping from ErrorKind to HTTP status.

Services raise AuthError subclasses and know nothing about HTTP. Everything
that turns one into a response -- the exception handler in api/main.py and
the refresh route, which must also clear cookies -- goes through
error_response() so the status table lives in exactly one place.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from core.errors import AuthError, ErrorKind

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.DUPLICATE_EMAIL: 409,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


def error_response(exc: AuthError) -> JSONResponse:
    """Render exc as the standard error envelope with its mapped status."""
    response = JSONResponse(
        status_code=STATUS_BY_KIND[exc.kind],
        content=ErrorResponse(error=ErrorDetail(code=exc.kind.value, message=exc.message)).model_dump(
            exclude_none=True
        ),
    )
    if exc.kind in (ErrorKind.INVALID_CREDENTIALS, ErrorKind.INVALID_TOKEN):
        response.headers["Cache-Control"] = "no-store"
    return response
