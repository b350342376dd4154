"""
core/audit.py -- Structured audit events for authentication activity.

Audit events go to the "authgate.audit" logger as a single line:

    AUDIT auth.signin_failed {"email": "a@x.com", "ip": "10.0.0.1", "reason": "..."}

The JSON payload is passed through redact() first so a careless caller can
never write a password, token, cookie or secret into the log stream. Keys are
matched case-insensitively; any key containing "password" or "token" is
redacted even if it is not in the explicit list.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("authgate.audit")

REDACTED = "[REDACTED]"

_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "password_hash",
        "token",
        "access_token",
        "refresh_token",
        "refreshtoken",
        "jwt",
        "secret",
        "secret_key",
        "api_key",
        "authorization",
        "cookie",
        "set-cookie",
        "session_id",
    }
)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return lowered in _SENSITIVE_KEYS or "password" in lowered or "token" in lowered


def redact(value: Any) -> Any:
    """Return a copy of value with sensitive mapping keys replaced by [REDACTED]."""
    if isinstance(value, dict):
        return {k: (REDACTED if _is_sensitive(str(k)) else redact(v)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def audit_event(action: str, *, level: int = logging.INFO, **details: Any) -> None:
    """Emit one audit line for action (e.g. "auth.signin_success")."""
    payload = redact(details)
    payload["timestamp"] = datetime.now(timezone.utc).isoformat()
    logger.log(level, "AUDIT %s %s", action, json.dumps(payload, default=str, sort_keys=True))
