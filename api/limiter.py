"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware, which also applies
DEFAULT_LIMIT to every route) and in api/routes/auth.py (per-route limits via @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

create_app() switches the limiter on or off from Settings.rate_limit_enabled.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

DEFAULT_LIMIT = "100 per 15 minutes"
SIGNIN_LIMIT = "5 per 15 minutes"
SIGNUP_LIMIT = "10 per 15 minutes"

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", default_limits=[DEFAULT_LIMIT])
