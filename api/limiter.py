"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()).

A single shared instance means all routes share the same in-memory counter
store. One instance per module would give each its own isolated counter and
the limits would never trigger.

@limiter.limit() must sit directly on the handler, below @router.post().
Above it, FastAPI registers the undecorated function and no limit is
ever checked.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def auth_rate_limit() -> str:
    """Limit for the unauthenticated credential-checking routes.

    slowapi calls this on every request, so the value always follows
    Settings.auth_rate_limit.
    """
    return get_settings().auth_rate_limit
