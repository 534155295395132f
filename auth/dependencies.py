"""
auth/dependencies.py -- FastAPI Depends() helper for bearer-token authentication.

Clients present the session token as `Authorization: Bearer <token>`.

The two rejection cases are kept apart because clients react differently:
  - no Authorization header at all  -> MissingTokenError (401, go log in)
  - a credential that fails to verify -> InvalidTokenError (403, show error)

The dependency resolves to a TokenIdentity only. Whether that user still
exists is decided by the vault layer (404), not here.

Layer rule: no imports from api/ or vault/.
  auth/dependencies.py may import from fastapi because it is part of the
  FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import TokenIdentity
from auth.tokens import verify_access_token
from core.errors import MissingTokenError


def get_current_identity(request: Request) -> TokenIdentity:
    """Require a valid bearer token. Raises MissingTokenError or InvalidTokenError.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: TokenIdentity = Depends(get_current_identity)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.strip():
        raise MissingTokenError()
    scheme, _, token = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer":
        # A credential was presented, just not one we accept.
        token = ""
    return verify_access_token(token.strip())
