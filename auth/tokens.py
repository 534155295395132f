"""
auth/tokens.py -- Session JWTs and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, username (sub) and expiry. decode_access_token() returns None
       on any failure; verify_access_token() raises InvalidTokenError so the
       API can answer 403 rather than 401 (a credential was presented).
       Expiry is checked by jose against the server clock -- the caller never
       supplies the time.

  Passwords: bcrypt used directly. The cost factor (Settings.bcrypt_rounds)
       makes brute force of low-entropy secrets expensive, and checkpw()
       compares in constant time. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a username exists [C1].

  SECRET_KEY: sourced from core.config.get_settings(), read once at module
       load and never written afterwards. The same key signs (login) and
       verifies (every protected request).

Layer rule: no imports from api/ or vault/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenIdentity
from core.config import get_settings
from core.errors import InvalidTokenError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("securepass.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes of input; bcrypt 5 rejects longer.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Callers must reject passwords longer than MAX_PASSWORD_BYTES first
    (auth.service.register does).
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input -- never a match.
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("securepass_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_username(username)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, username: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT with user identity and expiry.

    Args:
        user_id:        Numeric user ID stored in the DB.
        username:       Username stored as the JWT subject claim.
        expire_seconds: Session duration in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": username,
        "user_id": user_id,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Signature, expiry and the presence of the identity claims are all checked.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "sub" not in payload:
        return None
    return payload


def verify_access_token(token: str) -> TokenIdentity:
    """Resolve a presented token to the identity it was minted for.

    Raises InvalidTokenError for a tampered, expired, malformed or
    claim-less token. An absent token is the caller's concern
    (MissingTokenError), not this function's.
    """
    payload = decode_access_token(token)
    if payload is None:
        raise InvalidTokenError()
    try:
        return TokenIdentity(user_id=int(payload["user_id"]), username=str(payload["sub"]))
    except (TypeError, ValueError) as exc:
        raise InvalidTokenError() from exc
