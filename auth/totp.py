"""
auth/totp.py -- TOTP secret provisioning and code verification (RFC 6238).

Compatible with Google Authenticator, Authy, and other TOTP apps: 6 digits,
30-second step, HMAC-SHA1.

generate_secret() is pure -- no storage or network side effect. The caller
decides when the secret is persisted (once, at registration).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

import pyotp

from core.config import get_settings

# 32 base32 characters = 160 bits = 20 bytes of entropy.
SECRET_LENGTH = 32
CODE_DIGITS = 6
STEP_SECONDS = 30

_CODE_RE = re.compile(rf"^\d{{{CODE_DIGITS}}}$")


@dataclass(frozen=True)
class ProvisionedSecret:
    """A freshly generated secret and the otpauth:// URI that carries it."""

    secret_base32: str
    enrollment_uri: str


def generate_secret(username: str) -> ProvisionedSecret:
    """Generate a random base32 secret and its key-provisioning URI.

    The URI has the shape
        otpauth://totp/<issuer>:<username>?secret=<base32>&issuer=<issuer>
    so authenticator apps can import it from a QR code or a pasted link.
    """
    secret = pyotp.random_base32(length=SECRET_LENGTH)
    uri = enrollment_uri(secret, username)
    return ProvisionedSecret(secret_base32=secret, enrollment_uri=uri)


def enrollment_uri(secret: str, username: str) -> str:
    """Build the provisioning URI for an existing secret."""
    totp = pyotp.TOTP(secret, digits=CODE_DIGITS, interval=STEP_SECONDS)
    return totp.provisioning_uri(name=username, issuer_name=get_settings().totp_issuer)


def verify_code(
    secret: str,
    code: str | None,
    for_time: datetime | int | None = None,
    window: int | None = None,
) -> bool:
    """Return True if code matches the secret within +/- window steps.

    Args:
        secret:   Base32-encoded TOTP secret.
        code:     Code entered by the user. Whitespace is ignored; anything
                  other than exactly 6 digits is rejected without computing.
        for_time: Point in time to verify against. Defaults to now (server clock).
        window:   Steps accepted either side of the current one. Defaults to
                  Settings.totp_valid_window (1 = +/- 30s).
    """
    if not secret or not code:
        return False
    code = "".join(str(code).split())
    if not _CODE_RE.match(code):
        return False
    if window is None:
        window = get_settings().totp_valid_window
    totp = pyotp.TOTP(secret, digits=CODE_DIGITS, interval=STEP_SECONDS)
    return totp.verify(code, for_time=for_time, valid_window=window)
