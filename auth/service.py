"""
auth/service.py -- Registration, 2FA enrollment and login.

Per-user state machine:

    Unenrolled --(first valid TOTP code via confirm_enrollment)--> Enrolled

Unenrolled is the state a fresh registration lands in: password hash and
TOTP secret stored, totp_enabled False. Enrolled is terminal; nothing flips
totp_enabled back.

login() validates the TOTP code against the stored secret but, matching the
established behaviour, does not require totp_enabled unless
Settings.require_totp_enrollment is switched on.

Every operation runs inside operation_boundary(), so callers only ever see
core.errors taxonomy exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.models import User
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, authenticate_user, create_access_token, hash_password
from auth.totp import ProvisionedSecret, generate_secret, verify_code
from core.config import get_settings
from core.errors import (
    EnrollmentCodeError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
    operation_boundary,
)

logger = logging.getLogger("securepass.auth")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    username: str
    expires_in: int


def register(store: UserStore, username: str | None, password: str | None) -> ProvisionedSecret:
    """Create an Unenrolled user and return the TOTP secret to enroll with.

    The returned secret and URI are the only time the secret leaves the
    server. The password hash is never returned.
    """
    with operation_boundary("register"):
        if not username or not password:
            raise ValidationError("Username and password are required.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        if len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters.")

        provisioned = generate_secret(username)
        user = User(
            username=username,
            hashed_password=hash_password(password),
            totp_secret=provisioned.secret_base32,
        )
        # UNIQUE(username) decides; ConflictError propagates unchanged.
        user_id = store.create_user(user)
        logger.info("Registered user %s (id=%d), 2FA enrollment pending", username, user_id)
        return provisioned


def confirm_enrollment(store: UserStore, username: str | None, code: str | None) -> User:
    """Move a user to Enrolled once they prove their authenticator works.

    Confirming an already-enrolled user with a valid code succeeds and
    changes nothing.
    """
    with operation_boundary("confirm_enrollment"):
        if not username or not code:
            raise ValidationError("Username and code are required.")
        user = store.get_by_username(username)
        if user is None:
            raise NotFoundError()
        if not verify_code(user.totp_secret, code):
            logger.info("Rejected enrollment code for %s", username)
            raise EnrollmentCodeError()
        if user.totp_enabled:
            return user

        # Same lock as vault edits; reload so the save carries their entries.
        with store.lock_for(user.id):
            user = store.get_by_id(user.id)
            if user is None:
                raise NotFoundError()
            if not user.totp_enabled:
                user.totp_enabled = True
                store.save(user)
                logger.info("2FA enrollment completed for %s", username)
        return user


def login(store: UserStore, username: str | None, password: str | None, code: str | None) -> LoginResult:
    """Check password then TOTP code, and mint a session token.

    Unknown username and wrong password both raise the same
    InvalidCredentialsError; only the TOTP step has its own error.
    """
    with operation_boundary("login"):
        if not username or not password or not code:
            raise ValidationError("Username, password, and 2FA code are required.")

        settings = get_settings()
        user = authenticate_user(store, username, password)
        if user is None:
            logger.info("Failed login for %s: bad credentials", username)
            raise InvalidCredentialsError()
        if settings.require_totp_enrollment and not user.totp_enabled:
            logger.info("Failed login for %s: 2FA enrollment not completed", username)
            raise InvalidCredentialsError()
        if not verify_code(user.totp_secret, code):
            logger.info("Failed login for %s: bad 2FA code", username)
            raise InvalidCodeError()

        token = create_access_token(user.id, user.username)
        logger.info("User %s logged in", username)
        return LoginResult(
            access_token=token,
            username=user.username,
            expires_in=settings.token_expire_seconds,
        )
