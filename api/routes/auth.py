"""
api/routes/auth.py -- Registration, 2FA enrollment and login endpoints.

Routes:
  POST /api/register     -- create account; returns TOTP secret + otpauth URI (201)
  POST /api/verify-2fa   -- confirm enrollment with a first TOTP code (200)
  POST /api/login        -- password + TOTP code; returns session token (200)

All three are public. Failures are raised as core.errors exceptions and
rendered by the SecurePassError handler in api/main.py.

Security:
  [H2] All three routes are rate-limited per client IP (Settings.auth_rate_limit).
  [C1] auth.service.login() uses authenticate_user() -- timing equalized.
  [M5] Cache-Control: no-store on responses that carry a secret or token.

Handlers are plain `def` so FastAPI runs them in its threadpool; bcrypt
hashing never blocks the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from api.limiter import auth_rate_limit, limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    VerifyTwoFactorRequest,
    VerifyTwoFactorResponse,
)
from auth import service
from auth.store import UserStore

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(auth_rate_limit)  # [H2]
def register(request: Request, response: Response, body: RegisterRequest) -> RegisterResponse:
    """Create an account in the Unenrolled state and hand back its TOTP secret."""
    user_store: UserStore = request.app.state.user_store
    provisioned = service.register(user_store, body.username, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return RegisterResponse(
        message="User registered successfully. Please set up 2FA.",
        secret_base32=provisioned.secret_base32,
        manual_entry_code=provisioned.secret_base32,
        enrollment_uri=provisioned.enrollment_uri,
    )


@router.post("/verify-2fa", response_model=VerifyTwoFactorResponse)
@limiter.limit(auth_rate_limit)  # [H2]
def verify_two_factor(request: Request, body: VerifyTwoFactorRequest) -> VerifyTwoFactorResponse:
    """Confirm 2FA enrollment. A wrong code is a 400 here, not a 401."""
    user_store: UserStore = request.app.state.user_store
    user = service.confirm_enrollment(user_store, body.username, body.code)
    return VerifyTwoFactorResponse(message="2FA setup completed successfully.", username=user.username)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(auth_rate_limit)  # [H2]
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with username, password and TOTP code; return a bearer token.

    Wrong username and wrong password produce the same invalid_credentials
    error. A wrong TOTP code produces invalid_code.
    """
    user_store: UserStore = request.app.state.user_store
    result = service.login(user_store, body.username, body.password, body.code)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse(
        message="Login successful.",
        session_token=result.access_token,
        username=result.username,
        expires_in=result.expires_in,
    )
