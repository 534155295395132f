"""
API request and response models for SecurePass REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

JSON field names follow the client contract (camelCase: secretBase32,
enrollmentURI, sessionToken, entryUsername, ...). Python attributes stay
snake_case; an explicit alias per field does the translation (populate_by_name
keeps construction by attribute name working).

Request fields are Optional on purpose: "missing" is a domain validation
failure reported by the service layer with a specific message, not a schema
error. Older clients that send `token` for the TOTP code, or
`username`/`password` for a vault entry, are accepted via AliasChoices.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from auth.models import VaultEntry

# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/register."""

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class VerifyTwoFactorRequest(BaseModel):
    """Request body for POST /api/verify-2fa."""

    username: Optional[str] = Field(default=None, max_length=255)
    code: Optional[str] = Field(default=None, max_length=16, validation_alias=AliasChoices("code", "token"))


class LoginRequest(BaseModel):
    """Request body for POST /api/login."""

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    code: Optional[str] = Field(default=None, max_length=16, validation_alias=AliasChoices("code", "token"))


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    """Secret and provisioning URI, shown once so the user can enroll an authenticator."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str
    secret_base32: str = Field(alias="secretBase32")
    # Same value as secretBase32, for typing into an authenticator by hand.
    manual_entry_code: str = Field(alias="manualEntryCode")
    enrollment_uri: str = Field(alias="enrollmentURI")


class VerifyTwoFactorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    username: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str
    session_token: str = Field(alias="sessionToken")
    username: str
    expires_in: int = Field(alias="expiresIn")


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------


class VaultEntryCreate(BaseModel):
    """Request body for POST /api/passwords."""

    site: Optional[str] = Field(default=None, max_length=2048)
    entry_username: Optional[str] = Field(
        default=None,
        max_length=1024,
        validation_alias=AliasChoices("entryUsername", "entry_username", "username"),
    )
    secret_value: Optional[str] = Field(
        default=None,
        max_length=4096,
        validation_alias=AliasChoices("secretValue", "secret_value", "password"),
    )


class VaultEntryResponse(BaseModel):
    """One stored credential as returned to its owner."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    site: str
    entry_username: str = Field(alias="entryUsername")
    secret_value: str = Field(alias="secretValue")
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_entry(cls, entry: VaultEntry) -> "VaultEntryResponse":
        """Factory Method: the domain -> transport mapping lives next to the output model."""
        return cls(
            id=entry.id,
            site=entry.site,
            entry_username=entry.entry_username,
            secret_value=entry.secret_value,
            created_at=entry.created_at,
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    version: str
