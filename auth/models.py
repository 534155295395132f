"""
auth/models.py -- Domain dataclasses for identity and vault entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these classes only own the domain shape.

VaultEntry lives here rather than in vault/ because entries are owned by the
User record and persisted by UserStore -- there is no entry without a user.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class VaultEntry:
    """One stored site credential.

    secret_value is opaque to the system and stored as supplied (see the
    plaintext-storage note in DESIGN.md).
    """

    site: str
    entry_username: str
    secret_value: str
    id: str = ""
    created_at: str = ""  # ISO 8601, set on insertion, never modified


@dataclass
class User:
    """A registered identity and everything it owns.

    totp_enabled flips to True once, on the first successful enrollment code,
    and UserStore.save() never writes it back to False.

    version is the optimistic concurrency counter. save() only succeeds when
    the stored version still matches, then advances it.

    id is None before the record is written to the database.
    """

    username: str
    hashed_password: str
    totp_secret: str
    totp_enabled: bool = False
    vault_entries: list[VaultEntry] = field(default_factory=list)
    id: int | None = None
    version: int = 0
    created_at: str | None = None


@dataclass(frozen=True)
class TokenIdentity:
    """What a verified session token resolves to."""

    user_id: int
    username: str
