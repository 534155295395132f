"""
auth/store.py -- SQLAlchemy Core persistence layer for users and their vault.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _entry_to_dict are the mappers.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  UNIQUE(username) is enforced by the schema, so two concurrent registrations
  of the same name cannot both commit -- the loser gets ConflictError.

Vault entries are stored as a JSON array on the owning user row (same
approach as JSON-serialized list columns elsewhere). The list is only ever
written through save(), which is a conditional UPDATE keyed on the row's
version column: a writer holding a stale copy gets ConcurrentModificationError
instead of silently overwriting a newer list.

DB path default: securepass.db at the project root (see core.config).

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

import json
import threading
import weakref
from dataclasses import asdict
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User, VaultEntry
from core.config import get_settings
from core.errors import ConcurrentModificationError, ConflictError, NotFoundError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("totp_secret", String(64), nullable=False),
    Column("totp_enabled", Integer, nullable=False, server_default="0"),
    Column("vault_entries", Text, nullable=False, server_default="[]"),  # JSON array
    Column("version", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and the vault entries they own.

    Usage:
        store = UserStore()
        uid = store.create_user(User(username="alice", hashed_password=h, totp_secret=s))
        user = store.get_by_id(uid)
        user.totp_enabled = True
        store.save(user)
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        # Per-user mutation locks. Weak values: a lock lives only while some
        # caller references it, so the registry does not grow with every user seen.
        self._locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def lock_for(self, user_id: int) -> threading.Lock:
        """Return the in-process lock that serializes load-mutate-save for one user.

        Every caller that loads a user, changes it and calls save() takes this
        lock around the whole sequence (enrollment and vault edits alike).
        Writers in other processes are still caught by the version check in
        save().
        """
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned ID.

        Raises ConflictError if the username already exists. The UNIQUE
        constraint is the arbiter, not a prior lookup, so the check holds
        under concurrent registrations.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        hashed_password=user.hashed_password,
                        totp_secret=user.totp_secret,
                        totp_enabled=1 if user.totp_enabled else 0,
                        vault_entries=_dump_entries(user.vault_entries),
                        version=0,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError() from exc
        user.id = result.inserted_primary_key[0]
        user.version = 0
        user.created_at = created_at
        return user.id

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def save(self, user: User) -> None:
        """Persist the mutable parts of a user: totp_enabled and vault_entries.

        username, hashed_password and totp_secret are immutable and never
        written here. totp_enabled is monotonic: a False on the dataclass
        keeps whatever the row already holds.

        The UPDATE only matches while the row's version equals user.version.
        Raises ConcurrentModificationError when another writer got there
        first, NotFoundError when the user no longer exists. On success
        user.version is advanced to match the row.
        """
        if user.id is None:
            raise NotFoundError()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user.id) & (_users.c.version == user.version))
                .values(
                    totp_enabled=1 if user.totp_enabled else _users.c.totp_enabled,
                    vault_entries=_dump_entries(user.vault_entries),
                    version=_users.c.version + 1,
                )
            )
            conn.commit()
            if result.rowcount == 0:
                exists = conn.execute(select(_users.c.id).where(_users.c.id == user.id)).first()
                if exists is None:
                    raise NotFoundError()
                raise ConcurrentModificationError()
        user.version += 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _dump_entries(entries: list[VaultEntry]) -> str:
    return json.dumps([asdict(e) for e in entries])


def _load_entries(raw: str | None) -> list[VaultEntry]:
    if not raw:
        return []
    return [VaultEntry(**item) for item in json.loads(raw)]


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        totp_secret=row.totp_secret,
        totp_enabled=bool(row.totp_enabled),
        vault_entries=_load_entries(row.vault_entries),
        version=row.version,
        created_at=row.created_at,
    )
