"""
vault/store.py -- Owner-scoped CRUD over a user's vault entries.

Every operation takes the owner's user_id (from the verified session token)
and only ever touches that user's entry list. There is no lookup by entry id
across users, so one user cannot read or delete another user's entries even
if they know the id.

Concurrency:
  Entries live on the user record, so add/delete are load-mutate-save.
  Two unsynchronized writers for the same user would both load the same list
  and the second save would drop the first writer's change. Two layers close
  that gap:
    1. UserStore.lock_for(user_id) serializes mutations within this process
       (route handlers run in FastAPI's threadpool). Enrollment takes the
       same lock, so it cannot race a vault edit on the same row.
    2. UserStore.save() is a conditional update on the row version, so a
       writer in another process holding a stale list gets
       ConcurrentModificationError (409) instead of a lost update.

Usage:
    vault = VaultStore(user_store)
    entry = vault.add_entry(uid, "github.com", "alice", "s3cret")
    vault.list_entries(uid)
    vault.delete_entry(uid, entry.id)
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from auth.models import User, VaultEntry
from auth.store import UserStore
from core.errors import NotFoundError, ValidationError, operation_boundary

logger = logging.getLogger("securepass.vault")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_entry_id(existing: list[VaultEntry]) -> str:
    taken = {e.id for e in existing}
    while True:
        entry_id = secrets.token_hex(12)
        if entry_id not in taken:
            return entry_id


class VaultStore:
    """Vault entry operations scoped to a single owner."""

    def __init__(self, users: UserStore) -> None:
        self._users = users

    def _load_owner(self, user_id: int) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError()
        return user

    def list_entries(self, user_id: int) -> list[VaultEntry]:
        """Return the owner's entries in insertion order (empty list if none)."""
        with operation_boundary("list_entries"):
            return list(self._load_owner(user_id).vault_entries)

    def add_entry(
        self,
        user_id: int,
        site: str | None,
        entry_username: str | None,
        secret_value: str | None,
    ) -> VaultEntry:
        """Append a new entry to the owner's list and return it with its id."""
        with operation_boundary("add_entry"):
            fields = (site, entry_username, secret_value)
            if any(not f for f in fields):
                raise ValidationError("All fields are required.")

            with self._users.lock_for(user_id):
                user = self._load_owner(user_id)
                entry = VaultEntry(
                    site=site,
                    entry_username=entry_username,
                    secret_value=secret_value,
                    id=_new_entry_id(user.vault_entries),
                    created_at=_now_iso(),
                )
                user.vault_entries.append(entry)
                self._users.save(user)

            logger.info("Added vault entry %s for user %d", entry.id, user_id)
            return entry

    def delete_entry(self, user_id: int, entry_id: str) -> None:
        """Remove the entry with entry_id. Absent ids are not an error.

        The filtered list is saved either way, so the call always commits
        the owner's current list.
        """
        with operation_boundary("delete_entry"):
            with self._users.lock_for(user_id):
                user = self._load_owner(user_id)
                before = len(user.vault_entries)
                user.vault_entries = [e for e in user.vault_entries if e.id != entry_id]
                self._users.save(user)

            if len(user.vault_entries) < before:
                logger.info("Deleted vault entry %s for user %d", entry_id, user_id)
