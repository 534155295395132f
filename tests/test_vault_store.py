"""Unit tests for vault/store.py -- owner-scoped vault entry operations.

Covers:
- Empty list for a new user; NotFoundError for a user that does not exist
- Entries come back in insertion order with generated ids and timestamps
- Empty or missing fields are rejected; whitespace values are stored as given
- Deleted entries never reappear; deleting an unknown id is a no-op
- One user's entries are invisible to and undeletable by another user
- Forced race: concurrent adds for the same user all survive
- Forced race: enrollment confirmed while an add is in flight loses neither write
"""

import threading
import time

import pyotp
import pytest

from auth import service
from auth.models import User
from auth.store import UserStore
from core.errors import NotFoundError, ValidationError
from vault.store import VaultStore


def _create(user_store: UserStore, username: str) -> int:
    return user_store.create_user(
        User(username=username, hashed_password="$2b$04$notarealhash", totp_secret="JBSWY3DPEHPK3PXP")
    )


class TestListAndAdd:
    def test_new_user_has_empty_vault(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        assert vault.list_entries(uid) == []

    def test_insertion_order(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        for site in ("github.com", "gitlab.com", "example.org"):
            vault.add_entry(uid, site, "alice", "x")
        assert [e.site for e in vault.list_entries(uid)] == ["github.com", "gitlab.com", "example.org"]

    def test_add_returns_stored_entry(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        entry = vault.add_entry(uid, "github.com", "alice", "s3cret")
        assert entry.id
        assert entry.created_at
        stored = vault.list_entries(uid)
        assert stored == [entry]

    def test_ids_unique(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        ids = {vault.add_entry(uid, f"site{i}", "u", "p").id for i in range(10)}
        assert len(ids) == 10

    @pytest.mark.parametrize(
        "site,entry_username,secret_value",
        [
            ("", "alice", "x"),
            ("github.com", "", "x"),
            ("github.com", "alice", ""),
            (None, "alice", "x"),
        ],
    )
    def test_validation(self, user_store: UserStore, vault: VaultStore, site, entry_username, secret_value) -> None:
        uid = _create(user_store, "alice")
        with pytest.raises(ValidationError):
            vault.add_entry(uid, site, entry_username, secret_value)
        assert vault.list_entries(uid) == []

    def test_whitespace_values_stored_verbatim(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        entry = vault.add_entry(uid, " intranet ", "   ", "pass phrase ")
        assert vault.list_entries(uid) == [entry]
        assert (entry.site, entry.entry_username, entry.secret_value) == (" intranet ", "   ", "pass phrase ")

    def test_unknown_user(self, vault: VaultStore) -> None:
        with pytest.raises(NotFoundError):
            vault.list_entries(999)
        with pytest.raises(NotFoundError):
            vault.add_entry(999, "github.com", "alice", "x")
        with pytest.raises(NotFoundError):
            vault.delete_entry(999, "whatever")


class TestDelete:
    def test_deleted_entry_never_reappears(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        keep = vault.add_entry(uid, "a.com", "alice", "1")
        gone = vault.add_entry(uid, "b.com", "alice", "2")
        vault.delete_entry(uid, gone.id)
        assert vault.list_entries(uid) == [keep]

        vault.add_entry(uid, "c.com", "alice", "3")
        assert gone.id not in {e.id for e in vault.list_entries(uid)}

    def test_unknown_id_is_noop(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        entry = vault.add_entry(uid, "a.com", "alice", "1")
        vault.delete_entry(uid, "does-not-exist")
        vault.delete_entry(uid, "does-not-exist")
        assert vault.list_entries(uid) == [entry]

    def test_ownership_scoping(self, user_store: UserStore, vault: VaultStore) -> None:
        alice = _create(user_store, "alice")
        bob = _create(user_store, "bob")
        entry = vault.add_entry(alice, "a.com", "alice", "1")

        assert vault.list_entries(bob) == []
        vault.delete_entry(bob, entry.id)
        assert vault.list_entries(alice) == [entry]


class _SlowLoadStore(UserStore):
    """UserStore whose get_by_id lingers after loading, widening the race window."""

    def get_by_id(self, user_id):
        user = super().get_by_id(user_id)
        time.sleep(0.05)
        return user


class TestConcurrentMutation:
    def test_concurrent_adds_all_survive(self, tmp_path) -> None:
        store = _SlowLoadStore(db_url=f"sqlite:///{tmp_path / 'race.db'}")
        vault = VaultStore(store)
        uid = _create(store, "alice")
        start = threading.Barrier(4)
        errors: list[BaseException] = []

        def add(site: str) -> None:
            start.wait()
            try:
                vault.add_entry(uid, site, "alice", "x")
            except BaseException as exc:  # surfaced through the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=add, args=(f"site{i}.com",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        try:
            assert errors == []
            assert sorted(e.site for e in vault.list_entries(uid)) == [f"site{i}.com" for i in range(4)]
        finally:
            store.close()

    def test_concurrent_add_and_delete(self, user_store: UserStore, vault: VaultStore) -> None:
        uid = _create(user_store, "alice")
        doomed = vault.add_entry(uid, "old.com", "alice", "x")
        start = threading.Barrier(2)

        def add() -> None:
            start.wait()
            vault.add_entry(uid, "new.com", "alice", "y")

        def delete() -> None:
            start.wait()
            vault.delete_entry(uid, doomed.id)

        threads = [threading.Thread(target=add), threading.Thread(target=delete)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert [e.site for e in vault.list_entries(uid)] == ["new.com"]

    def test_enrollment_during_add_loses_nothing(self, tmp_path) -> None:
        store = _SlowLoadStore(db_url=f"sqlite:///{tmp_path / 'race.db'}")
        vault = VaultStore(store)
        provisioned = service.register(store, "alice", "password123")
        uid = store.get_by_username("alice").id
        errors: list[BaseException] = []

        def add() -> None:
            try:
                vault.add_entry(uid, "github.com", "alice", "x")
            except BaseException as exc:  # surfaced through the assertion below
                errors.append(exc)

        adder = threading.Thread(target=add)
        adder.start()
        time.sleep(0.01)  # the add is now inside its slow load
        try:
            service.confirm_enrollment(store, "alice", pyotp.TOTP(provisioned.secret_base32).now())
            adder.join()

            assert errors == []
            user = store.get_by_id(uid)
            assert user.totp_enabled is True
            assert [e.site for e in user.vault_entries] == ["github.com"]
        finally:
            adder.join()
            store.close()
