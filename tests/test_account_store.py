"""Unit tests for accounts/store.py -- AccountStore persistence and locking.

Covers:
- create_account() allocates unique ids and non-empty credentials
- get_player() / save_player() round trip mutable fields, NotFoundError
- save_player() version check rejects stale writes
- find_players_by_secret() matching rules and oldest-first order
- locked() serializes per key and times out
- driver failures surface as StorageError
"""

import threading

import pytest
from sqlalchemy import text

from accounts.store import AccountStore, KeyedLocks
from conftest import make_player
from core.errors import ConcurrentUpdateError, NotFoundError, StorageError, StorageTimeoutError


class TestCreateAccount:
    def test_new_account_has_credentials(self, accounts: AccountStore) -> None:
        player = accounts.create_account(username="Runner")
        assert player.id and player.id != "0"
        assert player.password
        assert player.key
        assert player.migration_password
        assert player.user_password == ""
        assert player.username == "Runner"
        assert player.version == 1

    def test_new_account_is_persisted(self, accounts: AccountStore) -> None:
        player = accounts.create_account()
        stored = accounts.get_player(player.id)
        assert stored.password == player.password
        assert stored.key == player.key
        assert stored.created_at == player.created_at

    def test_concurrent_registrations_get_unique_ids(self, accounts: AccountStore) -> None:
        ids: list[str] = []
        errors: list[Exception] = []
        lock = threading.Lock()

        def register() -> None:
            try:
                player = accounts.create_account()
            except Exception as exc:  # surfaced below
                errors.append(exc)
                return
            with lock:
                ids.append(player.id)

        threads = [threading.Thread(target=register) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(ids) == 20
        assert len(set(ids)) == 20
        assert accounts.count_players() == 20

    def test_id_collision_draws_new_id(self, accounts: AccountStore, monkeypatch) -> None:
        accounts.add_player(make_player("1111111111"))
        drawn = iter(["1111111111", "2222222222"])
        monkeypatch.setattr("accounts.store.new_player_id", lambda: next(drawn))
        player = accounts.create_account()
        assert player.id == "2222222222"


class TestGetAndSave:
    def test_get_missing_player_raises_not_found(self, accounts: AccountStore) -> None:
        with pytest.raises(NotFoundError) as excinfo:
            accounts.get_player("99")
        assert excinfo.value.player_id == "99"

    def test_save_round_trips_mutable_fields(self, accounts: AccountStore) -> None:
        accounts.add_player(make_player("42"))
        player = accounts.get_player("42")
        player.last_login = 1_700_000_000
        player.user_password = "mine"
        player.player_state.timed_high_score = 12345
        accounts.save_player(player)

        stored = accounts.get_player("42")
        assert stored.last_login == 1_700_000_000
        assert stored.user_password == "mine"
        assert stored.player_state.timed_high_score == 12345
        assert stored.version == 2
        assert player.version == 2

    def test_stale_save_is_rejected(self, accounts: AccountStore) -> None:
        accounts.add_player(make_player("42"))
        first = accounts.get_player("42")
        second = accounts.get_player("42")
        first.last_login = 1
        accounts.save_player(first)

        second.password = "overwrite"
        with pytest.raises(ConcurrentUpdateError):
            accounts.save_player(second)
        assert accounts.get_player("42").password == "hunter2"

    def test_save_missing_player_raises_not_found(self, accounts: AccountStore) -> None:
        with pytest.raises(NotFoundError):
            accounts.save_player(make_player("404", version=1))

    def test_duplicate_add_raises_storage_error(self, accounts: AccountStore) -> None:
        accounts.add_player(make_player("42"))
        with pytest.raises(StorageError):
            accounts.add_player(make_player("42"))


class TestFindBySecret:
    def test_matches_user_password_oldest_first(self, accounts: AccountStore) -> None:
        accounts.add_player(make_player("3", user_password="shared", created_at="2024-01-03T00:00:00.000000+00:00"))
        accounts.add_player(make_player("1", user_password="shared", created_at="2024-01-01T00:00:00.000000+00:00"))
        accounts.add_player(make_player("2", user_password="other", created_at="2024-01-02T00:00:00.000000+00:00"))

        found = accounts.find_players_by_secret("shared")
        assert [p.id for p in found] == ["1", "3"]

    def test_creation_time_ties_break_on_id(self, accounts: AccountStore) -> None:
        stamp = "2024-01-01T00:00:00.000000+00:00"
        accounts.add_player(make_player("b", user_password="s", created_at=stamp))
        accounts.add_player(make_player("a", user_password="s", created_at=stamp))
        assert [p.id for p in accounts.find_players_by_secret("s")] == ["a", "b"]

    def test_migration_only_matches_migration_password(self, accounts: AccountStore) -> None:
        accounts.add_player(make_player("1", user_password="migrate123", migration_password="zzz"))
        accounts.add_player(make_player("2", migration_password="migrate123"))
        assert [p.id for p in accounts.find_players_by_secret("migrate123", migration_only=True)] == ["2"]
        assert [p.id for p in accounts.find_players_by_secret("migrate123")] == ["1"]

    def test_empty_secret_matches_nothing(self, accounts: AccountStore) -> None:
        accounts.add_player(make_player("1"))  # user_password defaults to ""
        assert accounts.find_players_by_secret("") == []


class TestLocking:
    def test_locked_times_out_when_held(self, db_url: str) -> None:
        store = AccountStore(db_url, timeout=0.05)
        try:
            held = threading.Event()
            release = threading.Event()

            def holder() -> None:
                with store.locked("42"):
                    held.set()
                    release.wait(2)

            t = threading.Thread(target=holder)
            t.start()
            held.wait(2)
            with pytest.raises(StorageTimeoutError):
                with store.locked("42"):
                    pass
            # Other keys are unaffected.
            with store.locked("43"):
                pass
            release.set()
            t.join()
        finally:
            store.close()

    def test_keyed_locks_drop_idle_entries(self) -> None:
        locks = KeyedLocks()
        with locks.hold("a", 1.0):
            with locks.hold("b", 1.0):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_lock_released_after_exception(self, accounts: AccountStore) -> None:
        with pytest.raises(RuntimeError):
            with accounts.locked("42"):
                raise RuntimeError("boom")
        with accounts.locked("42"):
            pass


class TestStorageFailures:
    def test_driver_errors_become_storage_errors(self, accounts: AccountStore) -> None:
        with accounts.engine.begin() as conn:
            conn.execute(text("DROP TABLE players"))
        with pytest.raises(StorageError):
            accounts.get_player("42")
        with pytest.raises(StorageError):
            accounts.create_account()
        with pytest.raises(StorageError):
            accounts.find_players_by_secret("x")

    def test_ping(self, accounts: AccountStore) -> None:
        assert accounts.ping() is True
