"""
accounts/store.py -- SQLAlchemy Core persistence layer for Player accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_player / _player_to_row are the mappers. Protocol code never touches
SQL directly.

Concurrency:
  Read-modify-write on one account (login, migration, user password change)
  runs inside `with store.locked(player_id):`, a per-account threading.Lock
  acquired with a bounded timeout. No cross-account locking exists.

  save_player() is also a compare-and-swap on the `version` column, so a
  writer in another process holding a stale copy gets ConcurrentUpdateError
  instead of silently overwriting a newer row.

Ordering:
  find_players_by_secret() returns rows ordered by (created_at, id). created_at
  is written with microsecond precision; id breaks ties. "First match" in the
  migration flow therefore means "oldest account".

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/, auth/, or analytics/.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from accounts.models import Player, PlayerState
from core.credentials import new_key, new_migration_password, new_password, new_player_id
from core.db import engine_options, is_sqlite
from core.errors import ConcurrentUpdateError, NotFoundError, StorageError, StorageTimeoutError, storage_errors

logger = logging.getLogger("runauth.accounts")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'runauth.db'}"
_DEFAULT_TIMEOUT = 5.0

# A 10-digit id space makes a collision rare; a handful of retries is plenty.
_MAX_ID_ATTEMPTS = 5

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_players = Table(
    "players",
    _metadata,
    Column("id", String(20), primary_key=True),
    Column("username", String(255), nullable=False, server_default=""),
    Column("password", String(64), nullable=False),
    Column("login_key", String(64), nullable=False),
    Column("migration_password", String(64), nullable=False),
    Column("user_password", String(255), nullable=False, server_default=""),
    Column("last_login", Integer, nullable=False, server_default="0"),
    Column("player_state", Text, nullable=False),  # JSON blob
    Column("created_at", String(32), nullable=False),
    Column("version", Integer, nullable=False, server_default="1"),
    Index("ix_players_user_password", "user_password"),
    Index("ix_players_created_at", "created_at", "id"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so logins can read while another request writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class KeyedLocks:
    """One threading.Lock per key, created on demand and dropped when idle.

    Entries are reference-counted so the dict does not grow with every
    account that ever logged in.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [Lock, waiter count]

    @contextmanager
    def hold(self, key: str, timeout: float) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        acquired = entry[0].acquire(timeout=timeout)
        try:
            if not acquired:
                raise StorageTimeoutError(f"Timed out after {timeout}s waiting for lock on {key!r}")
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Player records.

    Usage:
        store = AccountStore()
        player = store.create_account()
        with store.locked(player.id):
            player = store.get_player(player.id)
            player.last_login = 1700000000
            store.save_player(player)
        store.close()

    Every method raises StorageError (never a raw SQLAlchemy exception) when
    the database fails.
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self.engine: Engine = create_engine(db_url, **engine_options(db_url, timeout))
        if is_sqlite(db_url):
            event.listen(self.engine, "connect", _set_wal_mode)
        self._locks = KeyedLocks()
        with storage_errors("Error creating account schema", SQLAlchemyError):
            _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self, player_id: str) -> Iterator[None]:
        """Serialize read-modify-write sequences on one account.

        Raises StorageTimeoutError if the lock is not free within self.timeout.
        """
        with self._locks.hold(player_id, self.timeout):
            yield

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_account(self, username: str = "") -> Player:
        """Allocate a new Player with fresh id and credentials and persist it.

        The id is checked for uniqueness by the primary key, not by a prior
        SELECT, so two concurrent registrations can never share an id: the
        loser of the race gets IntegrityError and draws a new one.
        """
        for _ in range(_MAX_ID_ATTEMPTS):
            player = Player(
                id=new_player_id(),
                username=username,
                password=new_password(),
                key=new_key(),
                migration_password=new_migration_password(),
                created_at=_now_iso(),
                version=1,
            )
            try:
                with self.engine.begin() as conn:
                    conn.execute(_players.insert().values(**_player_to_row(player)))
            except IntegrityError:
                logger.warning("Player id collision, drawing a new id")
                continue
            except SQLAlchemyError as exc:
                raise StorageError("Error creating account") from exc
            return player
        raise StorageError(f"Could not allocate a unique player id after {_MAX_ID_ATTEMPTS} attempts")

    def add_player(self, player: Player) -> None:
        """Insert a fully-formed Player with a caller-chosen id. Used to seed fixtures.

        created_at is stamped if empty and version starts at 1. Raises
        StorageError if the id is already taken.
        """
        if not player.created_at:
            player.created_at = _now_iso()
        player.version = 1
        with storage_errors(f"Error adding player {player.id!r}", SQLAlchemyError):
            with self.engine.begin() as conn:
                conn.execute(_players.insert().values(**_player_to_row(player)))

    def get_player(self, player_id: str) -> Player:
        """Return the Player with this id. Raises NotFoundError if there is none."""
        with storage_errors("Error getting player", SQLAlchemyError):
            with self.engine.connect() as conn:
                row = conn.execute(_players.select().where(_players.c.id == player_id)).fetchone()
        if row is None:
            raise NotFoundError(player_id)
        return _row_to_player(row)

    def save_player(self, player: Player) -> None:
        """Write all mutable fields of `player` back to its row.

        id and created_at are never rewritten. On success player.version is
        advanced to match the stored row, so the same object can be saved
        again. Raises NotFoundError if the row is gone and
        ConcurrentUpdateError if someone else saved it first.
        """
        values = _player_to_row(player)
        del values["id"]
        del values["created_at"]
        values["version"] = player.version + 1
        with storage_errors("Error saving player", SQLAlchemyError):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _players.update()
                    .where((_players.c.id == player.id) & (_players.c.version == player.version))
                    .values(**values)
                )
                current = None
                if result.rowcount == 0:
                    current = conn.execute(select(_players.c.version).where(_players.c.id == player.id)).scalar()
        if result.rowcount == 0:
            if current is None:
                raise NotFoundError(player.id)
            raise ConcurrentUpdateError(
                f"Player {player.id!r} was saved concurrently (have version {player.version}, stored {current})"
            )
        player.version += 1

    def find_players_by_secret(self, secret: str, migration_only: bool = False) -> list[Player]:
        """Return every Player whose secret equals `secret`, oldest first.

        migration_only=False matches the player-chosen user_password (the
        migration lookup). migration_only=True matches the server-issued
        migration_password instead. An empty secret matches nothing: accounts
        that never set a user password must not all match an empty lookup.
        """
        if not secret:
            return []
        column = _players.c.migration_password if migration_only else _players.c.user_password
        with storage_errors("Error finding players by secret", SQLAlchemyError):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _players.select().where(column == secret).order_by(_players.c.created_at, _players.c.id)
                ).fetchall()
        return [_row_to_player(r) for r in rows]

    def count_players(self) -> int:
        with storage_errors("Error counting players", SQLAlchemyError):
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_players)).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Account database health check failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------

_STATE_FIELDS = {f.name for f in fields(PlayerState)}


def _player_to_row(player: Player) -> dict:
    return {
        "id": player.id,
        "username": player.username,
        "password": player.password,
        "login_key": player.key,
        "migration_password": player.migration_password,
        "user_password": player.user_password,
        "last_login": player.last_login,
        "player_state": json.dumps(asdict(player.player_state)),
        "created_at": player.created_at,
        "version": player.version,
    }


def _row_to_player(row) -> Player:
    # Unknown keys in the JSON blob (written by a newer release) are dropped.
    raw_state = json.loads(row.player_state or "{}")
    state = PlayerState(**{k: v for k, v in raw_state.items() if k in _STATE_FIELDS})
    return Player(
        id=row.id,
        username=row.username,
        password=row.password,
        key=row.login_key,
        migration_password=row.migration_password,
        user_password=row.user_password,
        last_login=row.last_login,
        player_state=state,
        created_at=row.created_at,
        version=row.version,
    )
