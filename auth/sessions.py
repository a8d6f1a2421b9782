"""
auth/sessions.py -- SessionRegistry: session token issuance and lookup.

Policy: single active session per account. assign_session() replaces whatever
token the account held before, so the previous token stops resolving the
moment a new login or migration succeeds. Tokens do not expire unless
session_ttl_seconds is positive, in which case resolve() treats tokens older
than the TTL as unknown.

Tokens come from secrets.token_urlsafe(). session_id carries a UNIQUE
constraint; on the (astronomically unlikely) collision the registry draws a
new token rather than handing out a duplicate.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from sqlalchemy import Column, Float, MetaData, String, Table, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.credentials import new_session_token
from core.db import engine_options, is_sqlite
from core.errors import StorageError, storage_errors

logger = logging.getLogger("runauth.sessions")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'accounts' / 'runauth.db'}"
_MAX_TOKEN_ATTEMPTS = 3

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("player_id", String(20), primary_key=True),
    Column("session_id", String(128), nullable=False, unique=True),
    Column("issued_at", Float, nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SessionRegistry:
    """Maps each account to its one live session token.

    Usage:
        sessions = SessionRegistry(db_url, token_bytes=24)
        sid = sessions.assign_session("1234567890")
        sessions.resolve(sid)   # -> "1234567890"
    """

    def __init__(
        self,
        db_url: str = _DEFAULT_DB_URL,
        token_bytes: int = 24,
        ttl_seconds: int = 0,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.token_bytes = token_bytes
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.engine: Engine = create_engine(db_url, **engine_options(db_url, timeout))
        if is_sqlite(db_url):
            event.listen(self.engine, "connect", _set_wal_mode)
        with storage_errors("Error creating session schema", SQLAlchemyError):
            _metadata.create_all(self.engine)

    def assign_session(self, player_id: str) -> str:
        """Issue a fresh token for player_id, replacing any previous one."""
        for _ in range(_MAX_TOKEN_ATTEMPTS):
            token = new_session_token(self.token_bytes)
            try:
                with self.engine.begin() as conn:
                    conn.execute(_sessions.delete().where(_sessions.c.player_id == player_id))
                    conn.execute(_sessions.insert().values(player_id=player_id, session_id=token, issued_at=self._clock()))
            except IntegrityError:
                logger.warning("Session insert conflict for player %s, retrying", player_id)
                continue
            except SQLAlchemyError as exc:
                raise StorageError("Error assigning session ID") from exc
            return token
        raise StorageError(f"Could not assign a session after {_MAX_TOKEN_ATTEMPTS} attempts")

    def resolve(self, session_id: str) -> str | None:
        """Return the player id owning session_id, or None if unknown or expired."""
        if not session_id:
            return None
        with storage_errors("Error resolving session", SQLAlchemyError):
            with self.engine.connect() as conn:
                row = conn.execute(_sessions.select().where(_sessions.c.session_id == session_id)).fetchone()
        if row is None:
            return None
        if self.ttl_seconds > 0 and self._clock() - row.issued_at > self.ttl_seconds:
            return None
        return row.player_id

    def current_session(self, player_id: str) -> str | None:
        """Return the live token for player_id without checking expiry."""
        with storage_errors("Error reading session", SQLAlchemyError):
            with self.engine.connect() as conn:
                return conn.execute(select(_sessions.c.session_id).where(_sessions.c.player_id == player_id)).scalar()

    def close(self) -> None:
        self.engine.dispose()
