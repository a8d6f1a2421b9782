"""
auth/migration.py -- MigrationProtocol: moving an account to a new device.

Two secrets are involved:
  user_password       chosen by the player on the old device through
                      getMigrationPassword; used to FIND the account.
  migration_password  issued by the server at account creation and shown to
                      the player by getMigrationPassword; used to AUTHORIZE
                      the move.

A successful migration rotates the primary password, so the old device's
credentials stop working, stamps last_login and issues a new session.

When several accounts share a user_password the oldest one is chosen
(AccountStore.find_players_by_secret orders by creation time).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from accounts.store import AccountStore
from auth.sessions import SessionRegistry
from core.credentials import LOWER_ALNUM, SECRET_LENGTH, generate_secret, secrets_match
from core.errors import InvalidRequestError, NotFoundError
from core.status import ErrorMessage, StatusCode

logger = logging.getLogger("runauth.migration")


@dataclass
class MigrationResult:
    status: StatusCode
    error_message: ErrorMessage
    player_id: str = ""
    username: str = ""
    password: str = ""
    session_id: str = ""


@dataclass
class MigrationPasswordResult:
    status: StatusCode
    error_message: ErrorMessage
    migration_password: str = ""


def _unix_now() -> int:
    return int(time.time())


class MigrationProtocol:
    """Looks up accounts by user password and migrates them."""

    def __init__(
        self,
        accounts: AccountStore,
        sessions: SessionRegistry,
        clock: Callable[[], int] = _unix_now,
    ) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self._clock = clock

    def migrate(self, user_password: str, migration_password: str) -> MigrationResult:
        """Migrate the account whose user password matches, if the migration password is right.

        MissingPlayer: no account has this user password.
        InvalidPassword: the account exists but the migration password is
            wrong. Nothing is written in that case.
        OK: new primary password issued, last_login stamped, session assigned.
        """
        matches = self.accounts.find_players_by_secret(user_password)
        if not matches:
            logger.info("Migration lookup found no player")
            return MigrationResult(status=StatusCode.MISSING_PLAYER, error_message=ErrorMessage.MISSING_PLAYER)
        if len(matches) > 1:
            logger.info("Migration lookup matched %d players, using oldest %s", len(matches), matches[0].id)

        candidate_id = matches[0].id
        with self.accounts.locked(candidate_id):
            # Re-read under the lock: the user password may have changed since the lookup.
            try:
                player = self.accounts.get_player(candidate_id)
            except NotFoundError:
                return MigrationResult(status=StatusCode.MISSING_PLAYER, error_message=ErrorMessage.MISSING_PLAYER)
            if not secrets_match(user_password, player.user_password):
                return MigrationResult(status=StatusCode.MISSING_PLAYER, error_message=ErrorMessage.MISSING_PLAYER)
            if not secrets_match(migration_password, player.migration_password):
                logger.info("Migration password mismatch for player %s", player.id)
                return MigrationResult(status=StatusCode.INVALID_PASSWORD, error_message=ErrorMessage.BAD_PASSWORD)

            new_password = generate_secret(LOWER_ALNUM, SECRET_LENGTH)
            while new_password == player.password:
                new_password = generate_secret(LOWER_ALNUM, SECRET_LENGTH)
            player.password = new_password
            player.last_login = self._clock()
            self.accounts.save_player(player)
            session_id = self.sessions.assign_session(player.id)

        logger.info("Player %s migrated to a new device", player.id)
        return MigrationResult(
            status=StatusCode.OK,
            error_message=ErrorMessage.OK,
            player_id=player.id,
            username=player.username,
            password=player.password,
            session_id=session_id,
        )

    def set_user_password(self, session_id: str, user_password: str) -> MigrationPasswordResult:
        """Store the caller's chosen user password and return their migration password.

        The caller is identified by session id. An unknown or expired session
        yields ExpirationSession; an empty user password is rejected because it
        would make the account unreachable by migration lookup.
        """
        if not user_password:
            raise InvalidRequestError("user password must not be empty")
        player_id = self.sessions.resolve(session_id)
        if player_id is None:
            return MigrationPasswordResult(
                status=StatusCode.EXPIRATION_SESSION, error_message=ErrorMessage.EXPIRED_SESSION
            )
        with self.accounts.locked(player_id):
            try:
                player = self.accounts.get_player(player_id)
            except NotFoundError:
                return MigrationPasswordResult(
                    status=StatusCode.MISSING_PLAYER, error_message=ErrorMessage.MISSING_PLAYER
                )
            player.user_password = user_password
            self.accounts.save_player(player)
        logger.info("Player %s set a user password", player_id)
        return MigrationPasswordResult(
            status=StatusCode.OK,
            error_message=ErrorMessage.OK,
            migration_password=player.migration_password,
        )
