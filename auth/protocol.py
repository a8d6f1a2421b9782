"""
auth/protocol.py -- AuthProtocol: the login state machine.

Every login request carries a user id ("0" = none) and a password ("" = none).
The four combinations select one branch:

    user id   password   branch         outcome
    -------   --------   ------------   -------------------------------------
    absent    absent     REGISTER       new account; InvalidPassword + id/password/key
    absent    present    REJECT         InvalidRequestError, nothing written
    present   absent     KEY_CHECK      InvalidPassword + key, or MissingPlayer + ""
    present   present    AUTHENTICATE   lastLogin stamped, OK + session id/username

REGISTER answers InvalidPassword on purpose: the client stores the new
credentials and immediately logs in again with them.

KEY_CHECK answers InvalidPassword as well. That status tells the client to
follow up with an AUTHENTICATE request; it is not a failed login.

AUTHENTICATE accepts any non-empty password unless enforce_password is set,
because the client sends a value derived from the key rather than the stored
password. See DESIGN.md before turning the check on.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from accounts.store import AccountStore
from analytics.store import AnalyticsStore, AnalyticType
from auth.sessions import SessionRegistry
from core.credentials import secrets_match
from core.errors import InvalidRequestError, NotFoundError
from core.status import ErrorMessage, StatusCode

logger = logging.getLogger("runauth.auth")

NO_USER_ID = "0"


class LoginBranch(str, Enum):
    REGISTER = "register"
    REJECT = "reject"
    KEY_CHECK = "key_check"
    AUTHENTICATE = "authenticate"


@dataclass
class LoginResult:
    """Outcome of one login request. Fields not used by a branch stay empty."""

    branch: LoginBranch
    status: StatusCode
    error_message: ErrorMessage
    player_id: str = ""
    password: str = ""
    key: str = ""
    session_id: str = ""
    username: str = ""


def classify(user_id: str, password: str) -> LoginBranch:
    has_id = user_id != NO_USER_ID
    has_password = password != ""
    if not has_id:
        return LoginBranch.REJECT if has_password else LoginBranch.REGISTER
    return LoginBranch.AUTHENTICATE if has_password else LoginBranch.KEY_CHECK


def _unix_now() -> int:
    return int(time.time())


class AuthProtocol:
    """Executes login requests against the account store and session registry.

    Safe to share across request threads: the only mutable state lives in the
    stores, and every read-modify-write on an account runs under
    AccountStore.locked().
    """

    def __init__(
        self,
        accounts: AccountStore,
        sessions: SessionRegistry,
        analytics: AnalyticsStore,
        enforce_password: bool = False,
        default_username: str = "",
        clock: Callable[[], int] = _unix_now,
    ) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self.analytics = analytics
        self.enforce_password = enforce_password
        self.default_username = default_username
        self._clock = clock

    def login(self, user_id: str, password: str) -> LoginResult:
        """Classify the request and run the matching branch.

        Raises InvalidRequestError for the REJECT branch and StorageError if
        the database fails; every other outcome is a LoginResult.
        """
        branch = classify(user_id, password)
        logger.info("Login request entering %s branch", branch.value)
        if branch is LoginBranch.REGISTER:
            return self._register()
        if branch is LoginBranch.REJECT:
            raise InvalidRequestError("password supplied without a user id")
        if branch is LoginBranch.KEY_CHECK:
            return self._key_check(user_id)
        return self._authenticate(user_id, password)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def _register(self) -> LoginResult:
        player = self.accounts.create_account(username=self.default_username)
        logger.info("Registered new player %s", player.id)
        return LoginResult(
            branch=LoginBranch.REGISTER,
            status=StatusCode.INVALID_PASSWORD,
            error_message=ErrorMessage.BAD_PASSWORD,
            player_id=player.id,
            password=player.password,
            key=player.key,
        )

    def _key_check(self, user_id: str) -> LoginResult:
        try:
            player = self.accounts.get_player(user_id)
        except NotFoundError:
            logger.info("Key check for unknown player %s", user_id)
            return LoginResult(
                branch=LoginBranch.KEY_CHECK,
                status=StatusCode.MISSING_PLAYER,
                error_message=ErrorMessage.MISSING_PLAYER,
                key="",
            )
        return LoginResult(
            branch=LoginBranch.KEY_CHECK,
            status=StatusCode.INVALID_PASSWORD,
            error_message=ErrorMessage.BAD_PASSWORD,
            player_id=player.id,
            key=player.password,
        )

    def _authenticate(self, user_id: str, password: str) -> LoginResult:
        with self.accounts.locked(user_id):
            try:
                player = self.accounts.get_player(user_id)
            except NotFoundError:
                logger.info("Login for unknown player %s", user_id)
                return LoginResult(
                    branch=LoginBranch.AUTHENTICATE,
                    status=StatusCode.MISSING_PLAYER,
                    error_message=ErrorMessage.MISSING_PLAYER,
                )
            if self.enforce_password and not secrets_match(password, player.password):
                logger.info("Password mismatch for player %s", user_id)
                return LoginResult(
                    branch=LoginBranch.AUTHENTICATE,
                    status=StatusCode.INVALID_PASSWORD,
                    error_message=ErrorMessage.BAD_PASSWORD,
                    player_id=player.id,
                )
            player.last_login = self._clock()
            self.accounts.save_player(player)
            session_id = self.sessions.assign_session(player.id)

        self.analytics.record(player.id, AnalyticType.LOGINS)
        logger.info("Player %s logged in", player.id)
        return LoginResult(
            branch=LoginBranch.AUTHENTICATE,
            status=StatusCode.OK,
            error_message=ErrorMessage.OK,
            player_id=player.id,
            session_id=session_id,
            username=player.username,
        )
