"""
accounts/models.py -- Domain dataclasses for player accounts.

Pattern: Data class (pure data container, zero logic). AccountStore does the
persistence work; the protocols in auth/ mutate the mutable fields and hand
the record back to the store.

Layer rule: no imports from api/, auth/, or analytics/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Placeholder ids the client accepts for a fresh account.
DEFAULT_CHARA_ID = "300000"  # Sonic
DEFAULT_SUB_CHARA_ID = "-1"
DEFAULT_CHAO_ID = "-1"


@dataclass
class PlayerState:
    """Game progress snapshot. Opaque to the login core.

    Read by accounts/battle.py when building battle roster entries; nothing in
    auth/ touches it.
    """

    rank: int = 0
    timed_high_score: int = 0
    ranking_league: int = 0
    main_chara_id: str = DEFAULT_CHARA_ID
    sub_chara_id: str = DEFAULT_SUB_CHARA_ID
    main_chao_id: str = DEFAULT_CHAO_ID
    sub_chao_id: str = DEFAULT_CHAO_ID


@dataclass
class Player:
    """A persisted game account.

    id is allocated by AccountStore.create_account() and never changes.

    password is the primary credential handed to the client at registration
    and rotated by migration. key is the login key returned alongside it.

    user_password is chosen by the player via getMigrationPassword and is the
    lookup value for migration; it is empty until the player sets one.
    migration_password is generated at creation and must be presented
    together with user_password to migrate the account to a new device.

    last_login is a Unix timestamp (seconds, UTC). 0 = never logged in.
    version is bumped by every successful save; AccountStore rejects a save
    whose version does not match the stored row.
    """

    id: str
    username: str
    password: str
    key: str
    migration_password: str
    user_password: str = ""
    last_login: int = 0
    player_state: PlayerState = field(default_factory=PlayerState)
    created_at: str = ""  # ISO 8601, set by store on insert
    version: int = 0


@dataclass
class BattleData:
    """One entry in a battle roster, derived from a Player by accounts/battle.py."""

    user_id: str
    username: str
    max_score: int
    league: int
    login_time: int
    main_chao_id: str
    main_chao_level: int
    sub_chao_id: str
    sub_chao_level: int
    rank: int
    main_chara_id: str
    main_chara_level: int
    sub_chara_id: str
    sub_chara_level: int
    go_on_win: int
    is_sent_energy: int
    language: int
