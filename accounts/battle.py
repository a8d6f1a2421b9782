"""
accounts/battle.py -- Player -> BattleData conversion.

Levels are fixed placeholders; PlayerState does not track chao or character
levels yet.
"""

from __future__ import annotations

from accounts.models import BattleData, Player

LANG_ENGLISH = 1

_MAIN_CHAO_LEVEL = 2
_SUB_CHAO_LEVEL = 3
_MAIN_CHARA_LEVEL = 4
_SUB_CHARA_LEVEL = 5


def player_to_battle_data(player: Player) -> BattleData:
    """Build the battle roster entry shown to opponents for this player.

    max_score is the timed-mode high score, which is what the ranking league
    is computed from.
    """
    state = player.player_state
    return BattleData(
        user_id=player.id,
        username=player.username,
        max_score=state.timed_high_score,
        league=state.ranking_league,
        login_time=player.last_login,
        main_chao_id=state.main_chao_id,
        main_chao_level=_MAIN_CHAO_LEVEL,
        sub_chao_id=state.sub_chao_id,
        sub_chao_level=_SUB_CHAO_LEVEL,
        rank=state.rank,
        main_chara_id=state.main_chara_id,
        main_chara_level=_MAIN_CHARA_LEVEL,
        sub_chara_id=state.sub_chara_id,
        sub_chara_level=_SUB_CHARA_LEVEL,
        go_on_win=0,
        is_sent_energy=0,
        language=LANG_ENGLISH,
    )
