"""Unit tests for accounts/battle.py -- Player -> BattleData conversion."""

from accounts.battle import LANG_ENGLISH, player_to_battle_data
from accounts.models import PlayerState
from conftest import make_player


def test_battle_data_copies_identity_and_progress():
    state = PlayerState(
        rank=12,
        timed_high_score=987654,
        ranking_league=3,
        main_chara_id="300001",
        sub_chara_id="300002",
        main_chao_id="400000",
        sub_chao_id="400001",
    )
    player = make_player("42", username="Tails", last_login=1_700_000_000, player_state=state)

    data = player_to_battle_data(player)

    assert data.user_id == "42"
    assert data.username == "Tails"
    assert data.max_score == 987654
    assert data.league == 3
    assert data.login_time == 1_700_000_000
    assert data.rank == 12
    assert (data.main_chara_id, data.sub_chara_id) == ("300001", "300002")
    assert (data.main_chao_id, data.sub_chao_id) == ("400000", "400001")


def test_battle_data_placeholder_fields():
    data = player_to_battle_data(make_player("42"))
    assert (data.main_chao_level, data.sub_chao_level) == (2, 3)
    assert (data.main_chara_level, data.sub_chara_level) == (4, 5)
    assert data.go_on_win == 0
    assert data.is_sent_energy == 0
    assert data.language == LANG_ENGLISH
