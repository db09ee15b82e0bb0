"""
GameState copying and serialization.
"""

from riskgame.engine.actions import attack
from riskgame.engine.dice import FixedDiceRoller
from riskgame.engine.reducer import apply_move
from riskgame.engine.state import (
    GameState,
    PHASE_ATTACK,
    STATUS_WAITING,
    PHASE_REINFORCEMENT,
)
from riskgame.engine.tutorial import create_tutorial_game


def _after_battle(make_state, game_map):
    state = make_state(owners={"alaska": "p1"}, armies={"alaska": 5}, phase=PHASE_ATTACK)
    state, _ = apply_move(
        state,
        attack("p1", "alaska", "kamchatka", move_in=3),
        game_map,
        roller=FixedDiceRoller([[6, 6, 6], [2]]),
    )
    return state


def test_dict_and_json_round_trip(make_state, game_map):
    state = _after_battle(make_state, game_map)
    state.version = 4
    assert state.last_battle is not None
    assert GameState.from_dict(state.to_dict()) == state
    assert GameState.from_json(state.to_json()) == state
    assert GameState.from_json(state.to_json(indent=None)) == state


def test_tutorial_round_trip():
    state = create_tutorial_game("me")
    restored = GameState.from_json(state.to_json())
    assert restored == state
    assert restored.tutorial_step == 0
    assert restored.territories["brazil"].owner is None


def test_save_and_load(tmp_path, make_state, game_map):
    state = _after_battle(make_state, game_map)
    path = tmp_path / "game.json"
    state.save(str(path))
    assert GameState.load(str(path)) == state


def test_from_dict_tolerates_bad_input():
    state = GameState.from_dict({
        "status": "bogus",
        "phase": None,
        "territories": {"alaska": {"owner": "p1", "armies": "x"}, "junk": 3},
        "players": [{"id": "p1", "armies_available": None}, "nope"],
    })
    assert state.status == STATUS_WAITING
    assert state.phase == PHASE_REINFORCEMENT
    assert list(state.territories) == ["alaska"]
    assert state.territories["alaska"].armies == 0
    assert [p.id for p in state.players] == ["p1"]
    assert state.last_battle is None
    assert state.tutorial_step is None


def test_copy_is_deep(make_state):
    state = make_state()
    clone = state.copy()
    clone.territories["alaska"].armies = 99
    clone.players[0].armies_available = 12
    assert state.territories["alaska"].armies == 1
    assert state.players[0].armies_available == 0


def test_lookups(make_state):
    state = make_state(players=("p1", "p2", "p3"))
    state.players[1].eliminated = True
    assert state.get_player("p3").turn_order == 2
    assert state.get_player("zed") is None
    assert state.player_index("p3") == 2
    assert state.player_index("zed") == -1
    assert [p.id for p in state.active_players()] == ["p1", "p3"]
