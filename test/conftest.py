"""
Shared fixtures: the classic map and a factory for hand-built game states.
"""

import pytest
from sqlalchemy.pool import StaticPool

from riskgame.api.database import init_db, make_engine, make_session_factory
from riskgame.api.store import GameStore
from riskgame.engine.definitions import PLAYER_COLORS, get_classic_map
from riskgame.engine.state import (
    GameState,
    PlayerState,
    TerritoryState,
    STATUS_PLAYING,
    PHASE_REINFORCEMENT,
)


@pytest.fixture
def game_map():
    return get_classic_map()


@pytest.fixture
def make_state(game_map):
    """
    Build a GameState over the classic map.

    owners: territory_id -> player id (or None for unclaimed); unlisted territories
    go to default_owner (the last player unless given).
    armies: territory_id -> armies; unlisted territories get default_armies.
    available: player id -> armies_available.
    """
    def _make(
        owners=None,
        armies=None,
        players=("p1", "p2"),
        default_owner="",
        default_armies=1,
        status=STATUS_PLAYING,
        phase=PHASE_REINFORCEMENT,
        current=0,
        available=None,
    ):
        owners = owners or {}
        armies = armies or {}
        available = available or {}
        if default_owner == "":
            default_owner = players[-1]
        territories = {}
        for tid in game_map.territory_ids():
            owner = owners[tid] if tid in owners else default_owner
            territories[tid] = TerritoryState(
                owner=owner,
                armies=armies.get(tid, default_armies if owner is not None else 0),
            )
        return GameState(
            game_id="g1",
            map_id=game_map.id,
            status=status,
            phase=phase,
            current_player_index=current,
            turn_number=1,
            territories=territories,
            players=[
                PlayerState(
                    id=pid,
                    name=pid.upper(),
                    color=PLAYER_COLORS[i],
                    turn_order=i,
                    armies_available=available.get(pid, 0),
                )
                for i, pid in enumerate(players)
            ],
        )

    return _make


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return GameStore(session_factory)
