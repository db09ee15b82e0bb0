"""
Army arithmetic and end-of-game conditions.
Pure functions over GameState and the map.
"""

import random
from typing import Sequence

from riskgame.engine import MIN_REINFORCEMENTS, TERRITORIES_PER_REINFORCEMENT
from riskgame.engine.state import GameState
from riskgame.engine.definitions import MapDefinition

# Initial armies per player, by player count
INITIAL_ARMIES = {
    2: 40,
    3: 35,
    4: 30,
    5: 25,
    6: 20,
}
DEFAULT_INITIAL_ARMIES = 30


def owns_continent(state: GameState, player_id: str, continent_id: str, game_map: MapDefinition) -> bool:
    members = game_map.members(continent_id)
    return bool(members) and all(
        tid in state.territories and state.territories[tid].owner == player_id
        for tid in members
    )


def calculate_continent_bonuses(state: GameState, player_id: str, game_map: MapDefinition) -> dict[str, int]:
    """continent_id -> bonus, for every continent the player holds completely."""
    return {
        cid: continent.bonus
        for cid, continent in game_map.continents.items()
        if owns_continent(state, player_id, cid, game_map)
    }


def calculate_reinforcements(state: GameState, player_id: str, game_map: MapDefinition) -> int:
    """
    Armies granted at the start of a turn:
    max(3, owned // 3) + bonuses of fully-held continents.
    """
    owned = len(state.territories_owned_by(player_id))
    base = max(MIN_REINFORCEMENTS, owned // TERRITORIES_PER_REINFORCEMENT)
    return base + sum(calculate_continent_bonuses(state, player_id, game_map).values())


def is_player_eliminated(state: GameState, player_id: str) -> bool:
    """A player is out once they own no territory."""
    return not any(ts.owner == player_id for ts in state.territories.values())


def get_winner(state: GameState, game_map: MapDefinition) -> str | None:
    """The player owning every territory on the map, if any."""
    owners = {
        state.territories[tid].owner if tid in state.territories else None
        for tid in game_map.territory_ids()
    }
    if len(owners) == 1:
        (owner,) = owners
        return owner
    return None


def calculate_initial_armies(player_count: int) -> int:
    return INITIAL_ARMIES.get(player_count, DEFAULT_INITIAL_ARMIES)


def distribute_territories(
    territory_ids: Sequence[str],
    player_ids: Sequence[str],
    rng: random.Random | None = None,
) -> dict[str, str]:
    """
    Shuffle territories (Fisher-Yates) and deal them round-robin.
    Returns territory_id -> player_id. The first players get one extra when it doesn't divide evenly.
    """
    if not player_ids:
        raise ValueError("Cannot distribute territories to zero players")
    rng = rng if rng is not None else random.SystemRandom()
    shuffled = list(territory_ids)
    rng.shuffle(shuffled)
    return {tid: player_ids[i % len(player_ids)] for i, tid in enumerate(shuffled)}
