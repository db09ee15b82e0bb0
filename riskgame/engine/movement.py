"""
Connectivity through owned territory.
"""

from collections import deque
from riskgame.engine.state import GameState
from riskgame.engine.definitions import MapDefinition


def reachable_owned(
    start: str,
    owner: str,
    state: GameState,
    game_map: MapDefinition,
) -> set[str]:
    """
    All territories reachable from start by a path whose every territory is owned by owner.
    BFS over the ownership-filtered subgraph. Includes start itself when owner holds it.
    """
    start_state = state.territories.get(start)
    if start_state is None or start_state.owner != owner:
        return set()

    visited = {start}
    queue: deque[str] = deque([start])

    while queue:
        territory_id = queue.popleft()
        for adjacent_id in game_map.neighbors(territory_id):
            if adjacent_id in visited:
                continue
            adjacent_state = state.territories.get(adjacent_id)
            if adjacent_state is None or adjacent_state.owner != owner:
                continue
            visited.add(adjacent_id)
            queue.append(adjacent_id)

    return visited


def are_connected(
    from_id: str,
    to_id: str,
    owner: str,
    state: GameState,
    game_map: MapDefinition,
) -> bool:
    """True if to_id is reachable from from_id through owner's territories only."""
    if from_id == to_id:
        ts = state.territories.get(from_id)
        return ts is not None and ts.owner == owner
    return to_id in reachable_owned(from_id, owner, state, game_map)
