"""
Utility functions for the game engine: game creation, seating, and initial distribution.
"""

import math
import random

from riskgame.config import MIN_PLAYERS, MAX_PLAYERS
from riskgame.engine.state import (
    GameState,
    PlayerState,
    TerritoryState,
    STATUS_WAITING,
    STATUS_SETUP,
    PHASE_REINFORCEMENT,
)
from riskgame.engine.definitions import MapDefinition, PLAYER_COLORS
from riskgame.engine.errors import ValidationError
from riskgame.engine.rules import calculate_initial_armies, distribute_territories


def create_game(game_id: str, game_map: MapDefinition) -> GameState:
    """A new game waiting for players. Territories are empty until start_game."""
    return GameState(
        game_id=game_id,
        map_id=game_map.id,
        status=STATUS_WAITING,
        phase=PHASE_REINFORCEMENT,
        current_player_index=0,
        turn_number=0,
        territories={},
        players=[],
    )


def add_player(
    state: GameState,
    player_id: str,
    name: str,
    color: str | None = None,
    is_ai: bool = False,
) -> GameState:
    """
    Seat a player. Returns a new state.
    Color defaults to the first free palette color and must be unique in the game.
    """
    if state.status != STATUS_WAITING:
        raise ValidationError("Game has already started")
    if len(state.players) >= MAX_PLAYERS:
        raise ValidationError(f"Game is full ({MAX_PLAYERS} players)")
    if state.get_player(player_id) is not None:
        raise ValidationError(f"Player {player_id} has already joined")

    taken = {p.color for p in state.players}
    if color is None:
        color = next(c for c in PLAYER_COLORS if c not in taken)
    elif color not in PLAYER_COLORS:
        raise ValidationError(f"Unknown color: {color}")
    elif color in taken:
        raise ValidationError(f"Color {color} is already taken")

    new_state = state.copy()
    new_state.players.append(PlayerState(
        id=player_id,
        name=name,
        color=color,
        turn_order=len(new_state.players),
        is_ai=is_ai,
    ))
    return new_state


def start_game(
    state: GameState,
    game_map: MapDefinition,
    rng: random.Random | None = None,
) -> GameState:
    """
    Deal territories and move the game into setup.

    Every territory gets 1 army. Each player's remaining allotment is
    initial armies - ceil(territories / players), never negative.
    """
    if state.status != STATUS_WAITING:
        raise ValidationError("Game has already started")
    if len(state.players) < MIN_PLAYERS:
        raise ValidationError(f"Need at least {MIN_PLAYERS} players to start")

    new_state = state.copy()
    player_ids = [p.id for p in new_state.players]
    assignment = distribute_territories(game_map.territory_ids(), player_ids, rng)
    new_state.territories = {
        tid: TerritoryState(owner=assignment[tid], armies=1)
        for tid in game_map.territory_ids()
    }

    per_player = math.ceil(len(assignment) / len(player_ids))
    initial = calculate_initial_armies(len(player_ids))
    for player in new_state.players:
        player.armies_available = max(0, initial - per_player)

    new_state.map_id = game_map.id
    new_state.status = STATUS_SETUP
    new_state.phase = PHASE_REINFORCEMENT
    new_state.current_player_index = 0
    new_state.turn_number = 1
    return new_state


def print_game_state(state: GameState, game_map: MapDefinition):
    """
    Pretty-print the current game state.
    """
    current = state.current_player()
    print(f"\n{'='*60}")
    print(
        f"Turn {state.turn_number} | Status: {state.status} | "
        f"Player: {current.id if current else '-'} | Phase: {state.phase}")
    print(f"{'='*60}")

    for cid, continent in game_map.continents.items():
        print(f"\n{continent.display_name} (+{continent.bonus})")
        for tid in continent.territories:
            ts = state.territories.get(tid)
            if ts is None:
                continue
            owner_str = ts.owner or "unclaimed"
            print(f"  {game_map.territories[tid].display_name:<24} {owner_str:<12} {ts.armies}")

    print(f"\n{'Players':.<40}")
    for player in state.players:
        status = "eliminated" if player.eliminated else f"{player.armies_available} to place"
        owned = len(state.territories_owned_by(player.id))
        print(f"  {player.id} ({player.color}): {owned} territories, {status}")
    if state.winner:
        print(f"\nWinner: {state.winner}")
    print()
