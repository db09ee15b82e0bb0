"""
Simple computer opponent.

Predictable rather than strong: it spreads reinforcements over its weakest
territories, makes at most a couple of attacks from its strongest territory
against the weakest neighbour, and fortifies the front line from behind.
Every decision is an ordinary Move that goes through validation and the reducer.
"""

import logging
from typing import Iterable, Iterator

from riskgame.engine.state import GameState, STATUS_PLAYING, PHASE_REINFORCEMENT, PHASE_ATTACK, PHASE_FORTIFY
from riskgame.engine.actions import Move, MOVE_ATTACK, deploy, attack, fortify, skip
from riskgame.engine.definitions import MapDefinition
from riskgame.engine.combat import BattleModifier, BASE_MODIFIERS
from riskgame.engine.dice import DiceRoller
from riskgame.engine.events import GameEvent
from riskgame.engine.reducer import apply_move

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTACKS = 2


def decide_placements(state: GameState, player_id: str) -> list[tuple[str, int]]:
    """Place one army at a time on the weakest territory. Returns [(territory, troops)]."""
    player = state.get_player(player_id)
    if player is None or player.armies_available <= 0:
        return []
    armies = {tid: state.territories[tid].armies for tid in state.territories_owned_by(player_id)}
    if not armies:
        return []

    placed: dict[str, int] = {}
    for _ in range(player.armies_available):
        weakest = min(sorted(armies), key=lambda tid: armies[tid])
        armies[weakest] += 1
        placed[weakest] = placed.get(weakest, 0) + 1
    return list(placed.items())


def decide_attack(state: GameState, player_id: str, game_map: MapDefinition) -> tuple[str, str] | None:
    """Strongest owned territory (2+ armies) against its weakest enemy neighbour."""
    sources = sorted(
        (tid for tid in state.territories_owned_by(player_id) if state.territories[tid].armies >= 2),
        key=lambda tid: (-state.territories[tid].armies, tid),
    )
    for from_id in sources:
        targets = [
            tid for tid in game_map.neighbors(from_id)
            if tid in state.territories
            and state.territories[tid].owner not in (None, player_id)
        ]
        if targets:
            to_id = min(sorted(targets), key=lambda tid: state.territories[tid].armies)
            return from_id, to_id
    return None


def _borders_enemy(state: GameState, territory_id: str, player_id: str, game_map: MapDefinition) -> bool:
    return any(
        tid in state.territories and state.territories[tid].owner not in (None, player_id)
        for tid in game_map.neighbors(territory_id)
    )


def decide_fortify(state: GameState, player_id: str, game_map: MapDefinition) -> tuple[str, str, int] | None:
    """
    Move half the spare armies from a rear territory to an adjacent front-line one.
    Returns (from, to, troops) or None.
    """
    owned = state.territories_owned_by(player_id)
    front = [tid for tid in owned if _borders_enemy(state, tid, player_id, game_map)]
    rear = [
        tid for tid in owned
        if tid not in front
        and state.territories[tid].armies >= 3
        and any(game_map.are_adjacent(tid, f) for f in front)
    ]
    if not front or not rear:
        return None

    source = max(sorted(rear), key=lambda tid: state.territories[tid].armies)
    candidates = [f for f in front if game_map.are_adjacent(source, f)]
    destination = min(sorted(candidates), key=lambda tid: state.territories[tid].armies)
    troops = (state.territories[source].armies - 1) // 2
    if troops < 1:
        return None
    return source, destination, troops


def next_ai_move(
    state: GameState,
    player_id: str,
    game_map: MapDefinition,
    attacks_made: int = 0,
    max_attacks: int = DEFAULT_MAX_ATTACKS,
) -> Move:
    """The single next move for player_id in the current phase."""
    if state.phase == PHASE_REINFORCEMENT:
        placements = decide_placements(state, player_id)
        if placements:
            territory_id, troops = placements[0]
            return deploy(player_id, territory_id, troops)
        return skip(player_id)

    if state.phase == PHASE_ATTACK:
        if attacks_made < max_attacks:
            target = decide_attack(state, player_id, game_map)
            if target is not None:
                return attack(player_id, target[0], target[1])
        return skip(player_id)

    if state.phase == PHASE_FORTIFY:
        plan = decide_fortify(state, player_id, game_map)
        if plan is not None:
            return fortify(player_id, *plan)
    return skip(player_id)


def iter_ai_turn(
    state: GameState,
    game_map: MapDefinition,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
    max_attacks: int = DEFAULT_MAX_ATTACKS,
) -> Iterator[tuple[Move, GameState, list[GameEvent]]]:
    """
    Yield (move, state_after, events) for each move of the current player's turn.
    Stops once the turn passes or the game ends. The input state is never mutated.
    """
    current = state.current_player()
    if state.status != STATUS_PLAYING or current is None:
        return

    player_id = current.id
    seat = state.current_player_index
    attacks_made = 0
    modifiers = tuple(modifiers)

    while state.status == STATUS_PLAYING and state.current_player_index == seat:
        move = next_ai_move(state, player_id, game_map, attacks_made, max_attacks)
        state, events = apply_move(state, move, game_map, roller=roller, modifiers=modifiers)
        if move.type == MOVE_ATTACK:
            attacks_made += 1
        yield move, state, events


def play_ai_turn(
    state: GameState,
    game_map: MapDefinition,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
    max_attacks: int = DEFAULT_MAX_ATTACKS,
) -> tuple[GameState, list[Move], list[GameEvent]]:
    """
    Play the current player's whole turn.
    Returns (new_state, moves_applied, events).
    """
    new_state = state.copy()
    moves: list[Move] = []
    events: list[GameEvent] = []
    for move, new_state, evts in iter_ai_turn(state, game_map, roller, modifiers, max_attacks):
        moves.append(move)
        events.extend(evts)

    if moves:
        logger.debug("AI %s played %d moves", moves[0].player, len(moves))
    return new_state, moves, events
