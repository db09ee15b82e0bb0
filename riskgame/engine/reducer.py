"""
Main game reducer.
Applies moves to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.

Phase cycle for the current player:
    reinforcement -> attack -> fortify -> (next player's) reinforcement
"""

import logging
from typing import Iterable

from riskgame.engine.state import (
    GameState,
    STATUS_SETUP,
    STATUS_PLAYING,
    STATUS_FINISHED,
    PHASE_REINFORCEMENT,
    PHASE_ATTACK,
    PHASE_FORTIFY,
)
from riskgame.engine.actions import Move, MOVE_DEPLOY, MOVE_ATTACK, MOVE_FORTIFY, MOVE_SKIP
from riskgame.engine.definitions import MapDefinition
from riskgame.engine.combat import BattleContext, BattleModifier, BASE_MODIFIERS, resolve_round
from riskgame.engine.dice import DiceRoller
from riskgame.engine.errors import InvariantViolation
from riskgame.engine.queries import validate_move, payload_int
from riskgame.engine.rules import calculate_reinforcements, get_winner, is_player_eliminated
from riskgame.engine.events import (
    GameEvent,
    armies_placed,
    armies_fortified,
    battle_resolved,
    territory_conquered,
    player_eliminated,
    phase_changed,
    turn_started,
    setup_completed,
    victory,
)

logger = logging.getLogger(__name__)


def apply_move(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single move to the current state, returning new state and events.

    The input state is never modified. Callers are expected to validate first;
    the move is checked again here and an illegal one raises InvariantViolation.

    Args:
        state: Current game state
        move: Move to apply
        game_map: Territory graph the game is played on
        roller: Dice roller for attacks (defaults to a secure roller)
        modifiers: Battle modifiers in effect (none in the base ruleset)

    Returns:
        Tuple of (new_state, events) where events describe what happened
    """
    result = validate_move(state, move, game_map)
    if not result.valid:
        logger.error(
            "Refusing to apply invalid %s from %s in game %s: %s",
            move.type, move.player, state.game_id, result.error,
        )
        raise InvariantViolation(f"Cannot apply {move.type}: {result.error}")

    new_state = state.copy()
    events: list[GameEvent] = []

    if new_state.status == STATUS_SETUP:
        new_state, evts = _handle_setup_deploy(new_state, move, game_map)
        events.extend(evts)

    elif move.type == MOVE_DEPLOY:
        new_state, evts = _handle_deploy(new_state, move)
        events.extend(evts)

    elif move.type == MOVE_ATTACK:
        new_state, evts = _handle_attack(new_state, move, game_map, roller, modifiers)
        events.extend(evts)

    elif move.type == MOVE_FORTIFY:
        new_state, evts = _handle_fortify(new_state, move, game_map)
        events.extend(evts)

    elif move.type == MOVE_SKIP:
        new_state, evts = _handle_skip(new_state, move, game_map)
        events.extend(evts)

    else:
        raise InvariantViolation(f"Unknown move type: {move.type}")

    return new_state, events


def _place(state: GameState, move: Move) -> GameEvent:
    """Move troops from the player's pool onto the territory."""
    territory_id = move.payload["territory"]
    troops = payload_int(move.payload.get("troops"))
    player = state.get_player(move.player)
    state.territories[territory_id].armies += troops
    player.armies_available -= troops
    return armies_placed(player.id, territory_id, troops, player.armies_available)


def _handle_setup_deploy(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
) -> tuple[GameState, list[GameEvent]]:
    """Initial placement. The last army placed by the last player starts the game."""
    events = [_place(state, move)]
    state, evts = complete_setup(state, game_map)
    events.extend(evts)
    return state, events


def setup_is_complete(state: GameState) -> bool:
    """True once no active player has initial armies left to place."""
    return all(p.armies_available <= 0 for p in state.active_players())


def complete_setup(state: GameState, game_map: MapDefinition) -> tuple[GameState, list[GameEvent]]:
    """
    Flip setup -> playing if every allotment is placed; otherwise return state unchanged.
    Modifies state in place (callers pass a copy). The first player starts with
    their reinforcements already computed.
    """
    if state.status != STATUS_SETUP or not setup_is_complete(state):
        return state, []

    events: list[GameEvent] = []
    state.status = STATUS_PLAYING
    state.phase = PHASE_REINFORCEMENT
    state.turn_number = 1
    state.current_player_index = _first_active_index(state)
    first = state.players[state.current_player_index]
    first.armies_available = calculate_reinforcements(state, first.id, game_map)

    logger.info("Game %s setup complete, %s goes first", state.game_id, first.id)
    events.append(setup_completed(first.id))
    events.append(turn_started(state.turn_number, first.id, first.armies_available))
    return state, events


def _first_active_index(state: GameState) -> int:
    for i, player in enumerate(state.players):
        if not player.eliminated:
            return i
    raise InvariantViolation(f"Game {state.game_id} has no active players")


def _set_phase(state: GameState, new_phase: str, player_id: str) -> GameEvent:
    old_phase = state.phase
    state.phase = new_phase
    logger.debug("Game %s: %s %s -> %s", state.game_id, player_id, old_phase, new_phase)
    return phase_changed(old_phase, new_phase, player_id)


def _handle_deploy(state: GameState, move: Move) -> tuple[GameState, list[GameEvent]]:
    """
    Place reinforcements. Placing the last available army moves on to the attack phase.
    """
    events = [_place(state, move)]
    player = state.get_player(move.player)
    if player.armies_available == 0:
        events.append(_set_phase(state, PHASE_ATTACK, player.id))
    return state, events


def _handle_attack(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
    roller: DiceRoller | None,
    modifiers: Iterable[BattleModifier],
) -> tuple[GameState, list[GameEvent]]:
    """
    Fight one round of combat.

    On conquest:
    - ownership of `to` transfers to the attacker
    - move_in armies (default all but one, clamped to [1, remaining - 1]) move in
    - the defender is eliminated if they own nothing else, forfeiting their pool
    - the attacker wins if they now hold every territory
    """
    events: list[GameEvent] = []
    from_id = move.payload["from"]
    to_id = move.payload["to"]
    from_ts = state.territories[from_id]
    to_ts = state.territories[to_id]
    attacker_id = move.player
    defender_id = to_ts.owner

    context = BattleContext(
        attacking_armies=from_ts.armies,
        defending_armies=to_ts.armies,
        attacker=attacker_id,
        defender=defender_id,
        from_territory=from_id,
        to_territory=to_id,
    )
    outcome = resolve_round(
        from_ts.armies,
        to_ts.armies,
        roller=roller,
        modifiers=modifiers,
        context=context,
    )

    from_ts.armies -= outcome.attacker_losses
    to_ts.armies -= outcome.defender_losses
    if from_ts.armies < 1 or to_ts.armies < 0:
        raise InvariantViolation(
            f"Battle {from_id} -> {to_id} left {from_ts.armies}/{to_ts.armies} armies"
        )

    if outcome.conquered:
        remaining = from_ts.armies
        if remaining < 2:
            raise InvariantViolation(
                f"{from_id} has {remaining} armies left and cannot occupy {to_id}"
            )
        requested = payload_int(move.payload.get("move_in"))
        if requested is None:
            requested = remaining - 1
        moved = max(1, min(requested, remaining - 1))

        to_ts.owner = attacker_id
        to_ts.armies = moved
        from_ts.armies -= moved
        outcome.armies_moved = moved

    state.last_battle = outcome
    events.append(battle_resolved(attacker_id, defender_id, outcome))

    if outcome.conquered:
        events.append(territory_conquered(to_id, defender_id, attacker_id, outcome.armies_moved))
        events.extend(_check_elimination(state, defender_id, attacker_id))
        events.extend(_check_victory(state, attacker_id, game_map))

    return state, events


def _check_elimination(state: GameState, defender_id: str | None, attacker_id: str) -> list[GameEvent]:
    if defender_id is None or not is_player_eliminated(state, defender_id):
        return []
    defender = state.get_player(defender_id)
    if defender is None or defender.eliminated:
        return []
    forfeited = defender.armies_available
    defender.eliminated = True
    defender.armies_available = 0
    logger.info("Game %s: %s eliminated by %s", state.game_id, defender_id, attacker_id)
    return [player_eliminated(defender_id, attacker_id, forfeited)]


def _check_victory(state: GameState, player_id: str, game_map: MapDefinition) -> list[GameEvent]:
    """
    The mover wins by holding every territory, or by being the last player standing.
    """
    winner = get_winner(state, game_map)
    if winner != player_id:
        active = state.active_players()
        if len(active) == 1 and active[0].id == player_id:
            winner = player_id
        else:
            return []

    state.status = STATUS_FINISHED
    state.winner = winner
    logger.info("Game %s won by %s on turn %d", state.game_id, winner, state.turn_number)
    return [victory(winner, len(state.territories_owned_by(winner)))]


def _handle_fortify(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
) -> tuple[GameState, list[GameEvent]]:
    """Move troops between connected owned territories, then end the turn."""
    from_id = move.payload["from"]
    to_id = move.payload["to"]
    troops = payload_int(move.payload.get("troops"))

    state.territories[from_id].armies -= troops
    state.territories[to_id].armies += troops
    events = [armies_fortified(move.player, from_id, to_id, troops)]

    state, evts = _end_turn(state, game_map)
    events.extend(evts)
    return state, events


def _handle_skip(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
) -> tuple[GameState, list[GameEvent]]:
    """
    Skip the rest of the phase.
    Unplaced reinforcements stay in the pool when skipping reinforcement.
    """
    if state.phase == PHASE_REINFORCEMENT:
        return state, [_set_phase(state, PHASE_ATTACK, move.player)]
    if state.phase == PHASE_ATTACK:
        return state, [_set_phase(state, PHASE_FORTIFY, move.player)]
    if state.phase == PHASE_FORTIFY:
        return _end_turn(state, game_map)
    raise InvariantViolation(f"Cannot skip unknown phase {state.phase}")


def _end_turn(state: GameState, game_map: MapDefinition) -> tuple[GameState, list[GameEvent]]:
    """
    End the current turn and advance to the next active player.

    - phase resets to reinforcement
    - turn counter increments when play wraps past the last seat
    - the new player receives max(3, owned // 3) + continent bonuses
    """
    events: list[GameEvent] = []
    count = len(state.players)
    current = state.current_player_index
    next_index = None
    wrapped = False
    for step in range(1, count + 1):
        candidate = (current + step) % count
        if current + step >= count:
            wrapped = True
        if not state.players[candidate].eliminated:
            next_index = candidate
            break
    if next_index is None:
        raise InvariantViolation(f"Game {state.game_id} has no active players")

    if wrapped:
        state.turn_number += 1
    state.current_player_index = next_index
    state.last_battle = None

    player = state.players[next_index]
    events.append(_set_phase(state, PHASE_REINFORCEMENT, player.id))
    player.armies_available = calculate_reinforcements(state, player.id, game_map)
    events.append(turn_started(state.turn_number, player.id, player.armies_available))
    logger.debug(
        "Game %s turn %d: %s receives %d armies",
        state.game_id, state.turn_number, player.id, player.armies_available,
    )
    return state, events


def replay_moves(
    initial_state: GameState,
    moves: Iterable[Move],
    game_map: MapDefinition,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
) -> tuple[GameState, list[GameEvent]]:
    """
    Replay a series of moves from an initial state.
    Event sourcing: state is derived from the move log. Attacks only reproduce
    if the roller replays the same dice.

    Returns:
        Tuple of (final_state, all_events) after all moves applied
    """
    current_state = initial_state.copy()
    all_events: list[GameEvent] = []
    modifiers = tuple(modifiers)

    for move in moves:
        current_state, events = apply_move(
            current_state,
            move,
            game_map,
            roller=roller,
            modifiers=modifiers,
        )
        all_events.extend(events)

    return current_state, all_events
