"""
Move validation and query functions for UI integration.
These functions help the UI understand what moves are available
without mutating game state.
"""

from dataclasses import dataclass
from typing import Any
from riskgame.engine.state import (
    GameState,
    PlayerState,
    STATUS_WAITING,
    STATUS_SETUP,
    STATUS_PLAYING,
    STATUS_FINISHED,
    PHASE_REINFORCEMENT,
    PHASE_ATTACK,
    PHASE_FORTIFY,
)
from riskgame.engine.actions import Move, MOVE_DEPLOY, MOVE_ATTACK, MOVE_FORTIFY, MOVE_SKIP, MOVE_TYPES
from riskgame.engine.definitions import MapDefinition
from riskgame.engine.errors import ValidationError
from riskgame.engine.movement import are_connected, reachable_owned


# Phase rules: which move types are allowed in which phases
PHASE_ALLOWED_MOVES = {
    PHASE_REINFORCEMENT: [MOVE_DEPLOY, MOVE_SKIP],
    PHASE_ATTACK: [MOVE_ATTACK, MOVE_SKIP],
    PHASE_FORTIFY: [MOVE_FORTIFY, MOVE_SKIP],
}
SETUP_ALLOWED_MOVES = [MOVE_DEPLOY]


@dataclass
class ValidationResult:
    """Result of move validation."""
    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error}


def payload_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


# ===== Move Validation =====

def validate_move(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
) -> ValidationResult:
    """
    Validate a move without applying it.
    Returns ValidationResult with valid=True or valid=False with error message.
    Never mutates state; calling it twice gives the same answer.
    """
    if state.status == STATUS_FINISHED:
        return ValidationResult(False, "Game is over")
    if state.status == STATUS_WAITING:
        return ValidationResult(False, "Game has not started")

    if move.type not in MOVE_TYPES:
        return ValidationResult(False, f"Unknown move type: {move.type}")

    player = state.get_player(move.player)
    if player is None:
        return ValidationResult(False, f"Unknown player: {move.player}")
    if player.eliminated:
        return ValidationResult(False, "Player has been eliminated")

    if state.status == STATUS_SETUP:
        # Initial placement is simultaneous: any active player may deploy
        if move.type not in SETUP_ALLOWED_MOVES:
            return ValidationResult(False, f"Cannot {move.type} during setup")
        return _validate_deploy(state, move, player, game_map)

    if state.status != STATUS_PLAYING:
        return ValidationResult(False, f"Game is not in progress: {state.status}")

    current = state.current_player()
    if current is None or current.id != move.player:
        return ValidationResult(False, "Not your turn")

    allowed = PHASE_ALLOWED_MOVES.get(state.phase, [])
    if move.type not in allowed:
        return ValidationResult(
            False,
            f"Cannot {move.type} during {state.phase} phase. Allowed: {allowed}"
        )

    if move.type == MOVE_DEPLOY:
        return _validate_deploy(state, move, player, game_map)
    elif move.type == MOVE_ATTACK:
        return _validate_attack(state, move, game_map)
    elif move.type == MOVE_FORTIFY:
        return _validate_fortify(state, move, game_map)
    elif move.type == MOVE_SKIP:
        return ValidationResult(True)

    return ValidationResult(False, f"Unknown move type: {move.type}")


def ensure_valid(state: GameState, move: Move, game_map: MapDefinition) -> None:
    """Raise ValidationError carrying the rejection reason if the move is illegal."""
    result = validate_move(state, move, game_map)
    if not result.valid:
        raise ValidationError(result.error or "Invalid move")


def _check_territory(state: GameState, territory_id: Any, game_map: MapDefinition) -> str | None:
    if not isinstance(territory_id, str) or territory_id not in game_map.territories \
            or territory_id not in state.territories:
        return f"Unknown territory: {territory_id}"
    return None


def _validate_deploy(
    state: GameState,
    move: Move,
    player: PlayerState,
    game_map: MapDefinition,
) -> ValidationResult:
    """Validate a deploy move: own territory, 1 <= troops <= armies available."""
    territory_id = move.payload.get("territory")
    error = _check_territory(state, territory_id, game_map)
    if error:
        return ValidationResult(False, error)

    if state.territories[territory_id].owner != player.id:
        return ValidationResult(False, f"You do not own {territory_id}")

    troops = payload_int(move.payload.get("troops"))
    if troops is None:
        return ValidationResult(False, "Troops must be a whole number")
    if troops < 1:
        return ValidationResult(False, "Must deploy at least 1 army")
    if troops > player.armies_available:
        return ValidationResult(
            False,
            f"Not enough armies available: have {player.armies_available}, need {troops}"
        )
    return ValidationResult(True)


def _validate_attack(state: GameState, move: Move, game_map: MapDefinition) -> ValidationResult:
    """
    Validate an attack move.
    Validates:
    - from is owned by the mover and has at least 2 armies
    - to is owned by another player
    - from and to are adjacent
    - optional move_in is between 1 and from armies - 1
    """
    from_id = move.payload.get("from")
    to_id = move.payload.get("to")
    for tid in (from_id, to_id):
        error = _check_territory(state, tid, game_map)
        if error:
            return ValidationResult(False, error)

    from_ts = state.territories[from_id]
    to_ts = state.territories[to_id]

    if from_ts.owner != move.player:
        return ValidationResult(False, f"You do not own {from_id}")
    if to_ts.owner == move.player:
        return ValidationResult(False, "Cannot attack your own territory")
    if to_ts.owner is None:
        return ValidationResult(False, f"{to_id} is unclaimed")
    if from_ts.armies < 2:
        return ValidationResult(False, "Need at least 2 armies to attack")
    if not game_map.are_adjacent(from_id, to_id):
        return ValidationResult(False, f"{from_id} is not adjacent to {to_id}")

    if "move_in" in move.payload and move.payload["move_in"] is not None:
        move_in = payload_int(move.payload["move_in"])
        if move_in is None:
            return ValidationResult(False, "move_in must be a whole number")
        if move_in < 1:
            return ValidationResult(False, "Must move at least 1 army into a conquered territory")
        if move_in > from_ts.armies - 1:
            return ValidationResult(
                False,
                f"Cannot move more than {from_ts.armies - 1} armies into a conquered territory"
            )
    return ValidationResult(True)


def _validate_fortify(state: GameState, move: Move, game_map: MapDefinition) -> ValidationResult:
    """
    Validate a fortify move.
    Both territories owned by the mover, at least 1 army left behind,
    and a path between them through the mover's own territories.
    """
    from_id = move.payload.get("from")
    to_id = move.payload.get("to")
    for tid in (from_id, to_id):
        error = _check_territory(state, tid, game_map)
        if error:
            return ValidationResult(False, error)

    from_ts = state.territories[from_id]
    to_ts = state.territories[to_id]
    if from_ts.owner != move.player:
        return ValidationResult(False, f"You do not own {from_id}")
    if to_ts.owner != move.player:
        return ValidationResult(False, f"You do not own {to_id}")

    troops = payload_int(move.payload.get("troops"))
    if troops is None:
        return ValidationResult(False, "Troops must be a whole number")
    if troops < 1:
        return ValidationResult(False, "Must move at least 1 army")
    if from_ts.armies <= troops:
        return ValidationResult(False, f"Must leave at least 1 army in {from_id}")

    if not are_connected(from_id, to_id, move.player, state, game_map):
        return ValidationResult(False, f"{from_id} and {to_id} are not connected through your territories")
    return ValidationResult(True)


# ===== Query Functions =====

def get_available_move_types(state: GameState, player_id: str | None = None) -> list[str]:
    """Move types available right now (to player_id, or to the current player)."""
    if state.status == STATUS_SETUP:
        if player_id is None:
            return list(SETUP_ALLOWED_MOVES)
        player = state.get_player(player_id)
        if player is None or player.eliminated or player.armies_available <= 0:
            return []
        return list(SETUP_ALLOWED_MOVES)
    if state.status != STATUS_PLAYING:
        return []
    current = state.current_player()
    if current is None or (player_id is not None and current.id != player_id):
        return []
    return list(PHASE_ALLOWED_MOVES.get(state.phase, []))


def get_attack_options(
    state: GameState,
    player_id: str,
    game_map: MapDefinition,
) -> list[dict[str, Any]]:
    """Every (from, to) pair player_id could attack right now, ignoring phase and turn."""
    options = []
    for from_id in sorted(state.territories_owned_by(player_id)):
        from_ts = state.territories[from_id]
        if from_ts.armies < 2:
            continue
        for to_id in game_map.neighbors(from_id):
            to_ts = state.territories.get(to_id)
            if to_ts is None or to_ts.owner is None or to_ts.owner == player_id:
                continue
            options.append({
                "from": from_id,
                "to": to_id,
                "defender": to_ts.owner,
                "attacking_armies": from_ts.armies,
                "defending_armies": to_ts.armies,
            })
    return options


def get_fortify_destinations(
    state: GameState,
    territory_id: str,
    game_map: MapDefinition,
) -> list[str]:
    """Territories the armies on territory_id could be moved to."""
    ts = state.territories.get(territory_id)
    if ts is None or ts.owner is None or ts.armies < 2:
        return []
    reachable = reachable_owned(territory_id, ts.owner, state, game_map)
    reachable.discard(territory_id)
    return sorted(reachable)


def get_game_summary(state: GameState) -> dict[str, Any]:
    """
    Get a summary of the current game state for UI display.
    """
    territory_counts: dict[str, int] = {}
    army_counts: dict[str, int] = {}
    for ts in state.territories.values():
        if ts.owner:
            territory_counts[ts.owner] = territory_counts.get(ts.owner, 0) + 1
            army_counts[ts.owner] = army_counts.get(ts.owner, 0) + ts.armies

    current = state.current_player()
    return {
        "status": state.status,
        "phase": state.phase,
        "turn_number": state.turn_number,
        "current_player": current.id if current else None,
        "winner": state.winner,
        "territory_counts": territory_counts,
        "army_counts": army_counts,
        "available_moves": get_available_move_types(state),
    }


def get_available_moves(
    state: GameState,
    game_map: MapDefinition,
    player_id: str | None = None,
) -> dict[str, Any]:
    """
    What the given player (default: current player) can do right now.
    Includes attack options in the attack phase and fortify sources in the fortify phase.
    """
    if player_id is None:
        current = state.current_player()
        player_id = current.id if current else None
    player = state.get_player(player_id) if player_id else None

    result: dict[str, Any] = {
        "player": player_id,
        "status": state.status,
        "phase": state.phase,
        "move_types": get_available_move_types(state, player_id) if player_id else [],
        "armies_available": player.armies_available if player else 0,
    }
    if player is None or not result["move_types"]:
        return result

    if MOVE_DEPLOY in result["move_types"]:
        result["deploy_territories"] = sorted(state.territories_owned_by(player.id))
    if MOVE_ATTACK in result["move_types"]:
        result["attack_options"] = get_attack_options(state, player.id, game_map)
    if MOVE_FORTIFY in result["move_types"]:
        fortify_options: dict[str, list[str]] = {}
        for tid in sorted(state.territories_owned_by(player.id)):
            destinations = get_fortify_destinations(state, tid, game_map)
            if destinations:
                fortify_options[tid] = destinations
        result["fortify_options"] = fortify_options
    return result
