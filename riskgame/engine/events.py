"""
Game events for UI hooks and logging.
Events describe what happened during move processing.
"""

from dataclasses import dataclass
from typing import Any

from riskgame.engine.state import BattleOutcome


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Phase/Turn events
PHASE_CHANGED = "phase_changed"
TURN_STARTED = "turn_started"
SETUP_COMPLETED = "setup_completed"

# Army events
ARMIES_PLACED = "armies_placed"
ARMIES_FORTIFIED = "armies_fortified"

# Combat events
BATTLE_RESOLVED = "battle_resolved"
TERRITORY_CONQUERED = "territory_conquered"

# Player events
PLAYER_ELIMINATED = "player_eliminated"

# Victory events
VICTORY = "victory"

# Tutorial events
TUTORIAL_ADVANCED = "tutorial_advanced"


# ===== Event Factory Functions =====

def phase_changed(old_phase: str, new_phase: str, player: str) -> GameEvent:
    return GameEvent(PHASE_CHANGED, {
        "old_phase": old_phase,
        "new_phase": new_phase,
        "player": player,
    })


def turn_started(turn_number: int, player: str, reinforcements: int) -> GameEvent:
    return GameEvent(TURN_STARTED, {
        "turn_number": turn_number,
        "player": player,
        "reinforcements": reinforcements,
    })


def setup_completed(first_player: str) -> GameEvent:
    return GameEvent(SETUP_COMPLETED, {"first_player": first_player})


def armies_placed(player: str, territory: str, troops: int, remaining: int) -> GameEvent:
    return GameEvent(ARMIES_PLACED, {
        "player": player,
        "territory": territory,
        "troops": troops,
        "armies_available": remaining,
    })


def armies_fortified(player: str, from_territory: str, to_territory: str, troops: int) -> GameEvent:
    return GameEvent(ARMIES_FORTIFIED, {
        "player": player,
        "from": from_territory,
        "to": to_territory,
        "troops": troops,
    })


def battle_resolved(attacker: str, defender: str | None, outcome: BattleOutcome) -> GameEvent:
    """
    Emitted once per attack move.

    Payload carries the full BattleOutcome dict (dice, losses, conquered, rounds)
    plus the two players involved.
    """
    payload = outcome.to_dict()
    payload["attacker"] = attacker
    payload["defender"] = defender
    return GameEvent(BATTLE_RESOLVED, payload)


def territory_conquered(
    territory: str,
    old_owner: str | None,
    new_owner: str,
    armies_moved: int,
) -> GameEvent:
    return GameEvent(TERRITORY_CONQUERED, {
        "territory": territory,
        "old_owner": old_owner,
        "new_owner": new_owner,
        "armies_moved": armies_moved,
    })


def player_eliminated(player: str, eliminated_by: str, forfeited_armies: int) -> GameEvent:
    return GameEvent(PLAYER_ELIMINATED, {
        "player": player,
        "eliminated_by": eliminated_by,
        "forfeited_armies": forfeited_armies,
    })


def victory(winner: str, territory_count: int) -> GameEvent:
    return GameEvent(VICTORY, {
        "winner": winner,
        "territory_count": territory_count,
    })


def tutorial_advanced(old_step: int, new_step: int, title: str) -> GameEvent:
    return GameEvent(TUTORIAL_ADVANCED, {
        "old_step": old_step,
        "new_step": new_step,
        "title": title,
    })
