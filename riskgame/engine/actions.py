"""
Move definitions for the game.
Moves are immutable, deterministic instructions.
"""

from dataclasses import dataclass, field
from typing import Any

MOVE_DEPLOY = "deploy"
MOVE_ATTACK = "attack"
MOVE_FORTIFY = "fortify"
MOVE_SKIP = "skip"
MOVE_TYPES = (MOVE_DEPLOY, MOVE_ATTACK, MOVE_FORTIFY, MOVE_SKIP)


@dataclass(frozen=True)
class Move:
    """Base move class. All moves have a type, player, and payload."""
    type: str  # "deploy", "attack", "fortify", "skip"
    player: str  # player id performing the move
    payload: dict = field(default_factory=dict)  # Move-specific data

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "player": self.player, "payload": dict(self.payload)}


def deploy(player: str, territory: str, troops: int) -> Move:
    """
    Place armies from the player's available pool.
    Example: deploy("p1", "alaska", 3)
    """
    return Move(
        type=MOVE_DEPLOY,
        player=player,
        payload={"territory": territory, "troops": troops},
    )


def attack(player: str, from_territory: str, to_territory: str, move_in: int | None = None) -> Move:
    """
    Fight one round from from_territory against adjacent to_territory.
    move_in: armies to move in if the round conquers the territory
    (default: all but one of the survivors).
    """
    payload: dict[str, Any] = {"from": from_territory, "to": to_territory}
    if move_in is not None:
        payload["move_in"] = move_in
    return Move(type=MOVE_ATTACK, player=player, payload=payload)


def fortify(player: str, from_territory: str, to_territory: str, troops: int) -> Move:
    """Move troops between two connected owned territories. Ends the turn."""
    return Move(
        type=MOVE_FORTIFY,
        player=player,
        payload={"from": from_territory, "to": to_territory, "troops": troops},
    )


def skip(player: str) -> Move:
    """
    Skip the rest of the current phase.
    reinforcement -> attack, attack -> fortify, fortify -> next player's turn.
    """
    return Move(type=MOVE_SKIP, player=player, payload={})


def move_from_dict(data: dict[str, Any]) -> Move:
    """Build a Move from its wire form: {type, player, payload}."""
    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        payload = {}
    return Move(
        type=str(data.get("type") or ""),
        player=str(data.get("player") or ""),
        payload=dict(payload),
    )
