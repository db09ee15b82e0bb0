"""
Game state representation.
All state is immutable per move; the reducer works on a deep copy and returns it.
Includes JSON serialization for the storage representation.
"""

import json
from dataclasses import dataclass, field
from copy import deepcopy
from typing import Any

# Game status
STATUS_WAITING = "waiting"
STATUS_SETUP = "setup"
STATUS_PLAYING = "playing"
STATUS_FINISHED = "finished"
GAME_STATUSES = (STATUS_WAITING, STATUS_SETUP, STATUS_PLAYING, STATUS_FINISHED)

# Turn phases
PHASE_REINFORCEMENT = "reinforcement"
PHASE_ATTACK = "attack"
PHASE_FORTIFY = "fortify"
PHASES = (PHASE_REINFORCEMENT, PHASE_ATTACK, PHASE_FORTIFY)


def _int(v: Any, default: int) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _int_list(v: Any) -> list[int]:
    if not isinstance(v, list):
        return []
    out = []
    for x in v:
        try:
            out.append(int(x))
        except (TypeError, ValueError):
            continue
    return out


@dataclass
class TerritoryState:
    """State of a single territory."""
    owner: str | None  # player id, None if unclaimed
    armies: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"owner": self.owner, "armies": self.armies}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TerritoryState":
        if not isinstance(data, dict):
            data = {}
        owner = data.get("owner")
        return cls(
            owner=str(owner) if owner is not None else None,
            armies=max(0, _int(data.get("armies"), 0)),
        )


@dataclass
class PlayerState:
    """A seat at the table."""
    id: str
    name: str
    color: str
    turn_order: int
    armies_available: int = 0
    eliminated: bool = False  # terminal once True
    is_ai: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "turn_order": self.turn_order,
            "armies_available": self.armies_available,
            "eliminated": self.eliminated,
            "is_ai": self.is_ai,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlayerState":
        if not isinstance(data, dict):
            data = {}
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            color=str(data.get("color") or ""),
            turn_order=_int(data.get("turn_order"), 0),
            armies_available=max(0, _int(data.get("armies_available"), 0)),
            eliminated=bool(data.get("eliminated", False)),
            is_ai=bool(data.get("is_ai", False)),
        )


@dataclass
class BattleOutcome:
    """Result of one round of combat (for the UI and the move log)."""
    attacker_dice: list[int]
    defender_dice: list[int]
    attacker_losses: int
    defender_losses: int
    conquered: bool
    rounds: int = 1
    from_territory: str | None = None
    to_territory: str | None = None
    armies_moved: int = 0  # armies moved into a conquered territory

    def to_dict(self) -> dict[str, Any]:
        out = {
            "attacker_dice": self.attacker_dice,
            "defender_dice": self.defender_dice,
            "attacker_losses": self.attacker_losses,
            "defender_losses": self.defender_losses,
            "conquered": self.conquered,
            "rounds": self.rounds,
        }
        if self.from_territory is not None:
            out["from_territory"] = self.from_territory
        if self.to_territory is not None:
            out["to_territory"] = self.to_territory
        if self.armies_moved:
            out["armies_moved"] = self.armies_moved
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BattleOutcome":
        if not isinstance(data, dict):
            data = {}
        return cls(
            attacker_dice=_int_list(data.get("attacker_dice")),
            defender_dice=_int_list(data.get("defender_dice")),
            attacker_losses=_int(data.get("attacker_losses"), 0),
            defender_losses=_int(data.get("defender_losses"), 0),
            conquered=bool(data.get("conquered", False)),
            rounds=_int(data.get("rounds"), 1),
            from_territory=data.get("from_territory"),
            to_territory=data.get("to_territory"),
            armies_moved=_int(data.get("armies_moved"), 0),
        )


@dataclass
class GameState:
    """Complete game state."""
    game_id: str
    map_id: str
    status: str  # "waiting", "setup", "playing", "finished"
    phase: str  # "reinforcement", "attack", "fortify"
    current_player_index: int
    turn_number: int
    territories: dict[str, TerritoryState] = field(default_factory=dict)  # territory_id -> state
    players: list[PlayerState] = field(default_factory=list)  # ordered by turn_order
    winner: str | None = None  # player id, set once one player owns every territory
    # Outcome of the most recent attack round, for display
    last_battle: BattleOutcome | None = None
    # Tutorial step (None for regular games)
    tutorial_step: int | None = None
    # Persistence version for compare-and-swap writes
    version: int = 0

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    @property
    def is_finished(self) -> bool:
        return self.status == STATUS_FINISHED

    @property
    def is_tutorial(self) -> bool:
        return self.tutorial_step is not None

    def current_player(self) -> PlayerState | None:
        if 0 <= self.current_player_index < len(self.players):
            return self.players[self.current_player_index]
        return None

    def get_player(self, player_id: str) -> PlayerState | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def player_index(self, player_id: str) -> int:
        for i, player in enumerate(self.players):
            if player.id == player_id:
                return i
        return -1

    def territories_owned_by(self, player_id: str) -> list[str]:
        return [tid for tid, ts in self.territories.items() if ts.owner == player_id]

    def active_players(self) -> list[PlayerState]:
        return [p for p in self.players if not p.eliminated]

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        return {
            "game_id": self.game_id,
            "map_id": self.map_id,
            "status": self.status,
            "phase": self.phase,
            "current_player_index": self.current_player_index,
            "turn_number": self.turn_number,
            "territories": {
                tid: ts.to_dict() for tid, ts in self.territories.items()
            },
            "players": [p.to_dict() for p in self.players],
            "winner": self.winner,
            "last_battle": self.last_battle.to_dict() if self.last_battle else None,
            "tutorial_step": self.tutorial_step,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Create GameState from a dictionary (handles missing/None fields)."""
        territories_data = data.get("territories") or {}
        if not isinstance(territories_data, dict):
            territories_data = {}
        players_data = data.get("players") or []
        if not isinstance(players_data, list):
            players_data = []
        status = str(data.get("status") or STATUS_WAITING)
        if status not in GAME_STATUSES:
            status = STATUS_WAITING
        phase = str(data.get("phase") or PHASE_REINFORCEMENT)
        if phase not in PHASES:
            phase = PHASE_REINFORCEMENT
        tutorial_step = data.get("tutorial_step")
        winner = data.get("winner")
        return cls(
            game_id=str(data.get("game_id") or ""),
            map_id=str(data.get("map_id") or "classic"),
            status=status,
            phase=phase,
            current_player_index=_int(data.get("current_player_index"), 0),
            turn_number=_int(data.get("turn_number"), 1),
            territories={
                str(tid): TerritoryState.from_dict(ts)
                for tid, ts in territories_data.items()
                if isinstance(ts, dict)
            },
            players=[PlayerState.from_dict(p) for p in players_data if isinstance(p, dict)],
            winner=str(winner) if winner is not None else None,
            last_battle=BattleOutcome.from_dict(data["last_battle"])
            if data.get("last_battle") else None,
            tutorial_step=_int(tutorial_step, 0) if tutorial_step is not None else None,
            version=_int(data.get("version"), 0),
        )

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str))

    def save(self, filepath: str) -> None:
        """Save GameState to a JSON file."""
        with open(filepath, "w") as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, filepath: str) -> "GameState":
        """Load GameState from a JSON file."""
        with open(filepath, "r") as f:
            return cls.from_json(f.read())
