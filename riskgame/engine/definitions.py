"""
Static definitions for territories and continents.
All map data lives under data/maps/<map_id>.json: continents (bonus + members)
and territories (continent + adjacency list).

The graph is checked once when it is loaded. A malformed map raises
ConfigurationError and must not be used.
"""

import json
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from riskgame.engine.errors import ConfigurationError

DATA_DIR = Path(__file__).parent.parent / "data"
MAPS_DIR = DATA_DIR / "maps"

PLAYER_COLORS = ("red", "blue", "green", "yellow", "purple", "orange")


def _default_map_id() -> str:
    """Single place for default: riskgame.config.DEFAULT_MAP_ID."""
    from riskgame.config import DEFAULT_MAP_ID
    return DEFAULT_MAP_ID


_MAP_ID_RE = re.compile(r"[A-Za-z0-9_-]+")


def _map_path(map_id: str) -> Path:
    if not _MAP_ID_RE.fullmatch(map_id or ""):
        raise ConfigurationError(f"Invalid map id: {map_id!r}")
    return MAPS_DIR / f"{map_id}.json"


def list_maps() -> list[dict]:
    """Return [{ id, display_name }, ...] for every map file under data/maps/."""
    out = []
    if not MAPS_DIR.exists():
        return out
    for path in sorted(MAPS_DIR.glob("*.json")):
        try:
            with open(path, "r") as f:
                m = json.load(f)
            out.append({"id": m.get("id", path.stem), "display_name": m.get("display_name", path.stem)})
        except (json.JSONDecodeError, OSError):
            out.append({"id": path.stem, "display_name": path.stem})
    return out


@dataclass(frozen=True)
class TerritoryDefinition:
    """Defines immutable properties of a territory."""
    id: str
    display_name: str
    continent: str  # continent id
    adjacent: tuple[str, ...]  # IDs of adjacent territories


@dataclass(frozen=True)
class ContinentDefinition:
    """Defines a continent: its members and the bonus for holding all of them."""
    id: str
    display_name: str
    bonus: int
    territories: tuple[str, ...]


@dataclass(frozen=True, eq=False)
class MapDefinition:
    """A validated territory graph. Pure lookups, never mutated."""
    id: str
    display_name: str
    territories: dict[str, TerritoryDefinition]
    continents: dict[str, ContinentDefinition]
    territory_count: int = 0
    _adjacency: dict[str, frozenset[str]] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        validate_map(self)
        object.__setattr__(
            self,
            "_adjacency",
            {tid: frozenset(t.adjacent) for tid, t in self.territories.items()},
        )

    def territory_ids(self) -> list[str]:
        return list(self.territories.keys())

    def continent_of(self, territory_id: str) -> str:
        return self.territories[territory_id].continent

    def neighbors(self, territory_id: str) -> tuple[str, ...]:
        return self.territories[territory_id].adjacent

    def are_adjacent(self, a: str, b: str) -> bool:
        return b in self._adjacency.get(a, frozenset())

    def continent_bonus(self, continent_id: str) -> int:
        continent = self.continents.get(continent_id)
        return continent.bonus if continent else 0

    def members(self, continent_id: str) -> tuple[str, ...]:
        return self.continents[continent_id].territories

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "territory_count": self.territory_count,
            "continents": {
                cid: {
                    "id": c.id,
                    "display_name": c.display_name,
                    "bonus": c.bonus,
                    "territories": list(c.territories),
                }
                for cid, c in self.continents.items()
            },
            "territories": {
                tid: {
                    "id": t.id,
                    "display_name": t.display_name,
                    "continent": t.continent,
                    "adjacent": list(t.adjacent),
                }
                for tid, t in self.territories.items()
            },
        }


def validate_map(game_map: MapDefinition) -> None:
    """
    Check the structural invariants of a territory graph.

    - exact territory count (when the map declares one)
    - every neighbor exists, no self loops, no isolated territory
    - adjacency is symmetric
    - continents partition the territory set exactly
    - each territory's continent field matches the continent listing it

    Raises ConfigurationError on the first problem found.
    """
    territories = game_map.territories
    if not territories:
        raise ConfigurationError(f"Map {game_map.id} has no territories")

    if game_map.territory_count and len(territories) != game_map.territory_count:
        raise ConfigurationError(
            f"Map {game_map.id} expects {game_map.territory_count} territories, found {len(territories)}"
        )

    for tid, territory in territories.items():
        if territory.id != tid:
            raise ConfigurationError(f"Territory key {tid} does not match id {territory.id}")
        if not territory.adjacent:
            raise ConfigurationError(f"Territory {tid} has no neighbors")
        if len(set(territory.adjacent)) != len(territory.adjacent):
            raise ConfigurationError(f"Territory {tid} lists a neighbor twice")
        for neighbor in territory.adjacent:
            if neighbor == tid:
                raise ConfigurationError(f"Territory {tid} lists itself as a neighbor")
            other = territories.get(neighbor)
            if other is None:
                raise ConfigurationError(f"Territory {tid} lists unknown neighbor {neighbor}")
            if tid not in other.adjacent:
                raise ConfigurationError(f"Adjacency is not symmetric: {tid} -> {neighbor} but not back")

    seen: dict[str, str] = {}
    for cid, continent in game_map.continents.items():
        if continent.id != cid:
            raise ConfigurationError(f"Continent key {cid} does not match id {continent.id}")
        if continent.bonus < 0:
            raise ConfigurationError(f"Continent {cid} has a negative bonus")
        for tid in continent.territories:
            if tid not in territories:
                raise ConfigurationError(f"Continent {cid} lists unknown territory {tid}")
            if tid in seen:
                raise ConfigurationError(f"Territory {tid} is in both {seen[tid]} and {cid}")
            seen[tid] = cid
            if territories[tid].continent != cid:
                raise ConfigurationError(
                    f"Territory {tid} says continent {territories[tid].continent} but is listed under {cid}"
                )

    missing = set(territories) - set(seen)
    if missing:
        raise ConfigurationError(f"Territories without a continent: {', '.join(sorted(missing))}")


def map_from_dict(data: dict) -> MapDefinition:
    """Build (and validate) a MapDefinition from its JSON dict."""
    try:
        territories = {
            tid: TerritoryDefinition(
                id=t["id"],
                display_name=t.get("display_name", tid),
                continent=t["continent"],
                adjacent=tuple(t["adjacent"]),
            )
            for tid, t in data["territories"].items()
        }
        continents = {
            cid: ContinentDefinition(
                id=c["id"],
                display_name=c.get("display_name", cid),
                bonus=int(c["bonus"]),
                territories=tuple(c["territories"]),
            )
            for cid, c in data["continents"].items()
        }
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed map data: {e!r}") from e
    return MapDefinition(
        id=str(data.get("id", "")),
        display_name=str(data.get("display_name", data.get("id", ""))),
        territories=territories,
        continents=continents,
        territory_count=int(data.get("territory_count", 0) or 0),
    )


def load_map(map_id: str | None = None, path: Path | str | None = None) -> MapDefinition:
    """
    Load a map by id from data/maps/, or from an explicit JSON path.
    Raises ConfigurationError if the file is missing or the graph is malformed.
    """
    if path is None:
        path = _map_path(map_id if map_id is not None else _default_map_id())
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Map not found: {path}")
    with open(path, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Map {path} is not valid JSON: {e}") from e
    return map_from_dict(data)


@lru_cache(maxsize=None)
def get_map(map_id: str) -> MapDefinition:
    """Load a map once per process. Maps are immutable, so sharing is safe."""
    return load_map(map_id)


def get_classic_map() -> MapDefinition:
    return get_map("classic")
