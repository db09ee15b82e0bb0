"""
Persistence boundary for game state.

Every write is versioned. save() is a compare-and-swap on the version column, so a
move computed from a stale snapshot fails with ConcurrencyConflict instead of
overwriting someone else's move. The *_atomic operations lock the game row
(SELECT ... FOR UPDATE) and do read, validate, apply and write in one transaction.

Each game keeps a log base (start_state at start_version). Lobby changes and the
setup transition are checkpoints that move the base forward; every other write
appends its moves to the log, so replaying the log from the base rebuilds the game.
"""

import json
import logging
from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import update

from .models import Game as GameModel, GameMove

from riskgame.config import MOVE_RETRY_LIMIT
from riskgame.engine.actions import Move, deploy, attack, move_from_dict
from riskgame.engine.combat import BattleModifier, BASE_MODIFIERS
from riskgame.engine.definitions import MapDefinition, get_map
from riskgame.engine.dice import DiceRoller, FixedDiceRoller
from riskgame.engine.errors import ConcurrencyConflict, GameNotFound, InvariantViolation, ValidationError
from riskgame.engine.events import (
    GameEvent,
    BATTLE_RESOLVED,
    PLAYER_ELIMINATED,
    SETUP_COMPLETED,
    VICTORY,
)
from riskgame.engine.queries import ValidationResult, validate_move
from riskgame.engine.reducer import apply_move, complete_setup, setup_is_complete
from riskgame.engine.state import GameState, STATUS_SETUP
from riskgame.engine.tutorial import MOVE_CONTINUE, advance_tutorial, apply_tutorial_move, validate_tutorial_move

logger = logging.getLogger(__name__)

# Moves that produced one of these cannot be taken back
NON_UNDOABLE_EVENTS = (SETUP_COMPLETED, PLAYER_ELIMINATED, VICTORY)

LogEntry = tuple[Move, Sequence[GameEvent] | None]


def check_move(state: GameState, move: Move, game_map: MapDefinition) -> ValidationResult:
    """Validate with the tutorial allow-list in front when the game is a tutorial."""
    if state.is_tutorial:
        return validate_tutorial_move(state, move, game_map)
    return validate_move(state, move, game_map)


def play_move(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
) -> tuple[GameState, list[GameEvent]]:
    if state.is_tutorial:
        return apply_tutorial_move(state, move, game_map, roller=roller, modifiers=modifiers)
    return apply_move(state, move, game_map, roller=roller, modifiers=modifiers)


def logged_dice(events: Iterable[dict[str, Any]]) -> list[list[int]]:
    """Attacker then defender dice of every battle in a logged entry, in roll order."""
    rolls: list[list[int]] = []
    for event in events:
        if event.get("type") != BATTLE_RESOLVED:
            continue
        payload = event.get("payload") or {}
        if payload.get("attacker_dice"):
            rolls.append(list(payload["attacker_dice"]))
            rolls.append(list(payload.get("defender_dice") or []))
    return rolls


def replay_log(
    base: GameState,
    entries: Iterable[dict[str, Any]],
    game_map: MapDefinition,
) -> GameState:
    """
    Rebuild a game by re-applying logged entries ({move, events}) to base.
    Attacks roll the dice recorded in their battle_resolved events, so the replay
    matches the original as long as the game ran with the base modifiers.
    """
    state = base.copy()
    for entry in entries:
        move = move_from_dict(entry["move"])
        if move.type == MOVE_CONTINUE:
            state, _ = advance_tutorial(state)
            continue
        roller = FixedDiceRoller(logged_dice(entry.get("events") or []))
        state, _ = play_move(state, move, game_map, roller=roller)
    return state


class GameStore:
    """Loads and saves GameState snapshots through a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: Callable,
        map_loader: Callable[[str], MapDefinition] = get_map,
    ):
        self.session_factory = session_factory
        self.map_loader = map_loader

    def game_map(self, state: GameState) -> MapDefinition:
        return self.map_loader(state.map_id)

    # ===== Plain reads and writes =====

    def create(self, state: GameState, name: str) -> GameState:
        """Insert a new game at version 0. The new state is also the log base."""
        stored = state.copy()
        stored.version = 0
        snapshot = stored.to_json(indent=None)
        with self.session_factory() as session, session.begin():
            session.add(GameModel(
                id=stored.game_id,
                name=name,
                status=stored.status,
                version=0,
                game_state=snapshot,
                start_state=snapshot,
                start_version=0,
            ))
        logger.info("Created game %s (%s)", stored.game_id, name)
        return stored

    def load(self, game_id: str) -> GameState:
        """Current snapshot, with state.version set from the row."""
        with self.session_factory() as session:
            row = session.get(GameModel, game_id)
            if row is None:
                raise GameNotFound(f"Game {game_id} not found")
            return _row_state(row)

    def exists(self, game_id: str) -> bool:
        with self.session_factory() as session:
            return session.get(GameModel, game_id) is not None

    def save(
        self,
        state: GameState,
        expected_version: int,
        move: Move | None = None,
        events: list[GameEvent] | None = None,
        checkpoint: bool = False,
    ) -> GameState:
        """
        Write state only if the stored version is still expected_version.
        Raises ConcurrencyConflict otherwise. Returns the state at its new version.
        """
        entries = [(move, events)] if move is not None else []
        return self.save_entries(state, expected_version, entries, checkpoint=checkpoint)

    def save_entries(
        self,
        state: GameState,
        expected_version: int,
        entries: Sequence[LogEntry],
        checkpoint: bool = False,
    ) -> GameState:
        """
        Compare-and-swap write of state that appends entries to the move log.

        The version advances once per entry (once when there are none), so each
        log row's seq is the version its move produced. A checkpoint makes the
        written state the new log base.
        """
        stored = state.copy()
        stored.version = expected_version + max(1, len(entries))
        snapshot = stored.to_json(indent=None)
        values: dict[str, Any] = {
            "game_state": snapshot,
            "status": stored.status,
            "version": stored.version,
        }
        if checkpoint:
            values["start_state"] = snapshot
            values["start_version"] = stored.version
        with self.session_factory() as session, session.begin():
            result = session.execute(
                update(GameModel)
                .where(GameModel.id == stored.game_id, GameModel.version == expected_version)
                .values(**values)
            )
            if result.rowcount == 0:
                row = session.get(GameModel, stored.game_id)
                if row is None:
                    raise GameNotFound(f"Game {stored.game_id} not found")
                raise ConcurrencyConflict(stored.game_id, expected_version, row.version)
            for seq, (move, events) in enumerate(entries, start=expected_version + 1):
                session.add(_move_row(stored.game_id, seq, move, events))
        return stored

    def moves(self, game_id: str) -> list[dict[str, Any]]:
        """The move log, oldest first."""
        with self.session_factory() as session:
            if session.get(GameModel, game_id) is None:
                raise GameNotFound(f"Game {game_id} not found")
            rows = (
                session.query(GameMove)
                .filter(GameMove.game_id == game_id)
                .order_by(GameMove.seq)
                .all()
            )
            return [_move_entry(r) for r in rows]

    # ===== Atomic operations (row lock held for the whole read-modify-write) =====

    def _apply_locked(
        self,
        game_id: str,
        move: Move,
        roller: DiceRoller | None,
        modifiers: Iterable[BattleModifier],
    ) -> tuple[GameState, list[GameEvent]]:
        with self.session_factory() as session, session.begin():
            row = _locked_row(session, game_id)
            state = _row_state(row)
            game_map = self.game_map(state)
            result = check_move(state, move, game_map)
            if not result.valid:
                raise ValidationError(result.error or "Invalid move")
            new_state, events = play_move(state, move, game_map, roller=roller, modifiers=modifiers)
            new_state = _write_locked(session, row, new_state, move, events)
        return new_state, events

    def place_armies_atomic(
        self,
        game_id: str,
        player_id: str,
        territory_id: str,
        amount: int,
    ) -> tuple[GameState, list[GameEvent]]:
        """Territory armies and the player's pool change together or not at all."""
        return self._apply_locked(game_id, deploy(player_id, territory_id, amount), None, BASE_MODIFIERS)

    def attack_atomic(
        self,
        game_id: str,
        player_id: str,
        from_territory: str,
        to_territory: str,
        move_in: int | None = None,
        roller: DiceRoller | None = None,
        modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
    ) -> tuple[GameState, list[GameEvent]]:
        """Armies, ownership, elimination and victory from one round, in one write."""
        move = attack(player_id, from_territory, to_territory, move_in)
        return self._apply_locked(game_id, move, roller, modifiers)

    def check_and_transition_setup_atomic(self, game_id: str) -> bool:
        """
        Start the game if every initial allotment has been placed.
        Returns True only for the call that performed the transition.
        """
        with self.session_factory() as session, session.begin():
            row = _locked_row(session, game_id)
            state = _row_state(row)
            if state.status != STATUS_SETUP or not setup_is_complete(state):
                return False
            new_state, _ = complete_setup(state.copy(), self.game_map(state))
            _write_locked(session, row, new_state, None, None, checkpoint=True)
        logger.info("Game %s moved from setup to playing", game_id)
        return True

    # ===== Undo =====

    def undo_status(self, game_id: str, player_id: str) -> dict[str, Any]:
        """Whether player_id may undo right now, and which move that would take back."""
        with self.session_factory() as session:
            row = session.get(GameModel, game_id)
            if row is None:
                raise GameNotFound(f"Game {game_id} not found")
            try:
                _, entry = _undoable_entry(session, row, player_id)
            except ValidationError as e:
                return {"available": False, "reason": e.reason, "last_move": None}
            return {"available": True, "reason": None, "last_move": entry}

    def undo_last_move(self, game_id: str, player_id: str) -> tuple[GameState, dict[str, Any]]:
        """
        Take back the newest logged move, which must be player_id's.

        The game is rebuilt by replaying every earlier entry from the log base and
        written at a new version, so clients holding the old version conflict.
        Returns (state, undone_entry).
        """
        with self.session_factory() as session, session.begin():
            row = _locked_row(session, game_id)
            last, entry = _undoable_entry(session, row, player_id)
            if row.start_state is None:
                raise InvariantViolation(f"Game {game_id} has no log base to replay from")
            earlier = (
                session.query(GameMove)
                .filter(
                    GameMove.game_id == game_id,
                    GameMove.seq > row.start_version,
                    GameMove.seq < last.seq,
                )
                .order_by(GameMove.seq)
                .all()
            )
            base = GameState.from_json(row.start_state)
            state = replay_log(base, [_move_entry(r) for r in earlier], self.game_map(base))
            session.delete(last)
            stored = _write_locked(session, row, state, None, None)
        logger.info("Game %s: %s undid %s (seq %d)", game_id, player_id, entry["move"]["type"], entry["seq"])
        return stored, entry


def apply_with_retry(
    store: GameStore,
    game_id: str,
    move: Move,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
    retries: int = MOVE_RETRY_LIMIT,
) -> tuple[GameState, list[GameEvent]]:
    """
    Load, validate, apply, and compare-and-swap save.
    On a version conflict the move is re-validated against the fresh snapshot and
    retried; if it is no longer legal a ValidationError is raised.
    """
    if retries < 0:
        raise ValueError(f"retries must be >= 0, got {retries}")
    conflict: ConcurrencyConflict | None = None
    modifiers = tuple(modifiers)
    for attempt in range(retries + 1):
        state = store.load(game_id)
        game_map = store.game_map(state)
        result = check_move(state, move, game_map)
        if not result.valid:
            raise ValidationError(result.error or "Invalid move")
        new_state, events = play_move(state, move, game_map, roller=roller, modifiers=modifiers)
        try:
            saved = store.save(new_state, expected_version=state.version, move=move, events=events)
        except ConcurrencyConflict as e:
            logger.info("Game %s: version conflict on attempt %d, retrying", game_id, attempt + 1)
            conflict = e
            continue
        return saved, events
    raise conflict


# ===== Row helpers =====

def _row_state(row: GameModel) -> GameState:
    state = GameState.from_json(row.game_state)
    state.version = row.version
    return state


def _locked_row(session, game_id: str) -> GameModel:
    row = (
        session.query(GameModel)
        .filter(GameModel.id == game_id)
        .with_for_update()
        .first()
    )
    if row is None:
        raise GameNotFound(f"Game {game_id} not found")
    return row


def _write_locked(
    session,
    row: GameModel,
    state: GameState,
    move: Move | None,
    events: list[GameEvent] | None,
    checkpoint: bool = False,
) -> GameState:
    stored = state.copy()
    stored.version = row.version + 1
    row.game_state = stored.to_json(indent=None)
    row.status = stored.status
    row.version = stored.version
    if checkpoint:
        row.start_state = row.game_state
        row.start_version = stored.version
    if move is not None:
        session.add(_move_row(stored.game_id, stored.version, move, events))
    return stored


def _undoable_entry(session, row: GameModel, player_id: str) -> tuple[GameMove, dict[str, Any]]:
    """The newest log row after the base, if player_id may undo it. Raises ValidationError otherwise."""
    last = (
        session.query(GameMove)
        .filter(GameMove.game_id == row.id, GameMove.seq > row.start_version)
        .order_by(GameMove.seq.desc())
        .first()
    )
    if last is None:
        raise ValidationError("No moves to undo")
    entry = _move_entry(last)
    if entry["move"].get("player") != player_id:
        raise ValidationError("Can only undo your own most recent move")
    for event in entry["events"]:
        if event.get("type") in NON_UNDOABLE_EVENTS:
            raise ValidationError(f"Cannot undo a move that caused {event['type']}")
    return last, entry


def _move_row(game_id: str, seq: int, move: Move, events: Sequence[GameEvent] | None) -> GameMove:
    return GameMove(
        game_id=game_id,
        seq=seq,
        move=json.dumps(move.to_dict()),
        events=json.dumps([e.to_dict() for e in events or []]),
    )


def _move_entry(row: GameMove) -> dict[str, Any]:
    return {
        "seq": row.seq,
        "move": json.loads(row.move),
        "events": json.loads(row.events) if row.events else [],
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }
