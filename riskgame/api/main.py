"""
FastAPI backend for the Risk game.
Provides REST API endpoints that load a snapshot, validate and apply a move
through the rules engine, and persist the result.
"""

import logging
import random
import uuid
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .database import SessionLocal, init_db
from .store import GameStore, apply_with_retry, check_move

from riskgame.config import DEFAULT_MAP_ID, LOG_LEVEL, MOVE_RETRY_LIMIT
from riskgame.engine.actions import Move, MOVE_TYPES
from riskgame.engine.ai import iter_ai_turn
from riskgame.engine.combat import estimate_conquest_probability
from riskgame.engine.definitions import get_map, list_maps
from riskgame.engine.errors import (
    ConcurrencyConflict,
    ConfigurationError,
    GameNotFound,
    InvariantViolation,
    ValidationError,
)
from riskgame.engine.queries import get_available_moves, get_game_summary
from riskgame.engine.rules import calculate_reinforcements
from riskgame.engine.state import GameState, STATUS_PLAYING
from riskgame.engine.tutorial import (
    advance_tutorial,
    continue_move,
    create_tutorial_game,
    get_tutorial_step,
    is_tutorial_complete,
)
from riskgame.engine.utils import add_player, create_game as new_game_state, start_game as deal_game

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Risk API",
    description="Rules engine for Risk: territory conquest with dice-based battles",
    version="1.0.0",
)

# CORS configuration for frontend
CORS_ORIGINS = ["http://localhost:5173", "http://localhost:5174", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[%d] %s %s", response.status_code, method, path)
        return response
    except Exception:
        logger.exception("[500] %s %s (exception)", method, path)
        raise


# ===== Error mapping =====

@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.reason})


@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request, exc: InvariantViolation):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(GameNotFound)
async def game_not_found_handler(request, exc: GameNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConcurrencyConflict)
async def concurrency_conflict_handler(request, exc: ConcurrencyConflict):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# Store is built from the module session factory; tests override get_store.
_store = GameStore(SessionLocal)


def get_store() -> GameStore:
    """Dependency that yields the game store."""
    return _store


# ===== Pydantic Models =====

class CreateGameRequest(BaseModel):
    name: str
    map_id: str | None = None  # omitted = riskgame.config.DEFAULT_MAP_ID


class JoinGameRequest(BaseModel):
    player_id: str
    name: str
    color: str | None = None
    is_ai: bool = False


class StartGameRequest(BaseModel):
    seed: int | None = None  # deterministic deal for tests and demos


class MoveRequest(BaseModel):
    type: str  # deploy | attack | fortify | skip
    player: str
    payload: dict[str, Any] = {}

    def to_move(self) -> Move:
        return Move(type=self.type, player=self.player, payload=dict(self.payload))


class UndoRequest(BaseModel):
    player_id: str


class TutorialRequest(BaseModel):
    player_id: str
    name: str = "Player"


# ===== Helpers =====

def state_for_response(state: GameState) -> dict[str, Any]:
    """State dict including the summary and the tutorial step for the UI."""
    out = state.to_dict()
    out["summary"] = get_game_summary(state)
    if state.is_tutorial:
        step = get_tutorial_step(state.tutorial_step)
        out["tutorial"] = {
            "step": state.tutorial_step,
            "complete": is_tutorial_complete(state),
            "title": step.title if step else None,
            "objective": step.objective if step else None,
            "allowed_actions": list(step.allowed_actions) if step else list(MOVE_TYPES),
        }
    return out


def _update(store: GameStore, game_id: str, fn) -> GameState:
    """Load, transform, and compare-and-swap save a lobby change as a new log base."""
    state = store.load(game_id)
    new_state = fn(state)
    return store.save(new_state, expected_version=state.version, checkpoint=True)


@app.on_event("startup")
def on_startup():
    logging.basicConfig(level=LOG_LEVEL)
    init_db()
    # Fail fast on a malformed default map
    try:
        get_map(DEFAULT_MAP_ID)
    except ConfigurationError:
        logger.critical("Default map %s failed validation", DEFAULT_MAP_ID)
        raise


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Risk API", "version": "1.0.0"}


@app.get("/maps")
def get_maps():
    return {"maps": list_maps()}


@app.get("/map")
def get_map_definition(map_id: str | None = None):
    """Territory graph for the board."""
    try:
        return get_map(map_id or DEFAULT_MAP_ID).to_dict()
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/games")
def create_game(request: CreateGameRequest, store: GameStore = Depends(get_store)):
    """Create a game in the waiting state."""
    try:
        game_map = get_map(request.map_id or DEFAULT_MAP_ID)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    state = store.create(new_game_state(str(uuid.uuid4()), game_map), request.name)
    return {"game_id": state.game_id, "state": state_for_response(state)}


@app.post("/games/{game_id}/join")
def join_game(game_id: str, request: JoinGameRequest, store: GameStore = Depends(get_store)):
    state = _update(
        store,
        game_id,
        lambda s: add_player(s, request.player_id, request.name, request.color, request.is_ai),
    )
    return {"state": state_for_response(state)}


@app.post("/games/{game_id}/start")
def start_game(
    game_id: str,
    request: StartGameRequest | None = None,
    store: GameStore = Depends(get_store),
):
    """Deal territories and enter setup."""
    seed = request.seed if request else None
    rng = random.Random(seed) if seed is not None else None
    state = _update(store, game_id, lambda s: deal_game(s, store.game_map(s), rng))
    return {"state": state_for_response(state)}


@app.get("/games/{game_id}")
def get_game_state(game_id: str, store: GameStore = Depends(get_store)):
    return state_for_response(store.load(game_id))


@app.get("/games/{game_id}/moves")
def get_move_log(game_id: str, store: GameStore = Depends(get_store)):
    return {"moves": store.moves(game_id)}


@app.post("/games/{game_id}/validate")
def validate_game_move(game_id: str, request: MoveRequest, store: GameStore = Depends(get_store)):
    """Speculative check: never writes."""
    state = store.load(game_id)
    return check_move(state, request.to_move(), store.game_map(state)).to_dict()


@app.post("/games/{game_id}/moves")
def submit_move(game_id: str, request: MoveRequest, store: GameStore = Depends(get_store)):
    """Validate, apply, and persist a move. Retries on version conflicts."""
    new_state, events = apply_with_retry(store, game_id, request.to_move(), retries=MOVE_RETRY_LIMIT)
    return {
        "state": state_for_response(new_state),
        "events": [e.to_dict() for e in events],
        "battle": new_state.last_battle.to_dict() if request.type == "attack" and new_state.last_battle else None,
    }


@app.post("/games/{game_id}/setup/complete")
def finish_setup(game_id: str, store: GameStore = Depends(get_store)):
    """Start play if every initial army is placed. transitioned is True for exactly one caller."""
    transitioned = store.check_and_transition_setup_atomic(game_id)
    return {"transitioned": transitioned, "state": state_for_response(store.load(game_id))}


@app.get("/games/{game_id}/undo")
def get_undo_status(game_id: str, player_id: str, store: GameStore = Depends(get_store)):
    """Whether player_id can undo, and the move it would take back."""
    return store.undo_status(game_id, player_id)


@app.post("/games/{game_id}/undo")
def undo_move(game_id: str, request: UndoRequest, store: GameStore = Depends(get_store)):
    """Take back the game's most recent move, if the requesting player made it."""
    state, undone = store.undo_last_move(game_id, request.player_id)
    return {"state": state_for_response(state), "undone": undone}


@app.post("/games/{game_id}/ai-turn")
def run_ai_turn(game_id: str, store: GameStore = Depends(get_store)):
    """Play the current player's turn with the built-in opponent (AI seats only)."""
    state = store.load(game_id)
    current = state.current_player()
    if state.status != STATUS_PLAYING:
        raise HTTPException(status_code=400, detail="Game is not in progress")
    if current is None or not current.is_ai:
        raise HTTPException(status_code=400, detail="Current player is not an AI")
    steps = list(iter_ai_turn(state, store.game_map(state)))
    new_state = steps[-1][1] if steps else state
    # one log row per move, all in a single write
    saved = store.save_entries(new_state, state.version, [(move, evts) for move, _, evts in steps])
    return {
        "state": state_for_response(saved),
        "moves": [move.to_dict() for move, _, _ in steps],
        "events": [e.to_dict() for _, _, evts in steps for e in evts],
    }


@app.get("/games/{game_id}/available-actions")
def get_available_actions(game_id: str, player_id: str | None = None, store: GameStore = Depends(get_store)):
    """What the given player (default: current player) can do right now."""
    state = store.load(game_id)
    game_map = store.game_map(state)
    actions = get_available_moves(state, game_map, player_id)
    current = state.current_player()
    if current is not None and not state.is_finished:
        actions["next_reinforcements"] = calculate_reinforcements(state, current.id, game_map)
    return actions


@app.get("/games/{game_id}/odds")
def get_attack_odds(
    game_id: str,
    from_territory: str,
    to_territory: str,
    simulations: int = 1000,
    store: GameStore = Depends(get_store),
):
    """Monte Carlo chance that an all-out attack takes the territory."""
    state = store.load(game_id)
    from_ts = state.territories.get(from_territory)
    to_ts = state.territories.get(to_territory)
    if from_ts is None or to_ts is None:
        raise HTTPException(status_code=400, detail="Unknown territory")
    if not 1 <= simulations <= 10000:
        raise HTTPException(status_code=400, detail="simulations must be between 1 and 10000")
    probability = estimate_conquest_probability(from_ts.armies, to_ts.armies, simulations=simulations)
    return {
        "from": from_territory,
        "to": to_territory,
        "attacking_armies": from_ts.armies,
        "defending_armies": to_ts.armies,
        "probability": probability,
    }


# ----- Tutorial -----

@app.post("/tutorial")
def create_tutorial(request: TutorialRequest, store: GameStore = Depends(get_store)):
    """Create a tutorial game against the built-in AI."""
    game_id = str(uuid.uuid4())
    state = create_tutorial_game(request.player_id, game_id=game_id, player_name=request.name)
    state = store.create(state, f"Tutorial: {request.name}")
    return {"game_id": game_id, "state": state_for_response(state)}


@app.post("/games/{game_id}/tutorial/continue")
def continue_tutorial(game_id: str, store: GameStore = Depends(get_store)):
    """Advance to the next tutorial step."""
    state = store.load(game_id)
    new_state, events = advance_tutorial(state)
    if events:
        state = store.save(new_state, expected_version=state.version, move=continue_move(state), events=events)
    return {
        "state": state_for_response(state),
        "events": [e.to_dict() for e in events],
        "completed": is_tutorial_complete(state),
    }
