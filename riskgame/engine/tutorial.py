"""
Tutorial overlay.

A fixed two-player scenario on the classic map, walked through in five steps.
Each step restricts which move types are allowed. Steps only advance on an
explicit continue signal (advance_tutorial), never on organic phase changes.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from riskgame.engine.state import (
    GameState,
    PlayerState,
    TerritoryState,
    STATUS_SETUP,
    STATUS_PLAYING,
    PHASE_REINFORCEMENT,
    PHASE_ATTACK,
    PHASE_FORTIFY,
)
from riskgame.engine.actions import Move, MOVE_DEPLOY, MOVE_ATTACK, MOVE_FORTIFY, MOVE_SKIP
from riskgame.engine.definitions import MapDefinition, get_classic_map
from riskgame.engine.combat import BattleModifier, BASE_MODIFIERS
from riskgame.engine.dice import DiceRoller
from riskgame.engine.errors import InvariantViolation, ValidationError
from riskgame.engine.events import GameEvent, tutorial_advanced, PHASE_CHANGED, TURN_STARTED
from riskgame.engine.queries import ValidationResult, validate_move
from riskgame.engine.reducer import apply_move

logger = logging.getLogger(__name__)

PHASE_SETUP = "setup"

# Move-log entry for advance_tutorial; never submitted as a player move
MOVE_CONTINUE = "continue_tutorial"


@dataclass(frozen=True)
class TutorialStep:
    step: int
    title: str
    description: str
    objective: str
    phase: str  # "setup", "reinforcement", "attack", "fortify"
    allowed_actions: tuple[str, ...]
    pinned: bool = True  # phase stays put until the player continues


TUTORIAL_STEPS: tuple[TutorialStep, ...] = (
    TutorialStep(
        step=0,
        title="Welcome to Risk!",
        description="Learn to reinforce, attack, and fortify your territories.",
        objective='Click "Continue" to start the tutorial',
        phase=PHASE_SETUP,
        allowed_actions=(),
    ),
    TutorialStep(
        step=1,
        title="Reinforcement Phase",
        description="Place 5 armies on Alaska, Alberta, or Ontario.",
        objective="Place all 5 armies on your territories",
        phase=PHASE_REINFORCEMENT,
        allowed_actions=(MOVE_DEPLOY,),
    ),
    TutorialStep(
        step=2,
        title="Attack Phase",
        description="Select Alaska, then attack adjacent Northwest Territory.",
        objective="Attack and conquer Northwest Territory",
        phase=PHASE_ATTACK,
        allowed_actions=(MOVE_ATTACK,),
    ),
    TutorialStep(
        step=3,
        title="Fortify Phase",
        description="Move armies from Alberta to strengthen Alaska.",
        objective="Move armies from Alberta to Alaska",
        phase=PHASE_FORTIFY,
        allowed_actions=(MOVE_FORTIFY,),
    ),
    TutorialStep(
        step=4,
        title="Continue Playing",
        description="Conquer all territories: Reinforce, Attack, Fortify, End Turn.",
        objective="Conquer all enemy territories to win the game!",
        phase=PHASE_REINFORCEMENT,
        allowed_actions=(MOVE_DEPLOY, MOVE_ATTACK, MOVE_FORTIFY, MOVE_SKIP),
        pinned=False,
    ),
)

TUTORIAL_SCENARIO = {
    "player_color": "blue",
    "ai_color": "red",
    "player_starting_armies": 5,
    "player_territories": {
        "alaska": 3,
        "alberta": 3,
        "ontario": 3,
    },
    "ai_territories": {
        "northwest-territory": 2,
        "greenland": 2,
        "iceland": 2,
        "great-britain": 2,
        "scandinavia": 2,
    },
}


def get_tutorial_step(step: int | None) -> TutorialStep | None:
    if step is None or step < 0 or step >= len(TUTORIAL_STEPS):
        return None
    return TUTORIAL_STEPS[step]


def is_tutorial_complete(state: GameState) -> bool:
    return state.tutorial_step is not None and state.tutorial_step >= len(TUTORIAL_STEPS)


def create_tutorial_game(
    player_id: str,
    ai_id: str = "tutorial-ai",
    game_id: str = "tutorial",
    player_name: str = "Player",
    game_map: MapDefinition | None = None,
) -> GameState:
    """Build the tutorial scenario at step 0. Unlisted territories stay unclaimed."""
    if player_id == ai_id:
        raise ValidationError("Tutorial player and AI need different ids")
    game_map = game_map or get_classic_map()

    territories = {tid: TerritoryState(owner=None, armies=0) for tid in game_map.territory_ids()}
    for tid, armies in TUTORIAL_SCENARIO["player_territories"].items():
        territories[tid] = TerritoryState(owner=player_id, armies=armies)
    for tid, armies in TUTORIAL_SCENARIO["ai_territories"].items():
        territories[tid] = TerritoryState(owner=ai_id, armies=armies)

    return GameState(
        game_id=game_id,
        map_id=game_map.id,
        status=STATUS_SETUP,
        phase=PHASE_REINFORCEMENT,
        current_player_index=0,
        turn_number=1,
        territories=territories,
        players=[
            PlayerState(id=player_id, name=player_name, color=TUTORIAL_SCENARIO["player_color"], turn_order=0),
            PlayerState(id=ai_id, name="Tutorial AI", color=TUTORIAL_SCENARIO["ai_color"], turn_order=1, is_ai=True),
        ],
        tutorial_step=0,
    )


def validate_tutorial_move(state: GameState, move: Move, game_map: MapDefinition) -> ValidationResult:
    """The current step's allow-list first, then the regular rules."""
    if state.tutorial_step is None:
        return ValidationResult(False, "Not a tutorial game")
    step = get_tutorial_step(state.tutorial_step)
    if step is not None and move.type not in step.allowed_actions:
        if not step.allowed_actions:
            return ValidationResult(False, f"No moves allowed during '{step.title}'. Continue to proceed")
        return ValidationResult(
            False,
            f"'{move.type}' is not part of this tutorial step. Allowed: {list(step.allowed_actions)}"
        )
    return validate_move(state, move, game_map)


def continue_move(state: GameState) -> Move:
    """The log entry recording a continue by the tutorial player."""
    return Move(type=MOVE_CONTINUE, player=state.players[0].id if state.players else "")


def advance_tutorial(state: GameState) -> tuple[GameState, list[GameEvent]]:
    """
    The explicit continue signal. Moves to the next step and sets status and
    phase from it. Entering step 1 grants the player their starting armies.
    Continuing past the last step marks the tutorial complete.
    """
    if state.tutorial_step is None:
        raise ValidationError("Not a tutorial game")
    if is_tutorial_complete(state):
        return state.copy(), []

    new_state = state.copy()
    old_step = new_state.tutorial_step
    new_step = old_step + 1
    new_state.tutorial_step = new_step
    step = get_tutorial_step(new_step)

    if step is None:
        logger.info("Game %s tutorial complete", new_state.game_id)
        return new_state, [tutorial_advanced(old_step, new_step, "Tutorial complete")]

    if new_state.is_finished:
        # Won early; keep the result, just move the pointer
        return new_state, [tutorial_advanced(old_step, new_step, step.title)]

    if step.phase == PHASE_SETUP:
        new_state.status = STATUS_SETUP
    else:
        new_state.status = STATUS_PLAYING
        new_state.phase = step.phase
        new_state.current_player_index = 0

    if new_step == 1:
        player = new_state.players[0]
        player.armies_available = TUTORIAL_SCENARIO["player_starting_armies"]

    return new_state, [tutorial_advanced(old_step, new_step, step.title)]


def apply_tutorial_move(
    state: GameState,
    move: Move,
    game_map: MapDefinition,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
) -> tuple[GameState, list[GameEvent]]:
    """
    Gate on the step allow-list, then apply through the regular reducer.
    For pinned steps the phase, player, and turn are held where the step put them.
    """
    result = validate_tutorial_move(state, move, game_map)
    if not result.valid:
        logger.error("Refusing tutorial move %s in game %s: %s", move.type, state.game_id, result.error)
        raise InvariantViolation(f"Cannot apply {move.type}: {result.error}")

    new_state, events = apply_move(state, move, game_map, roller=roller, modifiers=modifiers)

    step = get_tutorial_step(state.tutorial_step)
    if step is None or not step.pinned or new_state.is_finished:
        return new_state, events

    if new_state.current_player_index != state.current_player_index or new_state.turn_number != state.turn_number:
        # The move ended the turn: take back the next player's reinforcements too
        for before, after in zip(state.players, new_state.players):
            if after.id != move.player:
                after.armies_available = before.armies_available
        new_state.last_battle = state.last_battle
    new_state.phase = state.phase
    new_state.current_player_index = state.current_player_index
    new_state.turn_number = state.turn_number
    events = [e for e in events if e.type not in (PHASE_CHANGED, TURN_STARTED)]
    return new_state, events
