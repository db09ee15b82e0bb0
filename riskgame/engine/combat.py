"""
Combat resolution system.
One call resolves exactly one round of dice: attacker rolls up to 3, defender up to 2,
dice are compared pairwise from the highest and ties go to the defender.

Rule adjustments (terrain, fortifications, cards) are BattleModifier values run in
priority order at three points: before the roll, after the roll, after losses.
The base ruleset runs none of them.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from riskgame.engine import MAX_ATTACKER_DICE, MAX_DEFENDER_DICE, DICE_SIDES
from riskgame.engine.dice import DiceRoller
from riskgame.engine.state import BattleOutcome

logger = logging.getLogger(__name__)

SIDE_ATTACKER = "attacker"
SIDE_DEFENDER = "defender"


@dataclass(frozen=True)
class BattleContext:
    """Who is fighting where, and with how many armies at the start of the round."""
    attacking_armies: int
    defending_armies: int
    attacker: str | None = None
    defender: str | None = None
    from_territory: str | None = None
    to_territory: str | None = None


@dataclass(frozen=True)
class BattleModifier:
    """
    A rule adjustment applied during a round.

    before_roll(ctx, attacking, defending) -> (attacking, defending)
    modify_dice(ctx, side, dice) -> dice
    modify_losses(ctx, attacker_losses, defender_losses) -> (attacker_losses, defender_losses)
    """
    name: str
    description: str = ""
    priority: int = 100  # lower runs first
    applies_to: Callable[[BattleContext], bool] = lambda ctx: True
    before_roll: Callable[[BattleContext, int, int], tuple[int, int]] | None = None
    modify_dice: Callable[[BattleContext, str, list[int]], list[int]] | None = None
    modify_losses: Callable[[BattleContext, int, int], tuple[int, int]] | None = None


# No modifiers are active in the base ruleset.
BASE_MODIFIERS: tuple[BattleModifier, ...] = ()


def active_modifiers(
    context: BattleContext,
    modifiers: Iterable[BattleModifier],
) -> list[BattleModifier]:
    """Modifiers that apply to this battle, lowest priority first (stable for ties)."""
    return sorted(
        (m for m in modifiers if m.applies_to(context)),
        key=lambda m: m.priority,
    )


def attacker_dice_count(attacking_armies: int) -> int:
    """One army must stay behind, so at most armies - 1 dice (capped at 3)."""
    return max(0, min(MAX_ATTACKER_DICE, attacking_armies - 1))


def defender_dice_count(defending_armies: int) -> int:
    return max(0, min(MAX_DEFENDER_DICE, defending_armies))


def compare_dice(attacker_dice: Sequence[int], defender_dice: Sequence[int]) -> tuple[int, int]:
    """
    Compare sorted dice pairwise from the highest.
    Returns (attacker_losses, defender_losses). Ties favor the defender.
    """
    attacker_losses = 0
    defender_losses = 0
    for att, dfn in zip(attacker_dice, defender_dice):
        if att > dfn:
            defender_losses += 1
        else:
            attacker_losses += 1
    return attacker_losses, defender_losses


def resolve_round(
    attacking_armies: int,
    defending_armies: int,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
    context: BattleContext | None = None,
) -> BattleOutcome:
    """
    Resolve a single round of combat.

    Steps:
    1. before_roll modifiers may adjust the participating army counts
    2. attacker rolls min(3, attacking - 1), defender rolls min(2, defending)
    3. modify_dice modifiers may alter rolled values (dice are re-sorted after)
    4. pairwise comparison, ties to the defender
    5. modify_losses modifiers may alter the loss counts
    6. losses are clamped to what each side actually has

    With fewer than 2 attacking armies no dice are rolled and nothing changes.
    Validation rejects that case before it gets here.

    Args:
        attacking_armies: Armies on the attacking territory (including the one left behind)
        defending_armies: Armies on the defending territory
        roller: Dice roller (defaults to a fresh cryptographically secure one)
        modifiers: Candidate modifiers; only those whose applies_to(ctx) is true run
        context: Battle context; built from the army counts when omitted

    Returns:
        BattleOutcome with sorted dice, losses, and the conquest flag
    """
    if roller is None:
        roller = DiceRoller()
    if context is None:
        context = BattleContext(attacking_armies=attacking_armies, defending_armies=defending_armies)

    chain = active_modifiers(context, modifiers)

    attacking, defending = attacking_armies, defending_armies
    for mod in chain:
        if mod.before_roll is not None:
            attacking, defending = mod.before_roll(context, attacking, defending)

    att_count = attacker_dice_count(attacking)
    if att_count < 1:
        logger.debug("Attack with %d armies rolls no dice", attacking)
        return BattleOutcome(
            attacker_dice=[],
            defender_dice=[],
            attacker_losses=0,
            defender_losses=0,
            conquered=False,
            rounds=1,
        )
    def_count = defender_dice_count(defending)

    attacker_dice = roller.roll_dice(att_count)
    defender_dice = roller.roll_dice(def_count)

    for mod in chain:
        if mod.modify_dice is not None:
            attacker_dice = sorted(mod.modify_dice(context, SIDE_ATTACKER, list(attacker_dice)), reverse=True)
            defender_dice = sorted(mod.modify_dice(context, SIDE_DEFENDER, list(defender_dice)), reverse=True)

    attacker_losses, defender_losses = compare_dice(attacker_dice, defender_dice)

    for mod in chain:
        if mod.modify_losses is not None:
            attacker_losses, defender_losses = mod.modify_losses(context, attacker_losses, defender_losses)

    # at least one army stays behind in the attacking territory
    attacker_losses = max(0, min(attacker_losses, attacking_armies - 1))
    defender_losses = max(0, min(defender_losses, defending_armies))

    outcome = BattleOutcome(
        attacker_dice=attacker_dice,
        defender_dice=defender_dice,
        attacker_losses=attacker_losses,
        defender_losses=defender_losses,
        conquered=defending_armies - defender_losses == 0,
        rounds=1,
        from_territory=context.from_territory,
        to_territory=context.to_territory,
    )
    logger.debug(
        "Battle %s -> %s: %s vs %s, losses %d/%d%s",
        context.from_territory, context.to_territory,
        attacker_dice, defender_dice, attacker_losses, defender_losses,
        " (conquered)" if outcome.conquered else "",
    )
    return outcome


# ===== Example modifiers =====
# Inactive unless the caller passes them in. Each takes an applies_to predicate,
# so a ruleset can limit it to specific territories or players.

def _never(ctx: BattleContext) -> bool:
    return False


def fortification_modifier(
    applies_to: Callable[[BattleContext], bool] = _never,
    bonus: int = 1,
) -> BattleModifier:
    """Defender's highest die gets +bonus (capped at 6)."""
    def modify_dice(ctx: BattleContext, side: str, dice: list[int]) -> list[int]:
        if side != SIDE_DEFENDER or not dice:
            return dice
        dice = sorted(dice, reverse=True)
        dice[0] = min(DICE_SIDES, dice[0] + bonus)
        return dice

    return BattleModifier(
        name="fortification",
        description=f"Defender adds {bonus} to their highest die",
        priority=10,
        applies_to=applies_to,
        modify_dice=modify_dice,
    )


def mountain_defense_modifier(
    applies_to: Callable[[BattleContext], bool] = _never,
) -> BattleModifier:
    """Defender loses one fewer army (never below zero)."""
    def modify_losses(ctx: BattleContext, attacker_losses: int, defender_losses: int) -> tuple[int, int]:
        return attacker_losses, max(0, defender_losses - 1)

    return BattleModifier(
        name="mountain_defense",
        description="Defender loses one fewer army",
        priority=20,
        applies_to=applies_to,
        modify_losses=modify_losses,
    )


def blitz_modifier(
    applies_to: Callable[[BattleContext], bool] | None = None,
    ratio: int = 3,
) -> BattleModifier:
    """
    Attacker at ratio-to-one or better gets +1 on their lowest die.
    With no predicate it is active whenever the ratio holds.
    """
    def overwhelming(ctx: BattleContext) -> bool:
        return ctx.attacking_armies >= ratio * max(1, ctx.defending_armies)

    if applies_to is None:
        predicate = overwhelming
    else:
        def predicate(ctx: BattleContext) -> bool:
            return applies_to(ctx) and overwhelming(ctx)

    def modify_dice(ctx: BattleContext, side: str, dice: list[int]) -> list[int]:
        if side != SIDE_ATTACKER or not dice:
            return dice
        dice = sorted(dice, reverse=True)
        dice[-1] = min(DICE_SIDES, dice[-1] + 1)
        return dice

    return BattleModifier(
        name="blitz",
        description=f"Attacker with {ratio}x the defending armies adds 1 to their lowest die",
        priority=30,
        applies_to=predicate,
        modify_dice=modify_dice,
    )


# ===== Simulation =====

@dataclass
class BattleSimulation:
    """Result of fighting rounds until one side can no longer continue."""
    attacker_remaining: int
    defender_remaining: int
    rounds: int

    @property
    def conquered(self) -> bool:
        return self.defender_remaining == 0


def simulate_battle(
    attacking_armies: int,
    defending_armies: int,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
    max_rounds: int = 1000,
) -> BattleSimulation:
    """Repeat rounds until the attacker is down to 1 army or the defender to 0."""
    if roller is None:
        roller = DiceRoller()
    modifiers = tuple(modifiers)
    attacking, defending = attacking_armies, defending_armies
    rounds = 0
    while attacking > 1 and defending > 0 and rounds < max_rounds:
        outcome = resolve_round(
            attacking,
            defending,
            roller=roller,
            modifiers=modifiers,
            context=BattleContext(attacking_armies=attacking, defending_armies=defending),
        )
        attacking -= outcome.attacker_losses
        defending -= outcome.defender_losses
        rounds += 1
    return BattleSimulation(attacker_remaining=attacking, defender_remaining=defending, rounds=rounds)


def estimate_conquest_probability(
    attacking_armies: int,
    defending_armies: int,
    simulations: int = 1000,
    roller: DiceRoller | None = None,
    modifiers: Iterable[BattleModifier] = BASE_MODIFIERS,
) -> float:
    """Monte Carlo estimate of the chance an all-out attack takes the territory."""
    if simulations <= 0:
        raise ValueError("simulations must be positive")
    if roller is None:
        roller = DiceRoller()
    modifiers = tuple(modifiers)
    wins = sum(
        1
        for _ in range(simulations)
        if simulate_battle(attacking_armies, defending_armies, roller=roller, modifiers=modifiers).conquered
    )
    return wins / simulations
