"""
Battle resolver: dice counts, pairwise comparison, modifiers and simulation.
"""

import pytest

from riskgame.engine.combat import (
    BattleModifier,
    attacker_dice_count,
    blitz_modifier,
    compare_dice,
    defender_dice_count,
    estimate_conquest_probability,
    fortification_modifier,
    mountain_defense_modifier,
    resolve_round,
    simulate_battle,
)
from riskgame.engine.dice import DiceRoller, FixedDiceRoller, SeededRandomSource


def _always(ctx):
    return True


# ============================================================
# DICE COUNTS AND COMPARISON
# ============================================================

@pytest.mark.parametrize("armies,expected", [(1, 0), (2, 1), (3, 2), (4, 3), (10, 3)])
def test_attacker_dice_count(armies, expected):
    assert attacker_dice_count(armies) == expected


@pytest.mark.parametrize("armies,expected", [(0, 0), (1, 1), (2, 2), (5, 2)])
def test_defender_dice_count(armies, expected):
    assert defender_dice_count(armies) == expected


def test_tie_goes_to_defender():
    assert compare_dice([4], [4]) == (1, 0)


def test_higher_attacker_die_wins():
    assert compare_dice([6], [3]) == (0, 1)


def test_pairwise_comparison():
    assert compare_dice([5, 3], [4, 2]) == (0, 2)
    assert compare_dice([6, 3, 1], [5, 5]) == (1, 1)
    # only as many pairs as the smaller side
    assert compare_dice([6, 6, 6], [1]) == (0, 1)


# ============================================================
# SINGLE ROUND
# ============================================================

def test_round_tie():
    outcome = resolve_round(2, 1, roller=FixedDiceRoller([[4], [4]]))
    assert outcome.attacker_dice == [4]
    assert outcome.defender_dice == [4]
    assert (outcome.attacker_losses, outcome.defender_losses) == (1, 0)
    assert not outcome.conquered


def test_round_conquest():
    outcome = resolve_round(2, 1, roller=FixedDiceRoller([[6], [3]]))
    assert outcome.defender_losses == 1
    assert outcome.conquered


def test_two_dice_against_two():
    outcome = resolve_round(3, 2, roller=FixedDiceRoller([[3, 5], [2, 4]]))
    assert outcome.attacker_dice == [5, 3]
    assert outcome.defender_dice == [4, 2]
    assert (outcome.attacker_losses, outcome.defender_losses) == (0, 2)
    assert outcome.conquered


def test_three_dice_against_two():
    outcome = resolve_round(4, 2, roller=FixedDiceRoller([[6, 1, 3], [5, 5]]))
    assert outcome.attacker_dice == [6, 3, 1]
    assert (outcome.attacker_losses, outcome.defender_losses) == (1, 1)
    assert not outcome.conquered


def test_single_army_rolls_nothing():
    # an empty script proves no dice were requested
    outcome = resolve_round(1, 3, roller=FixedDiceRoller([]))
    assert outcome.attacker_dice == []
    assert outcome.defender_dice == []
    assert (outcome.attacker_losses, outcome.defender_losses) == (0, 0)
    assert outcome.rounds == 1
    assert not outcome.conquered


def test_seeded_rounds_respect_loss_bounds():
    roller = DiceRoller(SeededRandomSource(99))
    for attacking in range(2, 8):
        for defending in range(1, 5):
            outcome = resolve_round(attacking, defending, roller=roller)
            pairs = min(attacker_dice_count(attacking), defender_dice_count(defending))
            assert outcome.attacker_losses + outcome.defender_losses == pairs


# ============================================================
# MODIFIERS
# ============================================================

def test_example_modifiers_inactive_by_default():
    modifiers = [fortification_modifier(), mountain_defense_modifier()]
    outcome = resolve_round(2, 1, roller=FixedDiceRoller([[5], [4]]), modifiers=modifiers)
    assert outcome.defender_dice == [4]
    assert outcome.conquered


def test_fortification_raises_defender_high_die():
    fort = fortification_modifier(applies_to=_always)
    outcome = resolve_round(2, 1, roller=FixedDiceRoller([[5], [4]]), modifiers=[fort])
    assert outcome.defender_dice == [5]
    assert (outcome.attacker_losses, outcome.defender_losses) == (1, 0)


def test_fortification_caps_at_six():
    fort = fortification_modifier(applies_to=_always, bonus=3)
    outcome = resolve_round(2, 1, roller=FixedDiceRoller([[6], [5]]), modifiers=[fort])
    assert outcome.defender_dice == [6]


def test_mountain_defense_absorbs_one_loss():
    mountain = mountain_defense_modifier(applies_to=_always)
    outcome = resolve_round(2, 1, roller=FixedDiceRoller([[6], [3]]), modifiers=[mountain])
    assert outcome.defender_losses == 0
    assert not outcome.conquered


def test_blitz_only_with_overwhelming_force():
    blitz = blitz_modifier()
    boosted = resolve_round(6, 2, roller=FixedDiceRoller([[3, 3, 3], [3, 2]]), modifiers=[blitz])
    assert boosted.attacker_dice == [4, 3, 3]
    assert (boosted.attacker_losses, boosted.defender_losses) == (0, 2)

    plain = resolve_round(5, 2, roller=FixedDiceRoller([[3, 3, 3], [3, 2]]), modifiers=[blitz])
    assert plain.attacker_dice == [3, 3, 3]
    assert (plain.attacker_losses, plain.defender_losses) == (1, 1)


def test_modifiers_run_in_priority_order():
    calls = []

    def recorder(name):
        def before_roll(ctx, attacking, defending):
            calls.append(name)
            return attacking, defending
        return before_roll

    late = BattleModifier(name="late", priority=50, before_roll=recorder("late"))
    early = BattleModifier(name="early", priority=5, before_roll=recorder("early"))
    resolve_round(2, 1, roller=FixedDiceRoller([[6], [1]]), modifiers=[late, early])
    assert calls == ["early", "late"]


def test_before_roll_changes_dice_counts():
    shrink = BattleModifier(name="shrink", before_roll=lambda ctx, a, d: (a, 1))
    outcome = resolve_round(4, 2, roller=FixedDiceRoller([[6, 5, 4], [3]]), modifiers=[shrink])
    assert outcome.defender_dice == [3]
    assert outcome.defender_losses == 1
    assert not outcome.conquered


def test_losses_are_clamped_to_armies_present():
    overkill = BattleModifier(name="overkill", modify_losses=lambda ctx, a, d: (0, 5))
    outcome = resolve_round(2, 2, roller=FixedDiceRoller([[1], [6, 6]]), modifiers=[overkill])
    assert outcome.defender_losses == 2
    assert outcome.conquered


def test_attacker_losses_leave_one_army_behind():
    extra = BattleModifier(name="extra", modify_losses=lambda ctx, a, d: (a + 1, d))
    outcome = resolve_round(2, 1, roller=FixedDiceRoller([[1], [6]]), modifiers=[extra])
    assert outcome.attacker_losses == 1
    outcome = resolve_round(4, 2, roller=FixedDiceRoller([[1, 1, 1], [6, 6]]), modifiers=[extra])
    assert outcome.attacker_losses == 3


# ============================================================
# SIMULATION
# ============================================================

def test_simulate_battle_single_round():
    result = simulate_battle(2, 1, roller=FixedDiceRoller([[6], [1]]))
    assert result.conquered
    assert result.rounds == 1
    assert result.attacker_remaining == 2


def test_simulate_battle_stops_at_one_attacker():
    result = simulate_battle(10, 3, roller=DiceRoller(SeededRandomSource(4)))
    assert result.rounds >= 1
    assert result.attacker_remaining >= 1
    assert result.conquered or result.attacker_remaining == 1


def test_conquest_probability_extremes():
    roller = DiceRoller(SeededRandomSource(8))
    assert estimate_conquest_probability(20, 1, simulations=200, roller=roller) > 0.9
    assert estimate_conquest_probability(2, 10, simulations=200, roller=roller) < 0.1


def test_conquest_probability_needs_simulations():
    with pytest.raises(ValueError):
        estimate_conquest_probability(5, 5, simulations=0)
