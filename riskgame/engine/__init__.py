"""
Risk rules engine.
Pure core: territory graph, dice, combat, move validation and the state reducer.
No web framework, database, or UI in here.
"""

DICE_SIDES = 6
MAX_ATTACKER_DICE = 3
MAX_DEFENDER_DICE = 2

# Reinforcement floor: a player always receives at least this many armies.
MIN_REINFORCEMENTS = 3
TERRITORIES_PER_REINFORCEMENT = 3
