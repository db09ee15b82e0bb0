"""
Dice engine.

Each die is drawn from a 32-bit source with rejection sampling: draws at or
above the largest multiple of 6 below 2**32 are discarded, so every face is
equally likely. The source is injectable so tests can replay exact rolls.
"""

import random
import secrets
from typing import Iterable, Protocol

from riskgame.engine import DICE_SIDES

SOURCE_RANGE = 2 ** 32
REJECTION_LIMIT = (SOURCE_RANGE // DICE_SIDES) * DICE_SIDES


class RandomSource(Protocol):
    def randbits32(self) -> int:
        """Return an integer in [0, 2**32)."""


class SecureRandomSource:
    """Cryptographically strong source backed by the OS CSPRNG."""

    def randbits32(self) -> int:
        return secrets.randbits(32)


class SeededRandomSource:
    """Reproducible source for tests and simulations. Not for live games."""

    def __init__(self, seed: int | str | None = None):
        self._rng = random.Random(seed)

    def randbits32(self) -> int:
        return self._rng.getrandbits(32)


class ScriptedRandomSource:
    """Replays a fixed list of raw 32-bit draws, in order."""

    def __init__(self, values: Iterable[int]):
        self._values = list(values)
        self._index = 0

    def randbits32(self) -> int:
        if self._index >= len(self._values):
            raise IndexError("Scripted random source exhausted")
        value = self._values[self._index]
        self._index += 1
        return value


class DiceRoller:
    """Rolls six-sided dice from a RandomSource."""

    def __init__(self, source: RandomSource | None = None):
        self.source = source if source is not None else SecureRandomSource()

    def roll_die(self) -> int:
        value = self.source.randbits32()
        while value >= REJECTION_LIMIT:
            value = self.source.randbits32()
        return (value % DICE_SIDES) + 1

    def roll_dice(self, count: int) -> list[int]:
        """Roll `count` dice and return them sorted highest first."""
        if count < 0:
            raise ValueError(f"Cannot roll a negative number of dice: {count}")
        return sorted((self.roll_die() for _ in range(count)), reverse=True)


class FixedDiceRoller(DiceRoller):
    """
    Returns pre-scripted rolls, one list per roll_dice call.
    Each scripted list is truncated to the requested count and sorted descending.
    """

    def __init__(self, rolls: Iterable[Iterable[int]]):
        super().__init__(source=ScriptedRandomSource([]))
        self._rolls = [list(r) for r in rolls]

    def roll_dice(self, count: int) -> list[int]:
        if count < 0:
            raise ValueError(f"Cannot roll a negative number of dice: {count}")
        if count == 0:
            return []
        if not self._rolls:
            raise IndexError("Fixed dice roller exhausted")
        scripted = self._rolls.pop(0)
        if len(scripted) < count:
            raise ValueError(f"Scripted roll {scripted} has fewer than {count} dice")
        return sorted(scripted[:count], reverse=True)


def roll_dice(count: int, roller: DiceRoller | None = None) -> list[int]:
    """Roll dice with the given roller, or a fresh secure one."""
    return (roller or DiceRoller()).roll_dice(count)
