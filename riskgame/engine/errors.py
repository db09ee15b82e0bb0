"""
Error taxonomy for the rules engine.

ValidationError and ConcurrencyConflict are recoverable and surface to callers.
ConfigurationError aborts startup. InvariantViolation means a caller applied a
move that validation would have rejected.
"""


class RiskError(Exception):
    """Base class for all engine errors."""


class ValidationError(RiskError, ValueError):
    """A move breaks a rule. `reason` is shown to the player verbatim."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ConfigurationError(RiskError):
    """The territory graph failed its structural checks at load time."""


class ConcurrencyConflict(RiskError):
    """The persisted game changed between read and write."""

    def __init__(self, game_id: str, expected_version: int, actual_version: int | None = None):
        detail = f"Game {game_id} changed since version {expected_version}"
        if actual_version is not None:
            detail += f" (now {actual_version})"
        super().__init__(detail)
        self.game_id = game_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class InvariantViolation(RiskError):
    """A move reached the reducer that validation would have rejected."""


class GameNotFound(RiskError, LookupError):
    """No persisted game with the given id."""
