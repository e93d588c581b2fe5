"""
Opaque error taxonomy for the simulator core.

Every externally visible failure is exactly one of four kinds. The public
message of each kind is fixed: file paths, parser positions and
cryptographic internals never appear on the error value. Lower-level causes
are written to the module logger at the point of translation and the
original exception is suppressed (``raise ... from None``).
"""


class GameError(Exception):
    """Base class for all player/host-facing engine errors."""

    message = "Game engine error"

    def __init__(self) -> None:
        super().__init__(self.message)


class InvalidAction(GameError):
    """Chosen option does not belong to the current decision.

    Recoverable: the turn is not advanced and the caller re-prompts.
    """

    message = "Invalid action for current game state"


class StateCorruption(GameError):
    """Persisted state failed authentication, version or structural checks.

    Fatal to that load attempt; the caller falls back to a new game.
    """

    message = "Game state integrity check failed"


class SystemFailure(GameError):
    """Underlying storage or IO failure. The caller may retry."""

    message = "System error occurred"


class ConfigurationError(GameError):
    """Catalog or engine configuration is inconsistent."""

    message = "Game configuration is inconsistent"


class SchedulingError(ValueError):
    """Internal contract violation inside the consequence scheduler.

    Never reaches the host: TurnEngine translates it to ConfigurationError.
    """
    pass
