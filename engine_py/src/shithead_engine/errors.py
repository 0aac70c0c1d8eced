# engine_py/src/shithead_engine/errors.py

from .constants import (
    ERROR_CARD_ACCOUNTING,
    ERROR_CORRUPT_SNAPSHOT,
    ERROR_INSUFFICIENT_CARDS,
    ERROR_INVALID_CARD_SOURCE,
    ERROR_INVALID_PLAY,
    ERROR_INVALID_PLAYER,
    ERROR_INVALID_PLAYER_COUNT,
    ERROR_INVALID_SWAP,
    ERROR_PHASE_VIOLATION,
    ERROR_ROLLBACK_NOT_AUTHORIZED,
    ERROR_ROLLBACK_NOT_FOUND,
    ERROR_TURN_VIOLATION,
)


class GameError(Exception):
    """Base exception for game-related errors."""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class InvalidPlayerError(GameError):
    """Unknown or disconnected actor."""
    def __init__(self, message: str):
        super().__init__(ERROR_INVALID_PLAYER, message)


class InvalidPlayerCountError(GameError):
    def __init__(self, message: str):
        super().__init__(ERROR_INVALID_PLAYER_COUNT, message)


class PhaseViolationError(GameError):
    """Action not permitted in the current phase."""
    def __init__(self, message: str):
        super().__init__(ERROR_PHASE_VIOLATION, message)


class TurnViolationError(GameError):
    def __init__(self, message: str):
        super().__init__(ERROR_TURN_VIOLATION, message)


class InvalidCardSourceError(GameError):
    """Cards do not come from the player's current depletion layer."""
    def __init__(self, message: str):
        super().__init__(ERROR_INVALID_CARD_SOURCE, message)


class InvalidPlayError(GameError):
    """Rank/threshold rule violation."""
    def __init__(self, message: str, reason: str = ERROR_INVALID_PLAY):
        self.reason = reason
        super().__init__(ERROR_INVALID_PLAY, message)


class InsufficientCardsError(GameError):
    def __init__(self, message: str):
        super().__init__(ERROR_INSUFFICIENT_CARDS, message)


class InvalidSwapError(GameError):
    def __init__(self, message: str):
        super().__init__(ERROR_INVALID_SWAP, message)


class RollbackNotFoundError(GameError):
    def __init__(self, message: str):
        super().__init__(ERROR_ROLLBACK_NOT_FOUND, message)


class RollbackNotAuthorizedError(GameError):
    def __init__(self, message: str):
        super().__init__(ERROR_ROLLBACK_NOT_AUTHORIZED, message)


class CardAccountingError(GameError):
    """Fatal: the card partition is broken and the game must be rebuilt from a snapshot."""
    def __init__(self, message: str):
        super().__init__(ERROR_CARD_ACCOUNTING, message)


class CorruptSnapshotError(GameError):
    """Fatal: a persisted snapshot could not be restored."""
    def __init__(self, message: str):
        super().__init__(ERROR_CORRUPT_SNAPSHOT, message)


# Errors that reject an action but leave the game playable
RECOVERABLE_ERRORS = (
    InvalidPlayerError,
    InvalidPlayerCountError,
    PhaseViolationError,
    TurnViolationError,
    InvalidCardSourceError,
    InvalidPlayError,
    InsufficientCardsError,
    InvalidSwapError,
    RollbackNotFoundError,
    RollbackNotAuthorizedError,
)
