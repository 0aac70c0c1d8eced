"""
Move history and rollback.

History is a bounded FIFO of (action, prior snapshot) pairs. Snapshots are
copy-on-write clones stripped of their own history so retention stays linear.
"""

import copy
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .constants import ERROR_ROLLBACK_NOT_FOUND, MAX_HISTORY_LENGTH
from .errors import RollbackNotAuthorizedError, RollbackNotFoundError
from .models import Action, ActionType, GamePhase, GameState, MoveHistoryEntry

logger = logging.getLogger(__name__)


@dataclass
class RollbackResult:
    success: bool
    state: Optional[GameState] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    index: int = -1


def snapshot_state(state: GameState) -> GameState:
    """Clone a state for retention in history (without its own history)."""
    return state.copy(include_history=False)


def record_move(
    history: Sequence[MoveHistoryEntry],
    prior_state: GameState,
    action: Action,
    max_length: int = MAX_HISTORY_LENGTH,
) -> List[MoveHistoryEntry]:
    """
    Append one entry and evict the oldest beyond ``max_length``.

    Returns:
        New history list; the input sequence is not modified
    """
    entry = MoveHistoryEntry(
        action=copy.deepcopy(action),
        previous_state=snapshot_state(prior_state),
        timestamp=action.timestamp,
    )
    new_history = list(history)
    new_history.append(entry)
    if len(new_history) > max_length:
        new_history = new_history[len(new_history) - max_length:]
    return new_history


def rollback_to(history: Sequence[MoveHistoryEntry], timestamp: float) -> RollbackResult:
    """
    Find the snapshot taken immediately before the action with ``timestamp``.

    Absence is reported, not raised: the move has aged out of the retained window.
    """
    for index, entry in enumerate(history):
        if entry.timestamp == timestamp:
            return RollbackResult(success=True, state=snapshot_state(entry.previous_state), index=index)

    return RollbackResult(
        success=False,
        error_code=ERROR_ROLLBACK_NOT_FOUND,
        message=f"No move at {timestamp} in the retained history ({len(history)} moves)",
    )


def can_rollback(state: GameState, requesting_player_id: str) -> bool:
    """
    Check whether a player may request a rollback.

    Allowed for the host, for a disconnected player reconciling, and during
    SWAP for a player whose swap is still pending (not yet ready).
    """
    if state.config.host_id is not None and requesting_player_id == state.config.host_id:
        return True

    player = state.players.get(requesting_player_id)
    if player is None:
        return False

    if not player.connected:
        return True

    return state.phase == GamePhase.SWAP and not player.ready


def rollback_game(state: GameState, timestamp: float, requesting_player_id: str) -> GameState:
    """
    Restore the game to just before the action recorded at ``timestamp``.

    Raises:
        RollbackNotAuthorizedError: If the requester may not roll back
        RollbackNotFoundError: If the move is no longer in history
    """
    if not can_rollback(state, requesting_player_id):
        raise RollbackNotAuthorizedError(f"Player {requesting_player_id} may not roll back in {state.phase.value}")

    result = rollback_to(state.move_history, timestamp)
    if not result.success:
        raise RollbackNotFoundError(result.message)

    entry = state.move_history[result.index]
    is_host = requesting_player_id == state.config.host_id
    player = state.players.get(requesting_player_id)
    if not is_host and player is not None and player.connected:
        # Pending-swap path: only the player's own swaps can be undone
        if entry.action.player_id != requesting_player_id or entry.action.type != ActionType.SWAP_CARDS:
            raise RollbackNotAuthorizedError("Only your own pending swap can be rolled back")

    restored = result.state
    restored.move_history = list(state.move_history[:result.index])
    logger.info(f"Game {state.id} rolled back to {timestamp} by {requesting_player_id}")
    return restored


def get_relevant_moves(
    history: Sequence[MoveHistoryEntry],
    player_id: str,
    since: Optional[float] = None,
) -> List[MoveHistoryEntry]:
    """Moves a player is entitled to replay: their own, those targeting them, and public plays."""
    relevant = []
    for entry in history:
        action = entry.action
        is_relevant = (
            action.player_id == player_id
            or action.target == player_id
            or action.type in (ActionType.PLAY_CARDS, ActionType.PICKUP_PILE)
        )
        if is_relevant and (since is None or entry.timestamp >= since):
            relevant.append(entry)
    return relevant
