"""
Snapshot save/load points.

The engine only needs a place to save a state and get it back by game id;
retention policy belongs to whatever store is plugged in.
"""

import logging
from typing import Dict, List, Protocol

import orjson

from .errors import CorruptSnapshotError
from .models import GameState
from .serialization import dumps_state, loads_state
from .shuffle import validate_deck_integrity

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def save_snapshot(self, state: GameState) -> None:
        ...

    def load_snapshot(self, game_id: str) -> GameState:
        ...


class InMemorySnapshotStore:
    """Keeps the latest serialized snapshot per game in a dict."""

    def __init__(self):
        self._snapshots: Dict[str, bytes] = {}

    def save_snapshot(self, state: GameState) -> None:
        self._snapshots[state.id] = dumps_state(state)

    def load_snapshot(self, game_id: str) -> GameState:
        """
        Load and verify the latest snapshot for a game.

        Raises:
            KeyError: If nothing was saved for this game
            CorruptSnapshotError: If the snapshot cannot be parsed or its cards
                do not partition the deck
        """
        raw = self._snapshots[game_id]
        try:
            state = loads_state(raw)
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Snapshot for game {game_id} could not be parsed: {e}")
            raise CorruptSnapshotError(f"Snapshot for game {game_id} could not be parsed: {e}") from e

        if not validate_deck_integrity(state):
            logger.error(f"Snapshot for game {game_id} fails card accounting")
            raise CorruptSnapshotError(f"Snapshot for game {game_id} fails card accounting")

        return state

    def delete_snapshot(self, game_id: str) -> None:
        self._snapshots.pop(game_id, None)

    def game_ids(self) -> List[str]:
        return list(self._snapshots.keys())
