"""
Base bot interface and utilities.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..comparator import group_by_rank
from ..models import Action, ActionType, Card, CardLocation, GamePhase, GameState, PlayerState
from ..validate import get_card_source, get_playable_cards, is_valid_play


class BotAction:
    """Represents a bot action."""

    def __init__(self, action_type: ActionType, **kwargs):
        self.type = action_type
        self.data = kwargs

    @classmethod
    def play(cls, cards: List[str]) -> 'BotAction':
        """Create a play action."""
        return cls(ActionType.PLAY_CARDS, cards=cards)

    @classmethod
    def pickup(cls) -> 'BotAction':
        """Create a pickup action."""
        return cls(ActionType.PICKUP_PILE)

    @classmethod
    def swap(cls, hand_card: str, face_up_card: str) -> 'BotAction':
        """Create a swap action."""
        return cls(ActionType.SWAP_CARDS, cards=[hand_card, face_up_card])

    @classmethod
    def ready(cls) -> 'BotAction':
        """Create a ready confirmation."""
        return cls(ActionType.CONFIRM_READY)

    @property
    def cards(self) -> List[str]:
        return self.data.get('cards', [])

    def to_action(self, player_id: str, timestamp: Optional[float] = None) -> Action:
        """Build the engine Action this bot action stands for."""
        action = Action(type=self.type, player_id=player_id, cards=list(self.cards))
        if timestamp is not None:
            action.timestamp = timestamp
        return action


class BaseBot(ABC):
    """Abstract base class for bot players."""

    def __init__(self, player_id: str):
        self.player_id = player_id

    @abstractmethod
    def choose_action(self, state: GameState) -> Optional[BotAction]:
        """
        Choose an action based on the current game state.

        Args:
            state: Current game state

        Returns:
            BotAction to take, or None if no action needed
        """
        pass

    def get_player(self, state: GameState) -> Optional[PlayerState]:
        return state.players.get(self.player_id)

    def is_my_turn(self, state: GameState) -> bool:
        """Check if it's this bot's turn."""
        return state.phase == GamePhase.PLAY and state.current_player == self.player_id

    def get_playable_cards(self, state: GameState) -> List[Card]:
        """Cards in this bot's current depletion layer."""
        player = self.get_player(state)
        return get_playable_cards(player) if player else []

    def is_playing_blind(self, state: GameState) -> bool:
        """True once only face-down cards are left."""
        player = self.get_player(state)
        return player is not None and get_card_source(player) == CardLocation.FACE_DOWN

    def get_valid_plays(self, state: GameState) -> List[List[Card]]:
        """
        Get all valid plays this bot can make.

        Each rank group of the playable layer is tried whole, then each card on
        its own, through the same validator human plays go through.

        Returns:
            List of valid card combinations that can be played
        """
        cards = self.get_playable_cards(state)
        if not cards or self.is_playing_blind(state):
            return []

        rules = state.config.rules
        candidates = []
        for group in group_by_rank(cards).values():
            if len(group) > 1 and rules.allow_multiples:
                candidates.append(group)
            candidates.extend([card] for card in group)

        return [play for play in candidates if is_valid_play(play, pile=state.pile, rules=rules)]

    def count_cards(self, state: GameState, player_id: Optional[str]) -> int:
        """Get the total number of cards another player still holds."""
        player = state.players.get(player_id) if player_id else None
        return player.total_cards if player else 0
