"""Game models and data structures"""

import copy
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Union

from .rules import GameConfig, default_config


class Suit(str, Enum):
    HEARTS = "H"
    DIAMONDS = "D"
    CLUBS = "C"
    SPADES = "S"


class Rank(str, Enum):
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"


RANK_VALUES: Dict[Rank, int] = {
    Rank.TWO: 2,
    Rank.THREE: 3,
    Rank.FOUR: 4,
    Rank.FIVE: 5,
    Rank.SIX: 6,
    Rank.SEVEN: 7,
    Rank.EIGHT: 8,
    Rank.NINE: 9,
    Rank.TEN: 10,
    Rank.JACK: 11,
    Rank.QUEEN: 12,
    Rank.KING: 13,
    Rank.ACE: 14,
}


class CardLocation(str, Enum):
    DECK = "DECK"
    HAND = "HAND"
    FACE_UP = "FACE_UP"
    FACE_DOWN = "FACE_DOWN"
    PILE = "PILE"
    BURNED = "BURNED"


class GamePhase(str, Enum):
    SETUP = "SETUP"
    SWAP = "SWAP"
    PLAY = "PLAY"
    ROUND_END = "ROUND_END"
    GAME_END = "GAME_END"


class ActionType(str, Enum):
    PLAY_CARDS = "PLAY_CARDS"
    PICKUP_PILE = "PICKUP_PILE"
    SWAP_CARDS = "SWAP_CARDS"
    CONFIRM_READY = "CONFIRM_READY"


class EffectType(str, Enum):
    BURN = "BURN"
    RESET = "RESET"
    TRANSPARENT = "TRANSPARENT"
    SKIP = "SKIP"


@dataclass(frozen=True)
class Card:
    id: str
    suit: Suit
    rank: Rank
    location: CardLocation = CardLocation.DECK
    face_up: bool = False
    owner_id: Optional[str] = None

    @property
    def value(self) -> int:
        return RANK_VALUES[self.rank]

    def moved_to(
        self,
        location: CardLocation,
        owner_id: Optional[str] = None,
        face_up: Optional[bool] = None,
    ) -> "Card":
        """Return this card relocated; identity (id, suit, rank) never changes."""
        if face_up is None:
            face_up = location != CardLocation.FACE_DOWN and location != CardLocation.DECK
        return replace(self, location=location, owner_id=owner_id, face_up=face_up)


CardRef = Union[Card, str]


def card_id_of(card: CardRef) -> str:
    return card if isinstance(card, str) else card.id


@dataclass
class PlayerState:
    id: str
    hand: List[Card] = field(default_factory=list)
    face_up_cards: List[Card] = field(default_factory=list)
    face_down_cards: List[Card] = field(default_factory=list)
    connected: bool = True
    ready: bool = False
    timeout_warnings: int = 0
    is_bot: bool = False

    @property
    def total_cards(self) -> int:
        return len(self.hand) + len(self.face_up_cards) + len(self.face_down_cards)

    def has_no_cards(self) -> bool:
        return self.total_cards == 0

    def all_cards(self) -> List[Card]:
        return self.hand + self.face_up_cards + self.face_down_cards


@dataclass
class Action:
    type: ActionType
    player_id: str
    cards: List[CardRef] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
    target: Optional[str] = None
    forced: bool = False  # injected by a timeout scheduler

    @property
    def card_ids(self) -> List[str]:
        return [card_id_of(card) for card in self.cards]


@dataclass
class SpecialEffect:
    type: EffectType
    player_id: Optional[str] = None
    rank: Optional[Rank] = None
    count: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass
class MoveHistoryEntry:
    action: Action
    previous_state: "GameState"
    timestamp: float


@dataclass
class GameState:
    id: str
    phase: GamePhase = GamePhase.SETUP
    players: Dict[str, PlayerState] = field(default_factory=dict)  # insertion order = turn order
    current_player: Optional[str] = None
    next_player: Optional[str] = None
    deck: List[Card] = field(default_factory=list)
    pile: List[Card] = field(default_factory=list)  # top = last
    burned: List[Card] = field(default_factory=list)
    last_action: Optional[Action] = None
    special_effects: List[SpecialEffect] = field(default_factory=list)
    winner: Optional[str] = None
    config: GameConfig = default_config
    timestamp: float = field(default_factory=time.time)
    move_history: List[MoveHistoryEntry] = field(default_factory=list)

    @property
    def turn_order(self) -> List[str]:
        return list(self.players.keys())

    @property
    def top_card(self) -> Optional[Card]:
        return self.pile[-1] if self.pile else None

    def copy(self, include_history: bool = True) -> "GameState":
        """
        Copy-on-write clone used for every transition.

        Cards are immutable so card lists are copied shallowly; player records
        are deep-copied. History entries are themselves frozen snapshots and are
        shared between clones.
        """
        return replace(
            self,
            players=copy.deepcopy(self.players),
            deck=list(self.deck),
            pile=list(self.pile),
            burned=list(self.burned),
            special_effects=list(self.special_effects),
            move_history=list(self.move_history) if include_history else [],
        )
