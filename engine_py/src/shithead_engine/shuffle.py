"""
Card shuffling and dealing utilities.
"""

import logging
import random
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import CardAccountingError, InsufficientCardsError
from .models import Card, CardLocation, GameState, Rank, Suit
from .rules import StartingCards

logger = logging.getLogger(__name__)

DECK_SIZE = len(Suit) * len(Rank)


def create_deck() -> List[Card]:
    """Create a standard 52-card deck, face down."""
    deck = []
    for suit in Suit:
        for rank in Rank:
            deck.append(Card(
                id=f"{rank.value}{suit.value}",
                suit=suit,
                rank=rank,
                location=CardLocation.DECK,
                face_up=False,
            ))
    return deck


def shuffle_deck(deck: List[Card], seed: Optional[int] = None) -> List[Card]:
    """
    Shuffle a deck with Fisher-Yates.

    Args:
        deck: Cards to shuffle (not modified)
        seed: Optional seed for deterministic shuffling in tests

    Returns:
        Shuffled copy of the deck
    """
    rng = random.Random(seed)
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def deal_cards(
    deck: List[Card],
    player_ids: Sequence[str],
    counts: StartingCards,
) -> Tuple[Dict[str, Dict[str, List[Card]]], List[Card]]:
    """
    Deal face-down, then face-up, then hand cards to each player.

    Args:
        deck: Shuffled deck, dealt from the head
        player_ids: Players in seat order
        counts: Cards per layer

    Returns:
        Tuple of ({player_id: {"hand", "face_up", "face_down"}}, remaining deck)

    Raises:
        InsufficientCardsError: If the deck cannot cover the deal
    """
    needed = counts.total * len(player_ids)
    if needed > len(deck):
        raise InsufficientCardsError(
            f"Dealing {counts.total} cards to {len(player_ids)} players needs {needed} cards, "
            f"deck has {len(deck)}"
        )

    index = 0

    def take(n: int, location: CardLocation, owner_id: str) -> List[Card]:
        nonlocal index
        cards = [card.moved_to(location, owner_id) for card in deck[index:index + n]]
        index += n
        return cards

    hands = {}
    for player_id in player_ids:
        face_down = take(counts.face_down, CardLocation.FACE_DOWN, player_id)
        face_up = take(counts.face_up, CardLocation.FACE_UP, player_id)
        hand = take(counts.hand, CardLocation.HAND, player_id)
        hands[player_id] = {"hand": hand, "face_up": face_up, "face_down": face_down}

    return hands, list(deck[index:])


def collect_card_ids(state: GameState) -> List[str]:
    """Every card id currently tracked by the state, duplicates included."""
    card_ids = [card.id for card in state.deck]
    card_ids.extend(card.id for card in state.pile)
    card_ids.extend(card.id for card in state.burned)
    for player in state.players.values():
        card_ids.extend(card.id for card in player.all_cards())
    return card_ids


def validate_deck_integrity(state: GameState) -> bool:
    """
    Validate that all cards are accounted for and no duplicates exist.

    Args:
        state: Game state to validate

    Returns:
        True if deck, pile, burned cards and player layers partition the deck
    """
    expected_ids = {card.id for card in create_deck()}
    card_ids = collect_card_ids(state)
    return len(card_ids) == len(set(card_ids)) and set(card_ids) == expected_ids


def assert_card_accounting(state: GameState) -> None:
    """Raise the fatal CardAccountingError if the card partition is broken."""
    if validate_deck_integrity(state):
        return

    card_ids = collect_card_ids(state)
    duplicates = sorted(cid for cid, count in Counter(card_ids).items() if count > 1)
    missing = sorted({card.id for card in create_deck()} - set(card_ids))
    logger.error(f"Card accounting failed for game {state.id}: duplicates={duplicates} missing={missing}")
    raise CardAccountingError(
        f"Game {state.id} card partition broken (duplicates={duplicates}, missing={missing})"
    )


def sort_hand(hand: List[Card]) -> List[Card]:
    """Sort a hand by rank value, then suit."""
    return sorted(hand, key=lambda card: (card.value, card.suit.value))
