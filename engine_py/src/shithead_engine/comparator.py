"""
Rank comparison and card-set utilities.
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from .constants import BURN_COUNT
from .models import RANK_VALUES, Card, Rank

VALUE_TO_RANK: Dict[int, Rank] = {value: rank for rank, value in RANK_VALUES.items()}


def get_rank_value(rank: Rank) -> int:
    """Get the numeric value of a rank (TWO=2 ... ACE=14)."""
    try:
        return RANK_VALUES[Rank(rank)]
    except ValueError:
        raise ValueError(f"Invalid rank: {rank}")


def value_to_rank(value: int) -> Optional[Rank]:
    """Convert a numeric value back to a Rank, or None if out of range."""
    return VALUE_TO_RANK.get(value)


def compare_cards(card_a: Card, card_b: Card) -> int:
    """
    Compare two cards by rank value.

    Returns:
        1 if card_a is higher, -1 if card_b is higher, 0 if equal
    """
    diff = card_a.value - card_b.value
    return (diff > 0) - (diff < 0)


def all_same_rank(cards: Sequence[Card]) -> bool:
    """Check if every card shares the first card's rank."""
    return all(card.rank == cards[0].rank for card in cards)


def group_by_rank(cards: Sequence[Card]) -> "OrderedDict[Rank, List[Card]]":
    """Group cards by rank, keeping first-seen order."""
    groups: "OrderedDict[Rank, List[Card]]" = OrderedDict()
    for card in cards:
        groups.setdefault(card.rank, []).append(card)
    return groups


def get_highest_card(cards: Sequence[Card]) -> Optional[Card]:
    """Get the highest-value card; the first one wins ties."""
    if not cards:
        return None
    return max(cards, key=lambda card: card.value)


def find_four_of_a_kind(cards: Sequence[Card]) -> Optional[List[Card]]:
    """Return the first group of exactly four same-rank cards, if any."""
    for group in group_by_rank(cards).values():
        if len(group) == BURN_COUNT:
            return group
    return None


def count_trailing_rank(pile: Sequence[Card], rank: Rank) -> int:
    """Count how many cards of ``rank`` sit consecutively on top of the pile."""
    count = 0
    for card in reversed(pile):
        if card.rank != rank:
            break
        count += 1
    return count

