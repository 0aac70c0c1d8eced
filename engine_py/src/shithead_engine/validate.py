"""
Move validation for card plays, card sources and swaps.
"""

from typing import List, Optional, Sequence, Tuple

from .comparator import all_same_rank
from .constants import (
    ERROR_EMPTY_PLAY,
    ERROR_MIXED_RANKS,
    ERROR_MULTIPLES_DISABLED,
    ERROR_RANK_TOO_LOW,
)
from .effects import DEFAULT_HOUSE_RULES, completes_four_of_a_kind, effective_threshold
from .errors import InvalidCardSourceError, InvalidSwapError
from .models import Card, CardLocation, PlayerState, Rank
from .rules import HouseRules


class ValidationResult:
    """Result of play validation."""

    def __init__(
        self,
        valid: bool,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        threshold: int = 0,
    ):
        self.valid = valid
        self.error_code = error_code
        self.error_message = error_message
        self.threshold = threshold

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def success(cls, threshold: int = 0) -> 'ValidationResult':
        """Create a successful validation result."""
        return cls(valid=True, threshold=threshold)

    @classmethod
    def error(cls, error_code: str, error_message: str, threshold: int = 0) -> 'ValidationResult':
        """Create an error validation result."""
        return cls(valid=False, error_code=error_code, error_message=error_message, threshold=threshold)


def validate_play(
    cards: Sequence[Card],
    top_card: Optional[Card] = None,
    pile: Sequence[Card] = (),
    threshold: Optional[int] = None,
    rules: Optional[HouseRules] = None,
) -> ValidationResult:
    """
    Judge whether a set of cards may legally land on the pile.

    Card-source depletion order is the caller's job; this only looks at ranks.

    Args:
        cards: Candidate play
        top_card: Current top of the pile (defaults to the last pile card)
        pile: Pile contents, top last
        threshold: Effective threshold; computed from the pile when omitted
        rules: House rules in force

    Returns:
        ValidationResult with validation outcome
    """
    rules = rules or DEFAULT_HOUSE_RULES
    pile = list(pile)
    if not pile and top_card is not None:
        pile = [top_card]
    if top_card is None and pile:
        top_card = pile[-1]

    if not cards:
        return ValidationResult.error(ERROR_EMPTY_PLAY, "No cards to play")

    burn_rank = completes_four_of_a_kind(cards, pile) if rules.burn_on_four else None

    if not all_same_rank(cards) and burn_rank is None:
        return ValidationResult.error(ERROR_MIXED_RANKS, "All cards must be the same rank")

    if len(cards) > 1 and not rules.allow_multiples:
        return ValidationResult.error(ERROR_MULTIPLES_DISABLED, "Only one card may be played at a time")

    # Empty pile: anything goes
    if top_card is None:
        return ValidationResult.success()

    rank = burn_rank if burn_rank is not None else cards[0].rank

    if rank == Rank.TWO and rules.two_reset:
        return ValidationResult.success()

    if threshold is None:
        threshold = effective_threshold(pile, rules)

    value = next(card.value for card in cards if card.rank == rank)
    if value < threshold:
        return ValidationResult.error(
            ERROR_RANK_TOO_LOW,
            f"Rank {rank.value} is lower than the pile threshold {threshold}",
            threshold=threshold,
        )

    return ValidationResult.success(threshold=threshold)


def is_valid_play(
    cards: Sequence[Card],
    top_card: Optional[Card] = None,
    pile: Sequence[Card] = (),
    threshold: Optional[int] = None,
    rules: Optional[HouseRules] = None,
) -> bool:
    """Check if a play is legal against the pile."""
    return validate_play(cards, top_card, pile, threshold, rules).valid


def get_card_source(player: PlayerState) -> Optional[CardLocation]:
    """Get the layer a player must currently play from (hand, then face-up, then face-down)."""
    if player.hand:
        return CardLocation.HAND
    if player.face_up_cards:
        return CardLocation.FACE_UP
    if player.face_down_cards:
        return CardLocation.FACE_DOWN
    return None


def get_playable_cards(player: PlayerState) -> List[Card]:
    """Get the cards in the player's current depletion layer."""
    source = get_card_source(player)
    if source == CardLocation.HAND:
        return list(player.hand)
    if source == CardLocation.FACE_UP:
        return list(player.face_up_cards)
    if source == CardLocation.FACE_DOWN:
        return list(player.face_down_cards)
    return []


def find_player_card(player: PlayerState, card_id: str) -> Optional[Card]:
    """Look up one of the player's cards by id across all three layers."""
    for card in player.all_cards():
        if card.id == card_id:
            return card
    return None


def validate_card_source(player: PlayerState, card_ids: Sequence[str]) -> List[Card]:
    """
    Resolve card ids to the player's own cards and enforce depletion order.

    Returns:
        The player's Card objects in the order requested

    Raises:
        InvalidCardSourceError: Unknown/duplicate ids, mixed layers, wrong layer,
            or more than one face-down card
    """
    if len(set(card_ids)) != len(card_ids):
        raise InvalidCardSourceError("The same card cannot be played twice")

    cards = []
    for card_id in card_ids:
        card = find_player_card(player, card_id)
        if card is None:
            raise InvalidCardSourceError(f"Player {player.id} does not own card {card_id}")
        cards.append(card)

    locations = {card.location for card in cards}
    if len(locations) != 1:
        raise InvalidCardSourceError("Cards must be played from the same location")

    location = cards[0].location
    source = get_card_source(player)
    if location != source:
        raise InvalidCardSourceError(
            f"Cannot play from {location.value} while {source.value if source else 'nothing'} cards remain"
        )

    if location == CardLocation.FACE_DOWN and len(cards) != 1:
        raise InvalidCardSourceError("Only one face-down card can be played at a time")

    return cards


def validate_swap(player: PlayerState, card_ids: Sequence[str]) -> Tuple[Card, Card]:
    """
    Validate a swap request: exactly one hand card and one face-up card.

    Returns:
        Tuple of (hand_card, face_up_card)

    Raises:
        InvalidSwapError: If the request is malformed
    """
    if len(card_ids) != 2:
        raise InvalidSwapError(f"A swap needs exactly two cards (got {len(card_ids)})")

    hand_cards = [card for card in player.hand if card.id in card_ids]
    face_up_cards = [card for card in player.face_up_cards if card.id in card_ids]

    if len(hand_cards) != 1 or len(face_up_cards) != 1:
        raise InvalidSwapError("A swap needs one card from hand and one face-up card")

    return hand_cards[0], face_up_cards[0]
