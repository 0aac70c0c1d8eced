"""
Special card effects resolution.

The resolver is a pure function of the played cards and the pile they land on.
Burn is checked first and short-circuits everything else; the remaining rules
are mutually exclusive because cards played together share one rank.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .comparator import all_same_rank, count_trailing_rank, group_by_rank
from .constants import BURN_COUNT, NO_THRESHOLD
from .models import Card, EffectType, Rank, SpecialEffect
from .rules import HouseRules

DEFAULT_HOUSE_RULES = HouseRules()


@dataclass
class EffectResult:
    """Outcome of resolving one play."""
    effects: List[SpecialEffect] = field(default_factory=list)
    next_threshold: int = NO_THRESHOLD
    skip_count: int = 0
    burn: bool = False

    @property
    def effect_types(self) -> List[EffectType]:
        return [effect.type for effect in self.effects]


def effective_threshold(pile: Sequence[Card], rules: Optional[HouseRules] = None) -> int:
    """
    Get the value the next play must meet or exceed.

    Transparent eights are skipped while scanning down from the top; a pile made
    only of eights (or an empty pile) imposes no threshold.
    """
    rules = rules or DEFAULT_HOUSE_RULES
    for card in reversed(pile):
        if rules.transparent_eights and card.rank == Rank.EIGHT:
            continue
        return card.value
    return NO_THRESHOLD


def completes_four_of_a_kind(played: Sequence[Card], pile: Sequence[Card]) -> Optional[Rank]:
    """
    Return the rank that reaches exactly four cards when ``played`` lands on ``pile``.

    Only the same-rank run on top of the pile counts. Three or five of a kind
    do not qualify.
    """
    for rank, group in group_by_rank(played).items():
        if len(group) + count_trailing_rank(pile, rank) == BURN_COUNT:
            return rank
    return None


def resolve_effects(
    played: Sequence[Card],
    pile: Sequence[Card],
    rules: Optional[HouseRules] = None,
    player_id: Optional[str] = None,
    timestamp: Optional[float] = None,
) -> EffectResult:
    """
    Resolve the special effects triggered by a play.

    Args:
        played: Cards just played (already validated)
        pile: Pile contents before the play, top last
        rules: House rules in force
        player_id: Player who made the play, recorded on the effects
        timestamp: Effect timestamp, defaults to now

    Returns:
        EffectResult with triggered effects, next threshold and skip count
    """
    if not played:
        raise ValueError("Cannot resolve effects of an empty play")

    rules = rules or DEFAULT_HOUSE_RULES
    timestamp = time.time() if timestamp is None else timestamp

    if rules.burn_on_four:
        burn_rank = completes_four_of_a_kind(played, pile)
        if burn_rank is not None:
            burn = SpecialEffect(
                type=EffectType.BURN,
                player_id=player_id,
                rank=burn_rank,
                count=len(played),
                timestamp=timestamp,
            )
            # Burn takes absolute precedence: no skip, no threshold carry
            return EffectResult(effects=[burn], next_threshold=NO_THRESHOLD, skip_count=0, burn=True)

    if not all_same_rank(played):
        raise ValueError("Cards played together must share one rank")

    rank = played[0].rank
    count = len(played)

    def effect(effect_type: EffectType) -> SpecialEffect:
        return SpecialEffect(type=effect_type, player_id=player_id, rank=rank, count=count, timestamp=timestamp)

    if rank == Rank.TWO and rules.two_reset:
        return EffectResult(effects=[effect(EffectType.RESET)], next_threshold=played[0].value)

    if rank == Rank.EIGHT and rules.transparent_eights:
        return EffectResult(
            effects=[effect(EffectType.TRANSPARENT)],
            next_threshold=effective_threshold(pile, rules),
        )

    if rank == Rank.JACK and rules.jack_skips:
        return EffectResult(
            effects=[effect(EffectType.SKIP)],
            next_threshold=played[0].value,
            skip_count=count,
        )

    return EffectResult(next_threshold=played[0].value)
