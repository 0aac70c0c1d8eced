"""
Greedy bot implementation with basic heuristics.
"""

from typing import List, Optional

from .base import BaseBot, BotAction
from ..constants import BOT_HIGH_PILE_THRESHOLD, BOT_LOW_OPPONENT_CARDS
from ..comparator import get_highest_card
from ..effects import completes_four_of_a_kind, effective_threshold
from ..models import Card, GamePhase, GameState, Rank

SPECIAL_RANKS = (Rank.TWO, Rank.EIGHT, Rank.JACK)


class GreedyBot(BaseBot):
    """
    Greedy bot with a fixed priority order.

    Strategy:
    - Complete a four-of-a-kind burn when possible
    - Otherwise play a special card (TWO on a high pile, JACK against a nearly-out opponent)
    - Otherwise shed a same-rank group
    - Otherwise play the highest legal single card
    - Pick up the pile when nothing is legal
    """

    def choose_action(self, state: GameState) -> Optional[BotAction]:
        """Choose the best action for the current state."""
        player = self.get_player(state)
        if player is None:
            return None

        if state.phase == GamePhase.SWAP:
            if player.ready:
                return None
            return self._choose_swap(state) or BotAction.ready()

        if self.is_my_turn(state):
            cards = self.choose_cards(state)
            if not cards:
                return BotAction.pickup()
            return BotAction.play([card.id for card in cards])

        return None

    def choose_cards(self, state: GameState) -> List[Card]:
        """
        Pick the cards to play, or an empty list to pick up the pile.

        Face-down cards are played blind: the first one is turned over and the
        engine decides whether it sticks.
        """
        if self.is_playing_blind(state):
            return self.get_playable_cards(state)[:1]

        valid_plays = self.get_valid_plays(state)
        if not valid_plays:
            return []

        if state.config.rules.burn_on_four:
            for play in valid_plays:
                if completes_four_of_a_kind(play, state.pile) is not None:
                    return play

        special = self._choose_special(state, valid_plays)
        if special:
            return special

        multiples = [play for play in valid_plays if len(play) > 1]
        if multiples:
            return max(multiples, key=len)

        return [get_highest_card([play[0] for play in valid_plays])]

    def _choose_special(self, state: GameState, valid_plays: List[List[Card]]) -> Optional[List[Card]]:
        specials = [play for play in valid_plays if play[0].rank in SPECIAL_RANKS]
        if not specials:
            return None

        twos = [play for play in specials if play[0].rank == Rank.TWO]
        if twos and effective_threshold(state.pile, state.config.rules) > BOT_HIGH_PILE_THRESHOLD:
            return twos[0]

        jacks = [play for play in specials if play[0].rank == Rank.JACK]
        if jacks and self.count_cards(state, state.next_player) <= BOT_LOW_OPPONENT_CARDS:
            return jacks[0]

        return specials[0]

    def _choose_swap(self, state: GameState) -> Optional[BotAction]:
        """Swap the best face-up card into hand while it beats the worst hand card."""
        player = self.get_player(state)
        if not player.hand or not player.face_up_cards:
            return None

        lowest_in_hand = min(player.hand, key=lambda card: card.value)
        highest_face_up = max(player.face_up_cards, key=lambda card: card.value)
        if highest_face_up.value > lowest_in_hand.value:
            return BotAction.swap(lowest_in_hand.id, highest_face_up.id)
        return None
