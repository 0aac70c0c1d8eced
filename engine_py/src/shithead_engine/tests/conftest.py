"""
Shared fixtures for building hand-crafted game states.
"""

import pytest

from shithead_engine.engine import get_next_player
from shithead_engine.models import Card, CardLocation, GamePhase, GameState, PlayerState, Rank, Suit
from shithead_engine.rules import default_config
from shithead_engine.shuffle import create_deck


def make_card(card_id, location=CardLocation.DECK, owner_id=None):
    return Card(id=card_id, suit=Suit(card_id[-1]), rank=Rank(card_id[:-1])).moved_to(location, owner_id)


def _build_state(players, pile=(), deck=None, phase=GamePhase.PLAY, current_player=None, config=default_config):
    """
    Build a state from card ids.

    ``players`` maps player id to {"hand", "face_up", "face_down"} id lists.
    Cards not placed anywhere go to the deck, or to the burned pile when an
    explicit ``deck`` is given, so the 52-card partition always holds.
    """
    used = set(pile)
    player_states = {}
    for player_id, layers in players.items():
        hand = [make_card(c, CardLocation.HAND, player_id) for c in layers.get("hand", [])]
        face_up = [make_card(c, CardLocation.FACE_UP, player_id) for c in layers.get("face_up", [])]
        face_down = [make_card(c, CardLocation.FACE_DOWN, player_id) for c in layers.get("face_down", [])]
        player_states[player_id] = PlayerState(
            id=player_id,
            hand=hand,
            face_up_cards=face_up,
            face_down_cards=face_down,
            ready=phase != GamePhase.SWAP,
            is_bot=layers.get("is_bot", False),
        )
        used.update(card.id for card in hand + face_up + face_down)

    leftover = [card.id for card in create_deck() if card.id not in used]
    if deck is None:
        deck_ids, burned_ids = leftover, []
    else:
        deck_ids = list(deck)
        burned_ids = [c for c in leftover if c not in set(deck_ids)]

    order = list(players)
    current = current_player or order[0]
    return GameState(
        id="test-game",
        phase=phase,
        players=player_states,
        current_player=current,
        next_player=get_next_player(order, current),
        deck=[make_card(c) for c in deck_ids],
        pile=[make_card(c, CardLocation.PILE) for c in pile],
        burned=[make_card(c, CardLocation.BURNED) for c in burned_ids],
        config=config,
    )


@pytest.fixture
def build_state():
    return _build_state


@pytest.fixture
def cards():
    def _cards(*card_ids):
        return [make_card(card_id) for card_id in card_ids]
    return _cards
