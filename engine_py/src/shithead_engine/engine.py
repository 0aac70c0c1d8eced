"""Turn/state machine for the Shithead rules engine"""

import copy
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .comparator import find_four_of_a_kind
from .constants import ERROR_EMPTY_PLAY, MAX_PLAYERS, MIN_PLAYERS
from .effects import resolve_effects
from .errors import (
    RECOVERABLE_ERRORS,
    InvalidPlayError,
    InvalidPlayerCountError,
    InvalidPlayerError,
    InvalidSwapError,
    PhaseViolationError,
    TurnViolationError,
)
from .history import record_move
from .models import (
    Action,
    ActionType,
    Card,
    CardLocation,
    EffectType,
    GamePhase,
    GameState,
    PlayerState,
    SpecialEffect,
)
from .rules import GameConfig, default_config
from .shuffle import assert_card_accounting, create_deck, deal_cards, shuffle_deck
from .validate import validate_card_source, validate_play, validate_swap

logger = logging.getLogger(__name__)

PHASE_ACTIONS = {
    GamePhase.SWAP: {ActionType.SWAP_CARDS, ActionType.CONFIRM_READY},
    GamePhase.PLAY: {ActionType.PLAY_CARDS, ActionType.PICKUP_PILE},
}


@dataclass
class ActionResult:
    """Outcome of apply_action: the new state, or the untouched old one plus an error."""
    success: bool
    state: GameState
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    effects: List[SpecialEffect] = field(default_factory=list)


def create_game_state(
    player_ids: Sequence[str],
    config: Optional[GameConfig] = None,
    seed: Optional[int] = None,
    game_id: Optional[str] = None,
    bot_ids: Iterable[str] = (),
) -> GameState:
    """
    Shuffle, deal and open the swap phase for a new game.

    Args:
        player_ids: Players in turn order
        config: Game configuration (defaults apply when omitted)
        seed: Optional shuffle seed for deterministic games
        game_id: Optional id, generated when omitted
        bot_ids: Players driven by a bot

    Raises:
        InvalidPlayerCountError: If there are not 2-4 players or more than max_players
        InvalidPlayerError: If player ids repeat
        InsufficientCardsError: If the deck cannot cover the deal
    """
    config = config or default_config
    player_ids = list(player_ids)
    bot_ids = set(bot_ids)

    if not MIN_PLAYERS <= len(player_ids) <= MAX_PLAYERS:
        raise InvalidPlayerCountError(
            f"A game needs {MIN_PLAYERS}-{MAX_PLAYERS} players (got {len(player_ids)})"
        )
    if not config.validate_player_count(len(player_ids)):
        raise InvalidPlayerCountError(
            f"This game allows at most {config.max_players} players (got {len(player_ids)})"
        )
    if len(set(player_ids)) != len(player_ids):
        raise InvalidPlayerError("Player ids must be unique")

    if config.host_id is None:
        config = config.model_copy(update={"host_id": player_ids[0]})

    deck = shuffle_deck(create_deck(), seed)
    hands, remaining = deal_cards(deck, player_ids, config.starting_cards)

    players = {}
    for player_id in player_ids:
        dealt = hands[player_id]
        players[player_id] = PlayerState(
            id=player_id,
            hand=dealt["hand"],
            face_up_cards=dealt["face_up"],
            face_down_cards=dealt["face_down"],
            is_bot=player_id in bot_ids,
        )

    state = GameState(
        id=game_id or uuid.uuid4().hex[:12],
        phase=GamePhase.SETUP,
        players=players,
        current_player=player_ids[0],
        next_player=player_ids[1],
        deck=remaining,
        config=config,
    )
    assert_card_accounting(state)

    # Dealing is complete
    state.phase = GamePhase.SWAP
    logger.info(f"Game {state.id} dealt to {player_ids}, {len(state.deck)} cards left in deck")
    return state


def get_next_player(turn_order: Sequence[str], current: str, skip_count: int = 0) -> str:
    """
    Get the player who plays after ``current`` once ``skip_count`` players are bypassed.

    With two players every skip bypasses the only opponent, so any skip hands the
    turn straight back to ``current``.
    """
    if current not in turn_order:
        raise InvalidPlayerError(f"Player {current} is not in the turn order")

    count = len(turn_order)
    if count == 2 and skip_count > 0:
        return current

    index = turn_order.index(current)
    return turn_order[(index + 1 + skip_count) % count]


def process_action(state: GameState, action: Action) -> GameState:
    """
    Validate and apply one action, returning a new state.

    The input state is never modified. Any rejection raises a GameError
    subclass before anything is applied.
    """
    _validate_action(state, action)

    new_state = state.copy()
    new_state.special_effects = []
    player = new_state.players[action.player_id]

    if action.forced:
        player.timeout_warnings += 1

    if action.type == ActionType.PLAY_CARDS:
        _process_play_cards(new_state, player, action)
    elif action.type == ActionType.PICKUP_PILE:
        _process_pickup_pile(new_state, player, action)
    elif action.type == ActionType.SWAP_CARDS:
        _process_swap_cards(new_state, player, action)
    elif action.type == ActionType.CONFIRM_READY:
        _process_confirm_ready(new_state, player)
    else:
        raise PhaseViolationError(f"Unknown action type: {action.type}")

    new_state.last_action = copy.deepcopy(action)
    new_state.timestamp = action.timestamp
    new_state.move_history = record_move(state.move_history, state, action)

    assert_card_accounting(new_state)
    logger.info(f"Accepted {action.type.value} from {action.player_id} in game {state.id}")
    return new_state


def apply_action(state: GameState, action: Action) -> ActionResult:
    """
    Apply an action, reporting recoverable rejections instead of raising.

    On failure the original state is returned unchanged. Fatal errors
    (card accounting) still propagate.
    """
    try:
        new_state = process_action(state, action)
    except RECOVERABLE_ERRORS as e:
        logger.info(f"Rejected {action.type.value} from {action.player_id} in game {state.id}: {e.message}")
        return ActionResult(success=False, state=state, error_code=e.code, error_message=e.message)
    return ActionResult(success=True, state=new_state, effects=list(new_state.special_effects))


def _validate_action(state: GameState, action: Action) -> None:
    player = state.players.get(action.player_id)
    if player is None:
        raise InvalidPlayerError(f"Unknown player {action.player_id}")

    if not player.connected and not action.forced:
        raise InvalidPlayerError(f"Player {action.player_id} is disconnected")

    allowed = PHASE_ACTIONS.get(state.phase, set())
    if action.type not in allowed:
        raise PhaseViolationError(f"{action.type.value} is not allowed during {state.phase.value}")

    if state.phase == GamePhase.PLAY and action.player_id != state.current_player:
        raise TurnViolationError(f"It's not your turn (current turn: {state.current_player})")


def _process_play_cards(state: GameState, player: PlayerState, action: Action) -> None:
    if not action.card_ids:
        raise InvalidPlayError("No cards to play", ERROR_EMPTY_PLAY)

    cards = validate_card_source(player, action.card_ids)
    rules = state.config.rules

    validation = validate_play(cards, pile=state.pile, rules=rules)
    if not validation.valid:
        if cards[0].location == CardLocation.FACE_DOWN:
            _apply_blind_pickup(state, player, cards[0])
            return
        raise InvalidPlayError(validation.error_message, validation.error_code)

    outcome = resolve_effects(cards, state.pile, rules, player.id, action.timestamp)

    _remove_cards(player, cards)
    played = [card.moved_to(CardLocation.PILE) for card in cards]

    if outcome.burn:
        burned = state.pile + played
        state.burned.extend(card.moved_to(CardLocation.BURNED) for card in burned)
        state.pile = []
        logger.info(f"{player.id} burned the pile ({len(burned)} cards) in game {state.id}")
    else:
        state.pile.extend(played)

    state.special_effects = outcome.effects
    _replenish_hand(state, player)

    if outcome.burn:
        _keep_turn(state, player.id)
    else:
        _advance_turn(state, outcome.skip_count)

    _check_win(state, player)


def _apply_blind_pickup(state: GameState, player: PlayerState, card: Card) -> None:
    """A revealed face-down card that cannot be played: take the pile plus that card."""
    _remove_cards(player, [card])
    picked_up = [c.moved_to(CardLocation.HAND, player.id) for c in state.pile]
    picked_up.append(card.moved_to(CardLocation.HAND, player.id))
    player.hand.extend(picked_up)
    state.pile = []
    logger.info(f"{player.id} revealed {card.id} blind and picked up {len(picked_up)} cards in game {state.id}")
    _advance_turn(state, 0)


def _process_pickup_pile(state: GameState, player: PlayerState, action: Action) -> None:
    picked_up = [card.moved_to(CardLocation.HAND, player.id) for card in state.pile]
    player.hand.extend(picked_up)
    state.pile = []

    if state.config.rules.burn_on_four:
        four = find_four_of_a_kind(player.hand)
        if four:
            _remove_cards(player, four)
            state.burned.extend(card.moved_to(CardLocation.BURNED) for card in four)
            state.special_effects = [SpecialEffect(
                type=EffectType.BURN,
                player_id=player.id,
                rank=four[0].rank,
                count=len(four),
                timestamp=action.timestamp,
            )]
            logger.info(f"{player.id} burned four {four[0].rank.value}s after picking up in game {state.id}")
            _replenish_hand(state, player)
            _keep_turn(state, player.id)
            return

    _advance_turn(state, 0)


def _process_swap_cards(state: GameState, player: PlayerState, action: Action) -> None:
    if player.ready:
        raise InvalidSwapError("Cannot swap after confirming ready")

    hand_card, face_up_card = validate_swap(player, action.card_ids)

    player.hand = [
        face_up_card.moved_to(CardLocation.HAND, player.id) if card.id == hand_card.id else card
        for card in player.hand
    ]
    player.face_up_cards = [
        hand_card.moved_to(CardLocation.FACE_UP, player.id) if card.id == face_up_card.id else card
        for card in player.face_up_cards
    ]


def _process_confirm_ready(state: GameState, player: PlayerState) -> None:
    player.ready = True
    _start_play_if_ready(state)


def _start_play_if_ready(state: GameState) -> None:
    if state.phase != GamePhase.SWAP:
        return

    connected = [p for p in state.players.values() if p.connected]
    if connected and all(p.ready for p in connected):
        state.phase = GamePhase.PLAY
        logger.info(f"Game {state.id} started, {state.current_player} to play")


def _remove_cards(player: PlayerState, cards: Sequence[Card]) -> None:
    card_ids = {card.id for card in cards}
    player.hand = [c for c in player.hand if c.id not in card_ids]
    player.face_up_cards = [c for c in player.face_up_cards if c.id not in card_ids]
    player.face_down_cards = [c for c in player.face_down_cards if c.id not in card_ids]


def _replenish_hand(state: GameState, player: PlayerState) -> None:
    hand_size = state.config.starting_cards.hand
    while state.deck and len(player.hand) < hand_size:
        card = state.deck.pop(0)
        player.hand.append(card.moved_to(CardLocation.HAND, player.id))


def _advance_turn(state: GameState, skip_count: int) -> None:
    order = state.turn_order
    state.current_player = get_next_player(order, state.current_player, skip_count)
    state.next_player = get_next_player(order, state.current_player)


def _keep_turn(state: GameState, player_id: str) -> None:
    state.current_player = player_id
    state.next_player = get_next_player(state.turn_order, player_id)


def _check_win(state: GameState, player: PlayerState) -> bool:
    if not player.has_no_cards():
        return False
    state.phase = GamePhase.ROUND_END
    state.winner = player.id
    logger.info(f"{player.id} emptied all piles and wins game {state.id}")
    return True


def set_player_connected(state: GameState, player_id: str, connected: bool) -> GameState:
    """
    Apply the collaborator's connect/disconnect signal for a player.

    A disconnect during SWAP can complete the ready check, since only connected
    players need to confirm.
    """
    if player_id not in state.players:
        raise InvalidPlayerError(f"Unknown player {player_id}")

    new_state = state.copy()
    new_state.special_effects = []
    new_state.players[player_id].connected = connected
    _start_play_if_ready(new_state)
    logger.info(f"Player {player_id} {'reconnected' if connected else 'disconnected'} in game {state.id}")
    return new_state


def remove_player(state: GameState, player_id: str) -> GameState:
    """
    Drop a player permanently (reconnect timeout expired).

    Their cards are burned so the card partition still holds. If only one
    player remains, that player wins the round.
    """
    if player_id not in state.players:
        raise InvalidPlayerError(f"Unknown player {player_id}")

    old_order = state.turn_order
    new_state = state.copy()
    new_state.special_effects = []
    leaving = new_state.players.pop(player_id)
    new_state.burned.extend(card.moved_to(CardLocation.BURNED) for card in leaving.all_cards())

    remaining = new_state.turn_order
    if len(remaining) == 1:
        new_state.current_player = remaining[0]
        new_state.next_player = remaining[0]
        if new_state.phase in (GamePhase.SWAP, GamePhase.PLAY):
            new_state.phase = GamePhase.ROUND_END
            new_state.winner = remaining[0]
    else:
        current = new_state.current_player
        if current == player_id:
            current = get_next_player(old_order, player_id)
        new_state.current_player = current
        new_state.next_player = get_next_player(remaining, current)
        _start_play_if_ready(new_state)

    assert_card_accounting(new_state)
    logger.info(f"Player {player_id} removed from game {state.id}")
    return new_state


def end_round(state: GameState) -> GameState:
    """Close a finished round; multi-round tournaments are out of scope so this ends the game."""
    if state.phase != GamePhase.ROUND_END:
        raise PhaseViolationError(f"Cannot end the game during {state.phase.value}")

    new_state = state.copy()
    new_state.special_effects = []
    new_state.phase = GamePhase.GAME_END
    logger.info(f"Game {state.id} finished, winner {state.winner}")
    return new_state


def create_timeout_actions(state: GameState, now: Optional[float] = None) -> List[Action]:
    """
    Build the forced actions a scheduler injects when a timeout expires.

    SWAP: confirm every player still swapping. PLAY: the current player picks up.
    """
    now = time.time() if now is None else now

    if state.phase == GamePhase.SWAP:
        return [
            Action(type=ActionType.CONFIRM_READY, player_id=p.id, timestamp=now, forced=True)
            for p in state.players.values()
            if not p.ready
        ]

    if state.phase == GamePhase.PLAY and state.current_player:
        return [Action(type=ActionType.PICKUP_PILE, player_id=state.current_player, timestamp=now, forced=True)]

    return []
