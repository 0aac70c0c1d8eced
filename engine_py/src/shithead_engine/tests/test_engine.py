"""
Tests for the turn/state machine.
"""

import pytest

from shithead_engine.bots.greedy import GreedyBot
from shithead_engine.constants import ERROR_INVALID_PLAY, ERROR_RANK_TOO_LOW, MAX_HISTORY_LENGTH
from shithead_engine.effects import effective_threshold
from shithead_engine.engine import (
    apply_action,
    create_game_state,
    create_timeout_actions,
    end_round,
    get_next_player,
    process_action,
    remove_player,
    set_player_connected,
)
from shithead_engine.errors import (
    InsufficientCardsError,
    InvalidCardSourceError,
    InvalidPlayError,
    InvalidPlayerCountError,
    InvalidPlayerError,
    InvalidSwapError,
    PhaseViolationError,
    TurnViolationError,
)
from shithead_engine.models import Action, ActionType, CardLocation, EffectType, GamePhase, Rank
from shithead_engine.rules import create_config
from shithead_engine.shuffle import validate_deck_integrity
from shithead_engine.validate import get_playable_cards


def play(player_id, *card_ids, timestamp=None, forced=False):
    action = Action(type=ActionType.PLAY_CARDS, player_id=player_id, cards=list(card_ids), forced=forced)
    if timestamp is not None:
        action.timestamp = timestamp
    return action


def pickup(player_id, forced=False):
    return Action(type=ActionType.PICKUP_PILE, player_id=player_id, forced=forced)


def ids(cards):
    return [card.id for card in cards]


def test_create_game_state():
    """Test dealing two players opens the swap phase."""
    state = create_game_state(["a", "b"], seed=42)

    assert state.phase == GamePhase.SWAP
    assert len(state.deck) == 52 - 18
    assert state.current_player == "a"
    assert state.next_player == "b"
    assert state.config.host_id == "a"
    for player in state.players.values():
        assert len(player.hand) == 3
        assert len(player.face_up_cards) == 3
        assert len(player.face_down_cards) == 3
        assert not player.ready
    assert validate_deck_integrity(state)


def test_create_game_state_is_deterministic_with_seed():
    first = create_game_state(["a", "b", "c"], seed=3, game_id="g")
    second = create_game_state(["a", "b", "c"], seed=3, game_id="g")
    assert ids(first.players["b"].hand) == ids(second.players["b"].hand)
    assert ids(first.deck) == ids(second.deck)


def test_create_game_state_player_count():
    with pytest.raises(InvalidPlayerCountError):
        create_game_state(["a"])
    with pytest.raises(InvalidPlayerCountError):
        create_game_state(["a", "b", "c", "d", "e"])
    with pytest.raises(InvalidPlayerCountError):
        create_game_state(["a", "b", "c"], config=create_config(max_players=2))
    with pytest.raises(InvalidPlayerError):
        create_game_state(["a", "a"])


def test_create_game_state_insufficient_cards():
    config = create_config(starting_cards={"hand": 10, "face_up": 10, "face_down": 10})
    with pytest.raises(InsufficientCardsError):
        create_game_state(["a", "b"], config=config)


def test_swap_and_ready():
    """Test swapping in SWAP and moving to PLAY once everyone is ready."""
    state = create_game_state(["a", "b"], seed=1)
    hand_card = state.players["a"].hand[0]
    face_up_card = state.players["a"].face_up_cards[0]

    swapped = process_action(state, Action(
        type=ActionType.SWAP_CARDS, player_id="a", cards=[hand_card.id, face_up_card.id]
    ))
    a = swapped.players["a"]
    assert face_up_card.id in ids(a.hand)
    assert hand_card.id in ids(a.face_up_cards)
    assert all(card.location == CardLocation.HAND for card in a.hand)
    assert all(card.location == CardLocation.FACE_UP for card in a.face_up_cards)
    # Input untouched
    assert hand_card.id in ids(state.players["a"].hand)

    ready_a = process_action(swapped, Action(type=ActionType.CONFIRM_READY, player_id="a"))
    assert ready_a.phase == GamePhase.SWAP

    with pytest.raises(InvalidSwapError):
        process_action(ready_a, Action(
            type=ActionType.SWAP_CARDS, player_id="a", cards=[a.hand[0].id, a.face_up_cards[0].id]
        ))

    ready_b = process_action(ready_a, Action(type=ActionType.CONFIRM_READY, player_id="b"))
    assert ready_b.phase == GamePhase.PLAY


def test_phase_violations(build_state):
    swap_state = build_state({"a": {"hand": ["3H"]}, "b": {"hand": ["4H"]}}, phase=GamePhase.SWAP)
    with pytest.raises(PhaseViolationError):
        process_action(swap_state, play("a", "3H"))

    play_state = build_state({"a": {"hand": ["3H"], "face_up": ["5H"]}, "b": {"hand": ["4H"]}})
    with pytest.raises(PhaseViolationError):
        process_action(play_state, Action(type=ActionType.SWAP_CARDS, player_id="a", cards=["3H", "5H"]))
    with pytest.raises(PhaseViolationError):
        process_action(play_state, Action(type=ActionType.CONFIRM_READY, player_id="a"))


def test_three_twos_on_empty_pile(build_state):
    """Test three twos reset the threshold and pass the turn without a skip."""
    state = build_state({
        "a": {"hand": ["2H", "2D", "2C"], "face_up": ["3H", "4H", "5H"], "face_down": ["6H", "7H", "9H"]},
        "b": {"hand": ["KS", "QS", "JS"], "face_up": ["3S", "4S", "5S"], "face_down": ["6S", "7S", "9S"]},
    })
    deck_before = ids(state.deck)

    new_state = process_action(state, play("a", "2H", "2D", "2C"))

    assert ids(new_state.pile) == ["2H", "2D", "2C"]
    assert effective_threshold(new_state.pile) == 2
    assert new_state.current_player == "b"
    assert new_state.next_player == "a"
    assert [e.type for e in new_state.special_effects] == [EffectType.RESET]
    # Hand refilled from the head of the deck
    assert ids(new_state.players["a"].hand) == deck_before[:3]
    assert len(new_state.deck) == len(deck_before) - 3
    assert all(card.location == CardLocation.PILE for card in new_state.pile)


def test_eight_over_king(build_state):
    """Test a queen cannot go on an eight covering a king, but a king can."""
    state = build_state({
        "a": {"hand": ["QC", "KC", "AC"]},
        "b": {"hand": ["3S"]},
    }, pile=["KH", "8D"], deck=[])

    with pytest.raises(InvalidPlayError) as exc_info:
        process_action(state, play("a", "QC"))
    assert exc_info.value.code == ERROR_INVALID_PLAY
    assert exc_info.value.reason == ERROR_RANK_TOO_LOW

    result = apply_action(state, play("a", "QC"))
    assert not result.success
    assert result.state is state
    assert result.error_code == ERROR_INVALID_PLAY

    accepted = apply_action(state, play("a", "KC"))
    assert accepted.success
    assert ids(accepted.state.pile) == ["KH", "8D", "KC"]
    assert accepted.state.current_player == "b"

    assert apply_action(state, play("a", "AC")).success


def test_fourth_king_burns(build_state):
    """Test completing four kings burns the pile and keeps the turn."""
    state = build_state({
        "a": {"hand": ["KS", "3C"]},
        "b": {"hand": ["3S"]},
    }, pile=["5H", "KH", "KD", "KC"], deck=[])

    result = apply_action(state, play("a", "KS"))

    assert result.success
    new_state = result.state
    assert new_state.pile == []
    assert {"5H", "KH", "KD", "KC", "KS"} <= set(ids(new_state.burned))
    assert all(card.location == CardLocation.BURNED for card in new_state.burned)
    assert new_state.current_player == "a"
    assert new_state.next_player == "b"
    assert [e.type for e in result.effects] == [EffectType.BURN]
    assert validate_deck_integrity(new_state)


def test_three_of_a_kind_does_not_burn(build_state):
    state = build_state({
        "a": {"hand": ["QC", "3C"]},
        "b": {"hand": ["3S"]},
    }, pile=["QH", "5C", "QD"], deck=[])

    new_state = process_action(state, play("a", "QC"))
    assert ids(new_state.pile) == ["QH", "5C", "QD", "QC"]
    assert new_state.current_player == "b"


def test_blind_face_down_misplay(build_state):
    """Test an unplayable face-down card sends pile plus card to the hand."""
    state = build_state({
        "a": {"face_down": ["4H", "9H"]},
        "b": {"hand": ["3S"], "face_up": ["5S"]},
    }, pile=["10S"], deck=[])

    new_state = process_action(state, play("a", "4H"))

    a = new_state.players["a"]
    assert ids(a.hand) == ["10S", "4H"]
    assert ids(a.face_down_cards) == ["9H"]
    assert all(card.location == CardLocation.HAND and card.face_up for card in a.hand)
    assert new_state.pile == []
    assert new_state.current_player == "b"
    assert validate_deck_integrity(new_state)


def test_blind_face_down_success(build_state):
    state = build_state({
        "a": {"face_down": ["QH", "9H"]},
        "b": {"hand": ["3S"]},
    }, pile=["10S"], deck=[])

    new_state = process_action(state, play("a", "QH"))
    assert ids(new_state.pile) == ["10S", "QH"]
    assert ids(new_state.players["a"].face_down_cards) == ["9H"]
    assert new_state.current_player == "b"


def test_depletion_order(build_state):
    state = build_state({
        "a": {"hand": ["3H"], "face_up": ["AH"], "face_down": ["9H", "10H"]},
        "b": {"hand": [], "face_up": ["AS"], "face_down": ["9S", "10S"]},
    }, deck=[])

    with pytest.raises(InvalidCardSourceError):
        process_action(state, play("a", "AH"))
    with pytest.raises(InvalidCardSourceError):
        process_action(state, play("a", "9H"))

    b_turn = build_state({
        "a": {"hand": ["3H"]},
        "b": {"face_down": ["9S", "10S"]},
    }, deck=[], current_player="b")
    with pytest.raises(InvalidCardSourceError):
        process_action(b_turn, play("b", "9S", "10S"))


def test_turn_and_player_checks(build_state):
    state = build_state({"a": {"hand": ["3H"]}, "b": {"hand": ["4H"]}}, deck=[])

    with pytest.raises(TurnViolationError):
        process_action(state, play("b", "4H"))
    with pytest.raises(InvalidPlayerError):
        process_action(state, play("zed", "4H"))

    state.players["a"].connected = False
    with pytest.raises(InvalidPlayerError):
        process_action(state, play("a", "3H"))


def test_forced_action_from_disconnected_player(build_state):
    state = build_state({"a": {"hand": ["3H"]}, "b": {"hand": ["4H"]}}, pile=["KD"], deck=[])
    state.players["a"].connected = False

    new_state = process_action(state, pickup("a", forced=True))

    assert new_state.players["a"].timeout_warnings == 1
    assert ids(new_state.players["a"].hand) == ["3H", "KD"]
    assert new_state.current_player == "b"


def test_empty_play_rejected(build_state):
    state = build_state({"a": {"hand": ["3H"]}, "b": {"hand": ["4H"]}}, deck=[])
    with pytest.raises(InvalidPlayError):
        process_action(state, play("a"))


def test_two_player_jack_keeps_turn(build_state):
    """Test a single jack with two players gives the same player another turn."""
    state = build_state({
        "a": {"hand": ["JH", "3C"]},
        "b": {"hand": ["3S"]},
    }, pile=["5C"], deck=[])

    new_state = process_action(state, play("a", "JH"))
    assert new_state.current_player == "a"
    assert new_state.next_player == "b"
    assert [e.type for e in new_state.special_effects] == [EffectType.SKIP]


def test_jack_skips_with_more_players(build_state):
    players = {
        "a": {"hand": ["JH", "JD", "3C"]},
        "b": {"hand": ["3S"]},
        "c": {"hand": ["3D"]},
        "d": {"hand": ["3H"]},
    }
    four = build_state(players, pile=["5C"], deck=[])
    assert process_action(four, play("a", "JH")).current_player == "c"
    assert process_action(four, play("a", "JH", "JD")).current_player == "d"

    del players["d"]
    players["c"]["hand"].append("3H")
    three = build_state(players, pile=["5C"], deck=[])
    assert process_action(three, play("a", "JH")).current_player == "c"
    assert process_action(three, play("a", "JH", "JD")).current_player == "a"


def test_jack_completing_burn_does_not_skip(build_state):
    state = build_state({
        "a": {"hand": ["JS", "3C"]},
        "b": {"hand": ["3S"]},
        "c": {"hand": ["3D"]},
    }, pile=["JH", "JD", "JC"], deck=[])

    new_state = process_action(state, play("a", "JS"))
    assert new_state.pile == []
    assert new_state.current_player == "a"


def test_get_next_player():
    assert get_next_player(["a", "b"], "a") == "b"
    assert get_next_player(["a", "b"], "b") == "a"
    assert get_next_player(["a", "b"], "a", 1) == "a"
    assert get_next_player(["a", "b"], "a", 2) == "a"
    assert get_next_player(["a", "b", "c"], "c", 1) == "b"
    assert get_next_player(["a", "b", "c", "d"], "b", 2) == "a"
    with pytest.raises(InvalidPlayerError):
        get_next_player(["a", "b"], "z")


def test_transparent_eight_carries_threshold(build_state):
    state = build_state({
        "a": {"hand": ["8C", "3C"]},
        "b": {"hand": ["4S", "6S"]},
    }, pile=["5H"], deck=[])

    with pytest.raises(InvalidPlayError):
        process_action(state, play("a", "3C"))

    after_eight = process_action(state, play("a", "8C"))
    assert after_eight.current_player == "b"
    assert [e.type for e in after_eight.special_effects] == [EffectType.TRANSPARENT]
    with pytest.raises(InvalidPlayError):
        process_action(after_eight, play("b", "4S"))
    assert process_action(after_eight, play("b", "6S")).current_player == "a"


def test_all_eights_pile_accepts_anything(build_state):
    state = build_state({
        "a": {"hand": ["3C", "4C"]},
        "b": {"hand": ["3S"]},
    }, pile=["8H", "8D"], deck=[])
    assert process_action(state, play("a", "3C")).current_player == "b"


def test_win_ends_round(build_state):
    state = build_state({
        "a": {"face_up": ["AH"]},
        "b": {"hand": ["3S"]},
    }, deck=[])

    new_state = process_action(state, play("a", "AH"))
    assert new_state.phase == GamePhase.ROUND_END
    assert new_state.winner == "a"

    with pytest.raises(PhaseViolationError):
        process_action(new_state, play("b", "3S"))

    finished = end_round(new_state)
    assert finished.phase == GamePhase.GAME_END
    with pytest.raises(PhaseViolationError):
        end_round(state)


def test_pickup_pile(build_state):
    state = build_state({
        "a": {"hand": ["3H"]},
        "b": {"hand": ["3S"]},
    }, pile=["5H", "6H"], deck=[])

    new_state = process_action(state, pickup("a"))
    assert ids(new_state.players["a"].hand) == ["3H", "5H", "6H"]
    assert all(card.owner_id == "a" for card in new_state.players["a"].hand)
    assert new_state.pile == []
    assert new_state.current_player == "b"


def test_pickup_four_of_a_kind_burns(build_state):
    """Test picking up into four of a kind burns them and keeps the turn."""
    state = build_state({
        "a": {"hand": ["7H", "7D", "7C"], "face_up": ["AH"]},
        "b": {"hand": ["3S"]},
    }, pile=["7S"], deck=[])

    new_state = process_action(state, pickup("a"))
    assert new_state.players["a"].hand == []
    assert {"7H", "7D", "7C", "7S"} <= set(ids(new_state.burned))
    assert new_state.current_player == "a"
    assert new_state.special_effects[0].type == EffectType.BURN
    assert new_state.special_effects[0].rank == Rank.SEVEN
    assert validate_deck_integrity(new_state)


def test_process_action_does_not_mutate_input(build_state):
    state = build_state({
        "a": {"hand": ["5H", "6H", "7H"]},
        "b": {"hand": ["3S"]},
    })
    hand_before = ids(state.players["a"].hand)
    deck_before = ids(state.deck)

    new_state = process_action(state, play("a", "5H"))

    assert ids(state.players["a"].hand) == hand_before
    assert ids(state.deck) == deck_before
    assert state.pile == []
    assert state.move_history == []
    assert len(new_state.players["a"].hand) == 3
    assert new_state.last_action.card_ids == ["5H"]


def test_history_recorded_and_capped(build_state):
    state = build_state({
        "a": {"hand": ["3H"]},
        "b": {"hand": ["3S"]},
    }, pile=["AH"], deck=[])

    for step in range(MAX_HISTORY_LENGTH + 5):
        action = pickup(state.current_player)
        action.timestamp = 1000.0 + step
        previous = state
        state = process_action(state, action)
        assert state.move_history[-1].previous_state.current_player == previous.current_player
        assert state.timestamp == action.timestamp

    assert len(state.move_history) == MAX_HISTORY_LENGTH
    assert state.move_history[0].timestamp == 1005.0
    assert state.move_history[-1].previous_state.move_history == []


def test_set_player_connected_can_start_play(build_state):
    state = build_state({"a": {"hand": ["3H"]}, "b": {"hand": ["3S"]}}, phase=GamePhase.SWAP)
    state = process_action(state, Action(type=ActionType.CONFIRM_READY, player_id="a"))
    assert state.phase == GamePhase.SWAP

    dropped = set_player_connected(state, "b", False)
    assert not dropped.players["b"].connected
    assert dropped.phase == GamePhase.PLAY
    assert state.players["b"].connected

    back = set_player_connected(dropped, "b", True)
    assert back.players["b"].connected

    with pytest.raises(InvalidPlayerError):
        set_player_connected(state, "zed", True)


def test_remove_player(build_state):
    state = build_state({
        "a": {"hand": ["3H"]},
        "b": {"hand": ["3S"], "face_down": ["9S"]},
        "c": {"hand": ["3D"]},
    }, current_player="b")

    new_state = remove_player(state, "b")
    assert new_state.turn_order == ["a", "c"]
    assert new_state.current_player == "c"
    assert new_state.next_player == "a"
    assert {"3S", "9S"} <= set(ids(new_state.burned))
    assert validate_deck_integrity(new_state)

    last = remove_player(new_state, "a")
    assert last.phase == GamePhase.ROUND_END
    assert last.winner == "c"


def test_timeout_actions(build_state):
    swap_state = build_state({"a": {"hand": ["3H"]}, "b": {"hand": ["3S"]}}, phase=GamePhase.SWAP)
    swap_state.players["a"].ready = True
    actions = create_timeout_actions(swap_state, now=5.0)
    assert [(a.type, a.player_id, a.forced) for a in actions] == [(ActionType.CONFIRM_READY, "b", True)]
    started = process_action(swap_state, actions[0])
    assert started.phase == GamePhase.PLAY
    assert started.players["b"].timeout_warnings == 1

    play_state = build_state({"a": {"hand": ["3H"]}, "b": {"hand": ["3S"]}}, pile=["KD"], deck=[])
    actions = create_timeout_actions(play_state)
    assert [(a.type, a.player_id) for a in actions] == [(ActionType.PICKUP_PILE, "a")]

    play_state.phase = GamePhase.ROUND_END
    assert create_timeout_actions(play_state) == []


@pytest.mark.parametrize("player_count,seed", [(2, 1), (3, 7), (4, 11), (2, 23)])
def test_bot_games_keep_invariants(player_count, seed):
    """Test card conservation, depletion order and threshold rules over whole games."""
    player_ids = [f"p{i}" for i in range(player_count)]
    state = create_game_state(player_ids, seed=seed, bot_ids=player_ids)
    bots = {pid: GreedyBot(pid) for pid in player_ids}

    for _ in range(3000):
        if state.phase not in (GamePhase.SWAP, GamePhase.PLAY):
            break

        action = None
        for pid, bot in bots.items():
            bot_action = bot.choose_action(state)
            if bot_action is not None:
                action = bot_action.to_action(pid)
                break
        assert action is not None

        threshold = effective_threshold(state.pile, state.config.rules)
        playable = ids(get_playable_cards(state.players[action.player_id]))

        new_state = process_action(state, action)
        assert validate_deck_integrity(new_state)

        if action.type == ActionType.PLAY_CARDS:
            assert set(action.card_ids) <= set(playable)
            landed = new_state.pile and new_state.pile[-1].id in action.card_ids
            if landed and new_state.pile[-1].rank != Rank.TWO:
                assert new_state.pile[-1].value >= threshold

        state = new_state

    assert validate_deck_integrity(state)


def test_last_action_is_detached_from_caller(build_state):
    """Test mutating the submitted action later does not rewrite the stored state."""
    state = build_state({"a": {"hand": ["5H", "9C"]}, "b": {"hand": ["3S"]}})
    action = play("a", "5H", timestamp=1.0)
    new_state = process_action(state, action)

    action.cards.append("9C")
    action.player_id = "b"

    assert new_state.last_action.cards == ["5H"]
    assert new_state.last_action.player_id == "a"
    assert new_state.move_history[-1].action.cards == ["5H"]
