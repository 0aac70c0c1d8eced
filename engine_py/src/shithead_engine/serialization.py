"""
State serialization and sanitization utilities.

The engine keeps the full state; opponents' hidden cards are only redacted
here, when a state leaves for a particular viewer.
"""

from typing import Any, Dict, List, Optional

import orjson

from .models import (
    Action,
    ActionType,
    Card,
    CardLocation,
    EffectType,
    GamePhase,
    GameState,
    MoveHistoryEntry,
    PlayerState,
    Rank,
    SpecialEffect,
    Suit,
)
from .rules import GameConfig
from .shuffle import sort_hand


def card_to_dict(card: Card) -> Dict[str, Any]:
    return {
        "id": card.id,
        "suit": card.suit.value,
        "rank": card.rank.value,
        "value": card.value,
        "location": card.location.value,
        "face_up": card.face_up,
        "owner_id": card.owner_id,
    }


def card_from_dict(data: Dict[str, Any]) -> Card:
    return Card(
        id=data["id"],
        suit=Suit(data["suit"]),
        rank=Rank(data["rank"]),
        location=CardLocation(data["location"]),
        face_up=data["face_up"],
        owner_id=data.get("owner_id"),
    )


def _cards(cards: List[Card]) -> List[Dict[str, Any]]:
    return [card_to_dict(card) for card in cards]


def _player_to_dict(player: PlayerState) -> Dict[str, Any]:
    return {
        "id": player.id,
        "hand": _cards(player.hand),
        "face_up_cards": _cards(player.face_up_cards),
        "face_down_cards": _cards(player.face_down_cards),
        "connected": player.connected,
        "ready": player.ready,
        "timeout_warnings": player.timeout_warnings,
        "is_bot": player.is_bot,
    }


def _player_from_dict(data: Dict[str, Any]) -> PlayerState:
    return PlayerState(
        id=data["id"],
        hand=[card_from_dict(c) for c in data["hand"]],
        face_up_cards=[card_from_dict(c) for c in data["face_up_cards"]],
        face_down_cards=[card_from_dict(c) for c in data["face_down_cards"]],
        connected=data["connected"],
        ready=data["ready"],
        timeout_warnings=data["timeout_warnings"],
        is_bot=data["is_bot"],
    )


def action_to_dict(action: Action) -> Dict[str, Any]:
    return {
        "type": action.type.value,
        "player_id": action.player_id,
        "cards": action.card_ids,
        "timestamp": action.timestamp,
        "target": action.target,
        "forced": action.forced,
    }


def action_from_dict(data: Dict[str, Any]) -> Action:
    return Action(
        type=ActionType(data["type"]),
        player_id=data["player_id"],
        cards=list(data.get("cards", [])),
        timestamp=data["timestamp"],
        target=data.get("target"),
        forced=data.get("forced", False),
    )


def _effect_to_dict(effect: SpecialEffect) -> Dict[str, Any]:
    return {
        "type": effect.type.value,
        "player_id": effect.player_id,
        "rank": effect.rank.value if effect.rank else None,
        "count": effect.count,
        "timestamp": effect.timestamp,
    }


def _effect_from_dict(data: Dict[str, Any]) -> SpecialEffect:
    return SpecialEffect(
        type=EffectType(data["type"]),
        player_id=data.get("player_id"),
        rank=Rank(data["rank"]) if data.get("rank") else None,
        count=data.get("count", 0),
        timestamp=data["timestamp"],
    )


def state_to_dict(state: GameState, include_history: bool = True) -> Dict[str, Any]:
    """
    Serialize the complete state, hidden cards included.

    Args:
        state: Game state to serialize
        include_history: Also serialize move history snapshots

    Returns:
        Plain dictionary that state_from_dict turns back into an equal state
    """
    data = {
        "id": state.id,
        "phase": state.phase.value,
        "players": [_player_to_dict(player) for player in state.players.values()],
        "current_player": state.current_player,
        "next_player": state.next_player,
        "deck": _cards(state.deck),
        "pile": _cards(state.pile),
        "burned": _cards(state.burned),
        "last_action": action_to_dict(state.last_action) if state.last_action else None,
        "special_effects": [_effect_to_dict(effect) for effect in state.special_effects],
        "winner": state.winner,
        "config": state.config.model_dump(),
        "timestamp": state.timestamp,
        "move_history": [],
    }

    if include_history:
        data["move_history"] = [
            {
                "action": action_to_dict(entry.action),
                "previous_state": state_to_dict(entry.previous_state, include_history=False),
                "timestamp": entry.timestamp,
            }
            for entry in state.move_history
        ]

    return data


def state_from_dict(data: Dict[str, Any]) -> GameState:
    """Rebuild a GameState from state_to_dict output."""
    players = {}
    for player_data in data["players"]:
        player = _player_from_dict(player_data)
        players[player.id] = player

    return GameState(
        id=data["id"],
        phase=GamePhase(data["phase"]),
        players=players,
        current_player=data.get("current_player"),
        next_player=data.get("next_player"),
        deck=[card_from_dict(c) for c in data["deck"]],
        pile=[card_from_dict(c) for c in data["pile"]],
        burned=[card_from_dict(c) for c in data.get("burned", [])],
        last_action=action_from_dict(data["last_action"]) if data.get("last_action") else None,
        special_effects=[_effect_from_dict(e) for e in data.get("special_effects", [])],
        winner=data.get("winner"),
        config=GameConfig.model_validate(data["config"]),
        timestamp=data["timestamp"],
        move_history=[
            MoveHistoryEntry(
                action=action_from_dict(entry["action"]),
                previous_state=state_from_dict(entry["previous_state"]),
                timestamp=entry["timestamp"],
            )
            for entry in data.get("move_history", [])
        ],
    )


def dumps_state(state: GameState, include_history: bool = True) -> bytes:
    """Serialize a state to JSON bytes."""
    return orjson.dumps(state_to_dict(state, include_history))


def loads_state(raw: bytes) -> GameState:
    """Parse JSON bytes produced by dumps_state."""
    return state_from_dict(orjson.loads(raw))


def sanitize_state(state: GameState, viewer_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Sanitize game state for transmission to one viewer.

    Everybody sees the pile, the burned count and every face-up card. Only the
    viewer sees their own hand; other hands, all face-down cards and the deck
    are reduced to counts. History is not sent since snapshots hold hidden cards.

    Args:
        state: Game state to sanitize
        viewer_id: ID of the player viewing the state (to show their cards)

    Returns:
        Sanitized state dictionary safe for JSON transmission
    """
    sanitized = {
        "id": state.id,
        "phase": state.phase.value,
        "current_player": state.current_player,
        "next_player": state.next_player,
        "turn_order": state.turn_order,
        "deck_count": len(state.deck),
        "pile": _cards(state.pile),
        "burned_count": len(state.burned),
        "special_effects": [_effect_to_dict(effect) for effect in state.special_effects],
        "last_action": _sanitize_action(state.last_action, viewer_id),
        "winner": state.winner,
        "rules": state.config.rules.model_dump(),
        "host_id": state.config.host_id,
        "history_length": len(state.move_history),
        "timestamp": state.timestamp,
        "players": {},
    }

    for player_id, player in state.players.items():
        sanitized_player = {
            "id": player.id,
            "connected": player.connected,
            "ready": player.ready,
            "is_bot": player.is_bot,
            "timeout_warnings": player.timeout_warnings,
            "hand_count": len(player.hand),
            "face_up_cards": _cards(player.face_up_cards),
            "face_down_count": len(player.face_down_cards),
        }

        # Show full hand only to the viewer
        if player_id == viewer_id:
            sanitized_player["hand"] = _cards(sort_hand(player.hand))

        sanitized["players"][player_id] = sanitized_player

    return sanitized


def _sanitize_action(action: Optional[Action], viewer_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if action is None:
        return None

    data = action_to_dict(action)
    # Played cards are public; a swap only reveals the face-up side
    if action.type == ActionType.SWAP_CARDS and action.player_id != viewer_id:
        data["card_count"] = len(data["cards"])
        del data["cards"]
    return data
