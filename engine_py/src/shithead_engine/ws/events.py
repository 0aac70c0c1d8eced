"""
WebSocket event models and validation.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..rules import HouseRules, StartingCards


class EventType(str, Enum):
    """Inbound event types."""
    PLAY = "play"
    PICKUP = "pickup"
    SWAP = "swap"
    READY = "ready"
    ROLLBACK = "rollback"
    REQUEST_STATE = "request_state"


class OutboundEventType(str, Enum):
    """Outbound event types."""
    STATE_FULL = "state_full"
    EFFECT = "effect"
    ERROR = "error"


class ErrorCode(str, Enum):
    """Transport-level error codes; engine rejections carry the engine's own code."""
    INVALID_EVENT = "INVALID_EVENT"
    GAME_NOT_FOUND = "GAME_NOT_FOUND"


# Inbound event models
class BaseEvent(BaseModel):
    """Base event model."""
    type: EventType


class PlayEvent(BaseEvent):
    """Play cards event."""
    type: EventType = EventType.PLAY
    cards: List[str] = Field(..., min_length=1, max_length=4)


class PickupEvent(BaseEvent):
    """Pick up the pile."""
    type: EventType = EventType.PICKUP


class SwapEvent(BaseEvent):
    """Swap one hand card with one face-up card."""
    type: EventType = EventType.SWAP
    cards: List[str] = Field(..., min_length=2, max_length=2)


class ReadyEvent(BaseEvent):
    """Done swapping."""
    type: EventType = EventType.READY


class RollbackEvent(BaseEvent):
    """Undo back to just before the move recorded at ``timestamp``."""
    type: EventType = EventType.ROLLBACK
    timestamp: float


class RequestStateEvent(BaseEvent):
    """Request full state event."""
    type: EventType = EventType.REQUEST_STATE


InboundEvent = Union[
    PlayEvent,
    PickupEvent,
    SwapEvent,
    ReadyEvent,
    RollbackEvent,
    RequestStateEvent,
]


# Outbound event models
class StateFullEvent(BaseModel):
    """Full state event."""
    type: OutboundEventType = OutboundEventType.STATE_FULL
    state: Dict[str, Any]
    timestamp: float


class EffectEvent(BaseModel):
    """Effect notification event."""
    type: OutboundEventType = OutboundEventType.EFFECT
    effect_type: str
    data: Dict[str, Any]
    timestamp: float


class ErrorEvent(BaseModel):
    """Error event."""
    type: OutboundEventType = OutboundEventType.ERROR
    code: str
    message: str
    timestamp: float


# REST payloads
class CreateGameRequest(BaseModel):
    """Body of POST /games. Seats are handed out by the matchmaking collaborator."""
    player_ids: List[str] = Field(..., min_length=1)
    bot_ids: List[str] = Field(default_factory=list)
    game_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    seed: Optional[int] = None
    host_id: Optional[str] = None
    starting_cards: Optional[StartingCards] = None
    rules: Optional[HouseRules] = None


INBOUND_EVENTS = {
    EventType.PLAY: PlayEvent,
    EventType.PICKUP: PickupEvent,
    EventType.SWAP: SwapEvent,
    EventType.READY: ReadyEvent,
    EventType.ROLLBACK: RollbackEvent,
    EventType.REQUEST_STATE: RequestStateEvent,
}


def parse_inbound_event(data: Any) -> InboundEvent:
    """
    Turn a decoded client message into its event model.

    Raises:
        ValueError: If the message is not an object, names no known event,
            or fails the event's field constraints
    """
    if not isinstance(data, dict):
        raise ValueError("Event must be a JSON object")

    raw_type = data.get("type")
    if raw_type is None:
        raise ValueError("Event has no type")

    try:
        model = INBOUND_EVENTS[EventType(raw_type)]
    except ValueError:
        raise ValueError(f"Unknown event type: {raw_type}")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Malformed {raw_type} event: {e.error_count()} problem(s)") from e


def create_error_event(code: str, message: str) -> ErrorEvent:
    """Create an error event."""
    return ErrorEvent(
        code=code,
        message=message,
        timestamp=time.time()
    )


def create_state_full_event(state: Dict[str, Any]) -> StateFullEvent:
    """Create a full state event."""
    return StateFullEvent(
        state=state,
        timestamp=time.time()
    )


def create_effect_event(effect_type: str, data: Dict[str, Any]) -> EffectEvent:
    """Create an effect event."""
    return EffectEvent(
        effect_type=effect_type,
        data=data,
        timestamp=time.time()
    )
