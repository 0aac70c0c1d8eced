"""
FastAPI WebSocket server for Shithead games.

Transport only: every rule decision is made by the engine. Each game lives in a
GameSession that serializes actions through a lock, drives bot seats and
pushes a per-viewer sanitized state after every change.
"""

import asyncio
import logging
import os
from typing import Dict, List, Optional

import orjson
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..bots.greedy import GreedyBot
from ..engine import (
    ActionResult,
    apply_action,
    create_game_state,
    create_timeout_actions,
    remove_player,
    set_player_connected,
)
from ..errors import GameError
from ..history import rollback_game
from ..models import Action, ActionType, GameState
from ..persistence import InMemorySnapshotStore, SnapshotStore
from ..rules import create_config
from ..serialization import sanitize_state
from .events import (
    CreateGameRequest,
    ErrorCode,
    PickupEvent,
    PlayEvent,
    ReadyEvent,
    RequestStateEvent,
    RollbackEvent,
    SwapEvent,
    create_effect_event,
    create_error_event,
    create_state_full_event,
    parse_inbound_event,
)

logger = logging.getLogger(__name__)

# Upper bound on consecutive bot moves handled for one trigger
MAX_BOT_STEPS = 500

BOT_DELAY = float(os.getenv("BOT_DELAY", "0"))

# FastAPI app
app = FastAPI(title="Shithead Game Engine", version="1.0.0")

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class GameSession:
    """One game instance: its current state, live connections and bot seats."""

    def __init__(self, state: GameState, store: SnapshotStore, bot_delay: float = BOT_DELAY):
        self.state = state
        self.store = store
        self.bot_delay = bot_delay
        self.lock = asyncio.Lock()
        self.connections: Dict[str, WebSocket] = {}
        self.bots = {
            player_id: GreedyBot(player_id)
            for player_id, player in state.players.items()
            if player.is_bot
        }

    @property
    def game_id(self) -> str:
        return self.state.id

    def _commit(self, state: GameState) -> None:
        self.state = state
        self.store.save_snapshot(state)

    async def submit(self, action: Action) -> ActionResult:
        """Apply one action atomically with respect to this game."""
        async with self.lock:
            result = apply_action(self.state, action)
            if result.success:
                self._commit(result.state)
        return result

    async def update(self, transition, *args) -> GameState:
        """Run an engine transition (connect, remove, rollback) under the lock."""
        async with self.lock:
            new_state = transition(self.state, *args)
            self._commit(new_state)
        return new_state

    def next_bot_action(self) -> Optional[Action]:
        for player_id, bot in self.bots.items():
            if player_id not in self.state.players:
                continue
            bot_action = bot.choose_action(self.state)
            if bot_action is not None:
                return bot_action.to_action(player_id)
        return None

    async def run_bots(self) -> int:
        """Let bot seats act until a human has to move. Returns the number of bot moves."""
        steps = 0
        while steps < MAX_BOT_STEPS:
            action = self.next_bot_action()
            if action is None:
                break

            if self.bot_delay:
                await asyncio.sleep(self.bot_delay)

            result = await self.submit(action)
            if not result.success:
                logger.error(f"Bot {action.player_id} action {action.type.value} rejected: {result.error_message}")
                break

            steps += 1
            await self.broadcast(result)
        else:
            logger.warning(f"Game {self.game_id} hit the bot step limit")
        return steps

    async def apply_timeouts(self) -> List[ActionResult]:
        """Inject the forced actions for an expired timer."""
        results = []
        for action in create_timeout_actions(self.state):
            result = await self.submit(action)
            results.append(result)
            if result.success:
                await self.broadcast(result)
        return results

    async def send_state(self, player_id: str) -> None:
        websocket = self.connections.get(player_id)
        if websocket is None:
            return
        event = create_state_full_event(sanitize_state(self.state, player_id))
        await websocket.send_text(event.model_dump_json())

    async def broadcast(self, result: Optional[ActionResult] = None) -> None:
        """Send every connected viewer their own view of the state, then any effects."""
        for player_id, websocket in list(self.connections.items()):
            try:
                await self.send_state(player_id)
                if result is not None:
                    for effect in result.effects:
                        event = create_effect_event(effect.type.value, {
                            "player_id": effect.player_id,
                            "rank": effect.rank.value if effect.rank else None,
                            "count": effect.count,
                        })
                        await websocket.send_text(event.model_dump_json())
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.error(f"Error broadcasting to {player_id}: {e}")
                self.connections.pop(player_id, None)


# Global state
store = InMemorySnapshotStore()
sessions: Dict[str, GameSession] = {}


def get_session(game_id: str) -> Optional[GameSession]:
    """Find a live session, restoring it from the last snapshot if needed."""
    session = sessions.get(game_id)
    if session is not None:
        return session

    if game_id not in store.game_ids():
        return None

    state = store.load_snapshot(game_id)
    session = GameSession(state, store)
    sessions[game_id] = session
    logger.info(f"Restored game {game_id} from snapshot")
    return session


def _require_session(game_id: str) -> GameSession:
    try:
        session = get_session(game_id)
    except GameError as e:
        raise HTTPException(status_code=500, detail={"code": e.code, "message": e.message})
    if session is None:
        raise HTTPException(status_code=404, detail={"code": ErrorCode.GAME_NOT_FOUND.value, "message": f"Game {game_id} not found"})
    return session


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "games": len(sessions),
        "connections": sum(len(session.connections) for session in sessions.values())
    }


@app.post("/games")
async def create_game(request: CreateGameRequest):
    """Deal a new game for seats assigned by matchmaking."""
    overrides = {}
    if request.starting_cards is not None:
        overrides["starting_cards"] = request.starting_cards.model_dump()
    if request.rules is not None:
        overrides["rules"] = request.rules.model_dump()
    if request.host_id is not None:
        overrides["host_id"] = request.host_id

    if request.game_id is not None and request.game_id in sessions:
        raise HTTPException(status_code=409, detail={"code": ErrorCode.INVALID_EVENT.value, "message": f"Game {request.game_id} already exists"})

    try:
        state = create_game_state(
            request.player_ids,
            config=create_config(**overrides),
            seed=request.seed,
            game_id=request.game_id,
            bot_ids=request.bot_ids,
        )
    except GameError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": e.message})

    session = GameSession(state, store)
    sessions[state.id] = session
    store.save_snapshot(state)
    logger.info(f"Created game {state.id} for {request.player_ids}")

    await session.run_bots()
    return {"game_id": state.id, "state": sanitize_state(session.state)}


@app.get("/games/{game_id}")
async def get_game(game_id: str, viewer_id: Optional[str] = None):
    """Sanitized view of a game for one viewer (or a spectator)."""
    session = _require_session(game_id)
    return sanitize_state(session.state, viewer_id)


@app.post("/games/{game_id}/timeout")
async def expire_timeout(game_id: str):
    """Called by the timeout scheduler when the turn or swap timer runs out."""
    session = _require_session(game_id)
    results = await session.apply_timeouts()
    await session.run_bots()
    return {
        "forced": len(results),
        "state": sanitize_state(session.state),
    }


@app.delete("/games/{game_id}/players/{player_id}")
async def drop_player(game_id: str, player_id: str):
    """Remove a player whose reconnect grace period expired."""
    session = _require_session(game_id)
    try:
        await session.update(remove_player, player_id)
    except GameError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": e.message})

    session.connections.pop(player_id, None)
    session.bots.pop(player_id, None)
    await session.broadcast()
    await session.run_bots()
    return sanitize_state(session.state)


@app.websocket("/ws/{game_id}/{player_id}")
async def websocket_endpoint(websocket: WebSocket, game_id: str, player_id: str):
    """Main WebSocket endpoint. The player id is authenticated upstream."""
    await websocket.accept()

    try:
        session = get_session(game_id)
    except GameError as e:
        await _send_error(websocket, e.code, e.message)
        await websocket.close()
        return

    if session is None or player_id not in session.state.players:
        await _send_error(websocket, ErrorCode.GAME_NOT_FOUND.value, f"No seat for {player_id} in game {game_id}")
        await websocket.close()
        return

    session.connections[player_id] = websocket
    logger.info(f"Player {player_id} connected to game {game_id}")

    try:
        if not session.state.players[player_id].connected:
            await session.update(set_player_connected, player_id, True)
            await session.broadcast()
            await session.run_bots()
        else:
            await session.send_state(player_id)

        while True:
            raw_data = await websocket.receive_text()

            try:
                event = parse_inbound_event(orjson.loads(raw_data))
            except (orjson.JSONDecodeError, ValueError) as e:
                await _send_error(websocket, ErrorCode.INVALID_EVENT.value, str(e))
                continue

            await handle_event(session, player_id, event)

    except WebSocketDisconnect:
        logger.info(f"Player {player_id} disconnected from game {game_id}")
    finally:
        if session.connections.get(player_id) is websocket:
            del session.connections[player_id]
            if player_id in session.state.players:
                await session.update(set_player_connected, player_id, False)
                await session.broadcast()
                await session.run_bots()


def _event_to_action(player_id: str, event) -> Optional[Action]:
    if isinstance(event, PlayEvent):
        return Action(type=ActionType.PLAY_CARDS, player_id=player_id, cards=list(event.cards))
    if isinstance(event, PickupEvent):
        return Action(type=ActionType.PICKUP_PILE, player_id=player_id)
    if isinstance(event, SwapEvent):
        return Action(type=ActionType.SWAP_CARDS, player_id=player_id, cards=list(event.cards))
    if isinstance(event, ReadyEvent):
        return Action(type=ActionType.CONFIRM_READY, player_id=player_id)
    return None


async def handle_event(session: GameSession, player_id: str, event) -> None:
    """Handle an inbound event."""
    websocket = session.connections[player_id]

    if isinstance(event, RequestStateEvent):
        await session.send_state(player_id)
        return

    if isinstance(event, RollbackEvent):
        try:
            await session.update(rollback_game, event.timestamp, player_id)
        except GameError as e:
            await _send_error(websocket, e.code, e.message)
            return
        await session.broadcast()
        await session.run_bots()
        return

    action = _event_to_action(player_id, event)
    if action is None:
        raise ValueError(f"Unhandled event type: {type(event)}")

    result = await session.submit(action)
    if not result.success:
        await _send_error(websocket, result.error_code, result.error_message)
        return

    await session.broadcast(result)
    await session.run_bots()


async def _send_error(websocket: WebSocket, code: str, message: str) -> None:
    await websocket.send_text(create_error_event(code, message).model_dump_json())
