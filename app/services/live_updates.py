"""Live job updates: channel hub (WebSocket transport) and per-user dispatcher."""
import logging
from typing import Any, Protocol

from fastapi import WebSocket

from app.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

JOB_UPDATE = "job:update"


class ChannelTransport(Protocol):
    async def send(self, channel_id: str, message: dict[str, Any]) -> None: ...


class ChannelHub:
    """Open WebSocket connections keyed by channel id."""

    def __init__(self) -> None:
        self._sockets: dict[str, WebSocket] = {}

    def add(self, channel_id: str, websocket: WebSocket) -> None:
        self._sockets[channel_id] = websocket

    def discard(self, channel_id: str) -> None:
        self._sockets.pop(channel_id, None)

    async def send(self, channel_id: str, message: dict[str, Any]) -> None:
        websocket = self._sockets.get(channel_id)
        if websocket is None:
            return
        await websocket.send_json(message)

    def __len__(self) -> int:
        return len(self._sockets)


class LiveUpdateDispatcher:
    """Delivers an event to the channel a user currently has open.

    No channel means no delivery: there is no queue and nothing is replayed on
    reconnect, clients re-read state through the REST API.
    """

    def __init__(self, registry: SessionRegistry, transport: ChannelTransport):
        self.registry = registry
        self.transport = transport

    async def emit(self, user_id: int, event: str, payload: dict[str, Any]) -> bool:
        channel_id = self.registry.resolve(user_id)
        if channel_id is None:
            return False
        try:
            await self.transport.send(channel_id, {"event": event, "data": payload})
        except Exception as e:
            # Best effort: a broken socket must not disturb the poll loop
            logger.warning("emit %s to user=%s channel=%s failed: %s", event, user_id, channel_id, e)
            return False
        return True
