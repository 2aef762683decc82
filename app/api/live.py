"""Live update channel: one WebSocket per browser session."""
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.core.security import user_id_from_token

router = APIRouter(tags=["live"])
log = logging.getLogger(__name__)


def _channel_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    auth = websocket.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None


@router.websocket("/ws")
async def live_channel(websocket: WebSocket):
    user_id = user_id_from_token(_channel_token(websocket))
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    registry = websocket.app.state.registry
    hub = websocket.app.state.hub
    channel_id = uuid.uuid4().hex
    await websocket.accept()
    # Sends are only valid once the handshake is done
    hub.add(channel_id, websocket)
    registry.register(user_id, channel_id)
    log.info("channel=%s opened for user=%s", channel_id, user_id)
    try:
        while True:
            # Clients only listen; incoming frames are keepalives
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        registry.remove(channel_id)
        hub.discard(channel_id)
        log.info("channel=%s closed for user=%s", channel_id, user_id)
