"""WebSocket endpoint — the chat socket for web clients.

Learn: Each browser tab connects to /ws/chat?token=JWT. The handler:
1. Authenticates via JWT query param (optional only in development)
2. Wraps the socket in a WebSocketConnection and attaches it to the engine
3. Reads JSON frames one at a time and awaits engine.dispatch() for each,
   which is what keeps a single client's events in order
4. On disconnect, runs the engine's disconnect handler (presence cleanup)
"""

import json
from typing import Any, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from edushare.config import settings
from edushare.realtime.channels import Connection
from edushare.realtime.events import MESSAGE_ERROR, frame

logger = structlog.get_logger()
router = APIRouter()


class WebSocketConnection(Connection):
    """Connection backed by a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket, principal_id: Optional[str] = None):
        super().__init__(principal_id=principal_id)
        self.websocket = websocket

    async def send(self, event: str, data: Any) -> None:
        # A socket that already went away just misses the event.
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.send_json(frame(event, data))
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug("chat.send_dropped", connection_id=self.id, chat_event=event, error=str(e))


@router.websocket("/ws/chat")
async def chat_websocket(websocket: WebSocket):
    """Bidirectional chat socket.

    Authentication: JWT access token as ?token= query param.
    In development mode, unauthenticated connections are allowed and
    may identify as any user via join-user.
    """
    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")
    principal_id: Optional[str] = None

    if not token and not settings.anonymous_websockets:
        await websocket.close(code=4001, reason="Authentication required")
        return

    if token:
        from edushare.auth.dependencies import identity_from_token
        from edushare.auth.jwt import TokenError

        try:
            principal_id = identity_from_token(token).user_id
        except TokenError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()

    engine = websocket.app.state.engine
    connection = WebSocketConnection(websocket, principal_id=principal_id)
    engine.connect(connection)
    structlog.contextvars.bind_contextvars(connection_id=connection.id)
    logger.info("chat.socket_opened", principal_id=principal_id)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            # Binary frames carry "bytes" instead of "text".
            raw = message.get("text")
            if raw is None:
                await connection.send(MESSAGE_ERROR, "Frames must be JSON")
                continue
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                await connection.send(MESSAGE_ERROR, "Frames must be JSON")
                continue
            await engine.dispatch(connection, payload)
    except WebSocketDisconnect:
        pass
    finally:
        await engine.disconnect(connection)
        logger.info("chat.socket_closed", user_id=connection.user_id)
        structlog.contextvars.unbind_contextvars("connection_id")
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
