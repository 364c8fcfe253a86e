from __future__ import annotations

import contextlib
import re
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.responses import PlainTextResponse
from starlette.websockets import WebSocket, WebSocketDisconnect

from race.logic.exceptions import RoomFullError, ServerAtCapacityError
from race.messaging.encoder import DecodeError
from race.messaging.protocol import ConnectionProtocol
from race.server.rate_limit import TokenBucket
from race.server.types import parse_admission_request

if TYPE_CHECKING:
    from race.messaging.router import MessageRouter

logger = structlog.get_logger()

_ROOM_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
_MAX_ROOM_ID_LENGTH = 50

# A round needs one frame per human; anything faster is a misbehaving client.
_RATE_LIMIT_RATE = 10.0
_RATE_LIMIT_BURST = 20

CLOSE_ROOM_FULL = 4003
CLOSE_TRY_AGAIN_LATER = 1013


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, room_id: str, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._room_id = room_id
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def room_id(self) -> str:
        return self._room_id

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_frame(self) -> str | bytes:
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket disconnected")
        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def _reject_upgrade(websocket: WebSocket, reason: str) -> None:
    """Refuse the upgrade with HTTP 400, or a policy close where the server lacks denial responses."""
    logger.info("websocket upgrade rejected", reason=reason)
    if "websocket.http.response" in websocket.scope.get("extensions", {}):
        await websocket.send_denial_response(PlainTextResponse(reason, status_code=400))
    else:
        await websocket.close(code=1008, reason=reason)


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter, roster_size: int) -> None:
    room_id = websocket.path_params["room_id"]
    if not _ROOM_ID_PATTERN.match(room_id) or len(room_id) > _MAX_ROOM_ID_LENGTH:
        await _reject_upgrade(websocket, "invalid room id")
        return

    try:
        admission = parse_admission_request(
            websocket.query_params,
            roster_size,
            sets_threshold=router.sets_threshold(room_id),
        )
    except ValueError as e:
        reason = str(e) if str(e) == "name required" else "invalid admission parameters"
        await _reject_upgrade(websocket, reason)
        return

    await websocket.accept()

    connection = WebSocketConnection(websocket, room_id=room_id)
    structlog.contextvars.bind_contextvars(room_id=room_id, connection_id=connection.connection_id)
    logger.info("websocket connected", player_name=admission.name)

    try:
        await router.handle_connect(connection, admission.name, admission.players)
    except RoomFullError as e:
        logger.info("admission refused", reason=e.reason)
        await connection.close(code=CLOSE_ROOM_FULL, reason="room_full")
        structlog.contextvars.clear_contextvars()
        return
    except ServerAtCapacityError:
        logger.warning("server at capacity, refusing new room")
        await connection.close(code=CLOSE_TRY_AGAIN_LATER, reason="server_at_capacity")
        structlog.contextvars.clear_contextvars()
        return

    bucket = TokenBucket(rate=_RATE_LIMIT_RATE, burst=_RATE_LIMIT_BURST)

    try:
        while True:
            try:
                data = await connection.receive_message()
            except DecodeError as e:
                logger.warning("ignoring undecodable frame", error=str(e))
                continue

            if not bucket.allow():
                logger.debug("rate limited, dropping frame")
                continue
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
