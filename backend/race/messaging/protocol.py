"""Abstract connection protocol for JSON / MessagePack websocket communication."""

from abc import ABC, abstractmethod
from typing import Any

from race.messaging.encoder import (
    WireFormat,
    decode_json,
    decode_msgpack,
    encode_json,
    encode_msgpack,
)


class ConnectionProtocol(ABC):
    """
    Abstract interface for a client connection.

    This abstraction allows room and routing logic to be tested without real
    WebSocket connections. A connection replies in the format the client last
    used: JSON text by default, MessagePack once a binary frame arrives.
    """

    wire_format: WireFormat = WireFormat.JSON

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection."""
        ...

    @property
    @abstractmethod
    def room_id(self) -> str:
        """Room ID from the WebSocket URL path (e.g., /room/{room_id})."""
        ...

    @abstractmethod
    async def send_text(self, data: str) -> None: ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_frame(self) -> str | bytes:
        """
        Receive the next text or binary frame from the client.
        """
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """
        Close the connection.
        """
        ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """
        Send a message to the client in its current wire format.
        """
        if self.wire_format is WireFormat.MSGPACK:
            await self.send_bytes(encode_msgpack(data))
        else:
            await self.send_text(encode_json(data))

    def decode_frame(self, frame: str | bytes) -> dict[str, Any]:
        """
        Decode an inbound frame, switching the reply format to match it.

        Raises DecodeError for malformed frames.
        """
        if isinstance(frame, bytes):
            data = decode_msgpack(frame)
            self.wire_format = WireFormat.MSGPACK
        else:
            data = decode_json(frame)
            self.wire_format = WireFormat.JSON
        return data

    async def receive_message(self) -> dict[str, Any]:
        """
        Receive and decode the next message from the client.
        """
        return self.decode_frame(await self.receive_frame())
