from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from race.messaging.types import ChoiceMessage, RematchMessage, parse_client_message

if TYPE_CHECKING:
    from race.logic.players import HumanPlayer
    from race.messaging.protocol import ConnectionProtocol
    from race.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Translates connection events into room operations.

    One router serves every connection; the per-connection state (which
    player a connection is) lives in the SessionManager. This class contains
    no transport code and can be tested without real WebSocket connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_connect(
        self,
        connection: ConnectionProtocol,
        name: str,
        requested_players: int | None = None,
    ) -> HumanPlayer:
        """Admit the connection's player. Raises RoomFullError or ServerAtCapacityError."""
        return await self._session_manager.admit(connection, name, requested_players)

    def sets_threshold(self, room_id: str) -> bool:
        """Whether the next admission to room_id would fix its required player count."""
        return not self._session_manager.has_required_players(room_id)

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        """Dispatch one decoded inbound message. Malformed messages are dropped without a reply."""
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("ignoring invalid message", connection_id=connection.connection_id, error=str(e))
            return

        try:
            if isinstance(message, ChoiceMessage):
                await self._session_manager.submit_choice(connection, message.value)
            elif isinstance(message, RematchMessage):
                await self._session_manager.vote_rematch(connection)
        except Exception:
            logger.exception("error handling message", connection_id=connection.connection_id)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.disconnect(connection)
