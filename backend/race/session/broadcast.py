"""Shared broadcast utility for sending messages to room members."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from race.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: dict[str, Any],
) -> list[str]:
    """Send a message to every connection, best effort.

    A failed send never stops delivery to the others. Returns the ids of the
    connections that could not be reached.
    """
    failed: list[str] = []
    for connection in list(connections):
        try:
            await connection.send_message(message)
        except (RuntimeError, OSError, ConnectionError) as e:  # fmt: skip
            logger.warning("broadcast send failed", connection_id=connection.connection_id, error=str(e))
            failed.append(connection.connection_id)
    return failed
