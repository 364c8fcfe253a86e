from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

import structlog

from race.logic.exceptions import ServerAtCapacityError
from race.logic.settings import RaceSettings
from race.session.broadcast import broadcast_to_connections
from race.session.room import RaceRoom, RoomPhase
from race.session.types import RoomInfo

if TYPE_CHECKING:
    from collections.abc import Callable

    from race.logic.players import HumanPlayer
    from race.messaging.protocol import ConnectionProtocol
    from race.messaging.types import ServerMessage

logger = structlog.get_logger()


class SessionManager:
    """Room registry and per-room serializer.

    Rooms are created on first use and kept until max_rooms is reached, at
    which point rooms without humans are evicted to make space.
    Every mutating operation on a room, including the broadcast of what it
    produced, runs under that room's asyncio.Lock so clients see messages in
    the order the room emitted them.
    """

    def __init__(
        self,
        settings: RaceSettings | None = None,
        *,
        max_rooms: int = 100,
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        self._settings = settings or RaceSettings()
        self._max_rooms = max_rooms
        self._rng_factory = rng_factory
        self._rooms: dict[str, RaceRoom] = {}  # room_id -> RaceRoom
        self._room_locks: dict[str, asyncio.Lock] = {}  # room_id -> Lock
        self._players: dict[str, HumanPlayer] = {}  # connection_id -> HumanPlayer

    @property
    def settings(self) -> RaceSettings:
        return self._settings

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def active_room_count(self) -> int:
        return sum(1 for room in self._rooms.values() if room.started)

    def get_room(self, room_id: str) -> RaceRoom | None:
        return self._rooms.get(room_id)

    def get_player(self, connection_id: str) -> HumanPlayer | None:
        return self._players.get(connection_id)

    def get_rooms_info(self) -> list[RoomInfo]:
        """Return info about every room for the /rooms listing."""
        return [
            RoomInfo(
                room_id=room.room_id,
                phase=room.phase.value,
                player_count=room.player_count,
                required_players=room.required_players,
                roster_size=room.settings.roster_size,
                players=room.player_names,
            )
            for room in self._rooms.values()
        ]

    def has_required_players(self, room_id: str) -> bool:
        """Whether the room's join threshold is already fixed, so a ``players`` parameter would be ignored."""
        room = self._rooms.get(room_id)
        return room is not None and room.required_players is not None

    def get_or_create_room(self, room_id: str) -> RaceRoom:
        """Return the room for room_id, creating it on first use.

        At max_rooms, rooms without humans are evicted to make space.
        Raises ServerAtCapacityError if every hosted room still has a human.
        """
        room = self._rooms.get(room_id)
        if room is not None:
            return room
        if len(self._rooms) >= self._max_rooms:
            self._evict_empty_rooms()
        if len(self._rooms) >= self._max_rooms:
            raise ServerAtCapacityError(f"server hosts {len(self._rooms)} rooms (max {self._max_rooms})")
        room = RaceRoom(room_id=room_id, settings=self._settings, rng=self._rng_factory())
        self._rooms[room_id] = room
        self._room_locks[room_id] = asyncio.Lock()
        logger.info("room created", room_id=room_id)
        return room

    async def admit(
        self,
        connection: ConnectionProtocol,
        name: str,
        requested_players: int | None = None,
    ) -> HumanPlayer:
        """Admit a human into the connection's room and broadcast the result.

        Raises RoomFullError (nothing broadcast) if the room cannot take the player.
        """
        while True:
            room = self.get_or_create_room(connection.room_id)
            async with self._room_locks[room.room_id]:
                if self._rooms.get(room.room_id) is not room:
                    # evicted while waiting for the lock
                    continue
                player, messages = room.admit(name, connection, requested_players)
                self._players[connection.connection_id] = player
                await self._broadcast(room.connections, messages)
            return player

    async def submit_choice(self, connection: ConnectionProtocol, value: object) -> None:
        room, player = self._lookup(connection)
        if room is None or player is None:
            return
        async with self._room_locks[room.room_id]:
            messages = room.submit_choice(player, value)
            await self._broadcast(room.connections, messages)

    async def vote_rematch(self, connection: ConnectionProtocol) -> None:
        room, player = self._lookup(connection)
        if room is None or player is None:
            return
        async with self._room_locks[room.room_id]:
            messages = room.vote_rematch(player)
            await self._broadcast(room.connections, messages)

    async def disconnect(self, connection: ConnectionProtocol) -> None:
        """Remove the connection's player and abort any game in its room. Idempotent."""
        player = self._players.pop(connection.connection_id, None)
        room = self._rooms.get(connection.room_id)
        if room is None or player is None:
            return
        async with self._room_locks[room.room_id]:
            was_running = room.phase is not RoomPhase.WAITING
            messages = room.disconnect(player)
            await self._broadcast(room.connections, messages)
        if was_running:
            logger.info("game aborted by disconnect", player_name=player.name)

    def _evict_empty_rooms(self) -> None:
        for room_id, room in list(self._rooms.items()):
            if room.is_empty and not self._room_locks[room_id].locked():
                del self._rooms[room_id]
                del self._room_locks[room_id]
                logger.info("room evicted", room_id=room_id)

    def _lookup(self, connection: ConnectionProtocol) -> tuple[RaceRoom | None, HumanPlayer | None]:
        return self._rooms.get(connection.room_id), self._players.get(connection.connection_id)

    @staticmethod
    async def _broadcast(recipients: list[ConnectionProtocol], messages: list[ServerMessage]) -> None:
        for message in messages:
            failed = await broadcast_to_connections(recipients, message.to_wire())
            if failed:
                logger.warning("message not delivered", message_type=message.type.value, failed=failed)
