"""Room session state machine: admission, CPU padding, rounds, finish and rematch."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from race.logic.exceptions import InvalidRosterSizeError, RoomFullError
from race.logic.players import CpuPlayer, HumanPlayer, cpu_name
from race.logic.rules import apply_moves, has_winner, rank_players
from race.logic.settings import RaceSettings
from race.messaging.types import (
    FinishMessage,
    PlayerPosition,
    PlayerSummary,
    RankingEntry,
    StartMessage,
    StateMessage,
    WaitingMessage,
)

if TYPE_CHECKING:
    from race.logic.players import Player
    from race.messaging.protocol import ConnectionProtocol
    from race.messaging.types import ServerMessage

logger = structlog.get_logger()


class RoomPhase(StrEnum):
    WAITING = "waiting"  # humans below required_players
    IN_ROUND = "in_round"  # collecting choices
    FINISHED = "finished"  # someone reached the goal; collecting rematch votes


@dataclass
class RaceRoom:
    """
    Authoritative roster and round state for one room.

    Every operation is synchronous and returns the messages it produced, in
    order, for the caller to broadcast to ``connections``. The caller must
    serialize operations on a room (SessionManager holds a per-room lock).

    Lifecycle:
    - WAITING until the human headcount reaches required_players, then CPU
      padding up to settings.roster_size and IN_ROUND
    - IN_ROUND -> IN_ROUND after each resolved round, FINISHED once anyone
      reaches the goal
    - FINISHED -> IN_ROUND when every human votes for a rematch
    - any phase -> WAITING on disconnect
    """

    room_id: str
    settings: RaceSettings = field(default_factory=RaceSettings)
    rng: random.Random = field(default_factory=random.Random)
    required_players: int | None = None
    started: bool = False
    phase: RoomPhase = RoomPhase.WAITING
    roster: list[Player] = field(default_factory=list)

    @property
    def humans(self) -> list[HumanPlayer]:
        return [p for p in self.roster if isinstance(p, HumanPlayer)]

    @property
    def cpus(self) -> list[CpuPlayer]:
        return [p for p in self.roster if isinstance(p, CpuPlayer)]

    @property
    def player_count(self) -> int:
        return len(self.roster)

    @property
    def player_names(self) -> list[str]:
        return [p.name for p in self.roster]

    @property
    def connections(self) -> list[ConnectionProtocol]:
        """Snapshot of human connections in roster order (broadcast recipients)."""
        return [p.connection for p in self.humans]

    @property
    def is_empty(self) -> bool:
        return not self.humans

    def validate_requested_players(self, requested: int | None) -> None:
        """Reject a join threshold outside 1..roster_size. Only the first admission's value is used."""
        if requested is None:
            return
        if not (1 <= requested <= self.settings.roster_size):
            raise InvalidRosterSizeError(requested, self.settings.roster_size)

    # --- Operations ---

    def admit(
        self,
        name: str,
        connection: ConnectionProtocol,
        requested_players: int | None = None,
    ) -> tuple[HumanPlayer, list[ServerMessage]]:
        """Add a human to the roster; start the first round when the room fills.

        Raises RoomFullError if a game is running or the human seats are taken.
        """
        if self.phase is not RoomPhase.WAITING:
            raise RoomFullError(self.room_id, f"game in progress ({self.phase})")
        if self.required_players is None:
            self.validate_requested_players(requested_players)
            self.required_players = requested_players or self.settings.roster_size
        if len(self.humans) >= self.required_players:
            raise RoomFullError(self.room_id, "all seats taken")

        player = HumanPlayer(name=name, connection=connection)
        self.roster.append(player)
        logger.info(
            "player admitted",
            player_name=name,
            count=self.player_count,
            required=self.required_players,
        )
        messages: list[ServerMessage] = [self._waiting_message()]

        if len(self.humans) == self.required_players:
            self._pad_with_cpus()
            messages.append(self.start_round())
        return player, messages

    def start_round(self) -> StartMessage:
        """Reset the roster for round 1 and enter IN_ROUND."""
        for player in self.roster:
            player.reset_for_round()
        self.started = True
        self.phase = RoomPhase.IN_ROUND
        logger.info("round started", players=self.player_names)
        return StartMessage(
            players=[PlayerSummary(name=p.name, is_cpu=p.is_cpu) for p in self.roster],
        )

    def submit_choice(self, player: Player, value: object) -> list[ServerMessage]:
        """Record a move and try to resolve the round. Invalid or out-of-phase moves are ignored."""
        if not self.started or player not in self.roster:
            return []
        if not self.settings.is_valid_choice(value):
            logger.debug("ignoring invalid choice", player_name=player.name, value=value)
            return []
        player.pending_choice = value  # type: ignore[assignment]
        return self.resolve_round()

    def resolve_round(self) -> list[ServerMessage]:
        """
        Resolve the round once every player has a choice.

        CPUs without a choice pick one first. While any human is still
        undecided nothing changes and nothing is emitted.
        """
        for player in self.roster:
            if player.pending_choice is None:
                player.pending_choice = player.auto_choice(self.rng, self.settings.choices)

        if any(p.pending_choice is None for p in self.roster):
            return []

        apply_moves(self.roster, self.settings.goal)

        if has_winner(self.roster, self.settings.goal):
            return [self.finish_round()]

        for player in self.roster:
            player.pending_choice = None
        return [self._state_message()]

    def finish_round(self) -> FinishMessage:
        self.started = False
        self.phase = RoomPhase.FINISHED
        ranking = rank_players(self.roster)
        logger.info("round finished", winner=ranking[0].name)
        return FinishMessage(
            ranking=[RankingEntry(rank=r.rank, name=r.name, pos=r.position, is_cpu=r.is_cpu) for r in ranking],
        )

    def vote_rematch(self, player: Player) -> list[ServerMessage]:
        """Record a rematch vote; restart when every human has voted. Ignored outside FINISHED."""
        if self.phase is not RoomPhase.FINISHED or player not in self.roster:
            return []
        player.rematch_vote = True
        if all(p.rematch_vote for p in self.humans):
            logger.info("rematch agreed")
            return [self.start_round()]
        return []

    def disconnect(self, player: Player) -> list[ServerMessage]:
        """Remove a player and abort any game in progress."""
        if player not in self.roster:
            return []
        self.roster.remove(player)
        self.started = False
        self.phase = RoomPhase.WAITING
        logger.info("player removed", player_name=player.name, count=self.player_count)
        return [self._waiting_message()]

    # --- Internal helpers ---

    def _pad_with_cpus(self) -> None:
        """Top the roster up to roster_size with CPUs, reusing free CPU names."""
        taken = {p.name for p in self.cpus}
        index = 1
        while self.player_count < self.settings.roster_size:
            name = cpu_name(index)
            index += 1
            if name in taken:
                continue
            self.roster.append(CpuPlayer(name=name))

    def _waiting_message(self) -> WaitingMessage:
        # count is the whole roster (CPUs left by a disconnect included); seats are counted in humans
        return WaitingMessage(count=self.player_count, required=self.required_players or 0)

    def _state_message(self) -> StateMessage:
        return StateMessage(
            players=[PlayerPosition(name=p.name, pos=p.position, is_cpu=p.is_cpu) for p in self.roster],
        )
