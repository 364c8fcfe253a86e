"""
Roster participants.

A player is either a HumanPlayer (bound to a connection, receives broadcasts,
submits choices over the wire) or a CpuPlayer (no connection, synthesizes its
own choice). Both expose the same ``is_cpu`` / ``auto_choice`` surface so the
room never branches on a type flag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import random
    from collections.abc import Sequence

    from race.messaging.protocol import ConnectionProtocol

CPU_NAME_PREFIX = "CPU"


@dataclass(eq=False)
class HumanPlayer:
    """Player admitted through a websocket connection."""

    name: str
    connection: ConnectionProtocol
    position: int = 0
    pending_choice: int | None = None
    rematch_vote: bool = False

    @property
    def is_cpu(self) -> bool:
        return False

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    def auto_choice(self, rng: random.Random, choices: Sequence[int]) -> int | None:  # noqa: ARG002
        return None

    def reset_for_round(self) -> None:
        self.position = 0
        self.pending_choice = None
        self.rematch_vote = False


@dataclass(eq=False)
class CpuPlayer:
    """Server-controlled player used to pad the roster. Always votes for a rematch."""

    name: str
    position: int = 0
    pending_choice: int | None = None
    rematch_vote: bool = True

    @property
    def is_cpu(self) -> bool:
        return True

    def auto_choice(self, rng: random.Random, choices: Sequence[int]) -> int | None:
        """Pick a move uniformly at random from the choice set."""
        return rng.choice(choices)

    def reset_for_round(self) -> None:
        self.position = 0
        self.pending_choice = None
        self.rematch_vote = True


Player = HumanPlayer | CpuPlayer


def cpu_name(index: int) -> str:
    """Return the display name for the index-th (1-based) padding CPU."""
    return f"{CPU_NAME_PREFIX}{index}"
