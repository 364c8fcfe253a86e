"""
Round resolution rules.

Pure functions over the roster: collision-based movement and final ranking.
The room calls these once every player has a pending choice.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from collections.abc import Sequence

    from race.logic.players import Player


class RankEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    rank: int
    name: str
    position: int
    is_cpu: bool


def colliding_values(choices: Sequence[int]) -> set[int]:
    """Return the values picked by two or more players."""
    return {value for value, count in Counter(choices).items() if count > 1}


def apply_moves(players: Sequence[Player], goal: int) -> None:
    """
    Advance every player whose pending choice is unique in the round.

    Players sharing a value with anyone else stay where they are. Movement is
    clamped at ``goal``. Every player must have a pending choice.
    """
    choices = [p.pending_choice for p in players]
    if any(choice is None for choice in choices):
        raise ValueError("cannot resolve a round with missing choices")
    collided = colliding_values(choices)  # type: ignore[arg-type]
    for player in players:
        value = player.pending_choice
        if value is None or value in collided:
            continue
        player.position = min(player.position + value, goal)


def has_winner(players: Sequence[Player], goal: int) -> bool:
    return any(p.position >= goal for p in players)


def rank_players(players: Sequence[Player]) -> list[RankEntry]:
    """Rank by position descending; ties keep roster (admission) order."""
    ordered = sorted(players, key=lambda p: p.position, reverse=True)
    return [
        RankEntry(rank=i + 1, name=p.name, position=p.position, is_cpu=p.is_cpu) for i, p in enumerate(ordered)
    ]
