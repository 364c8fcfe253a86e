"""
Pydantic models for the session layer.
"""

from pydantic import BaseModel


class RoomInfo(BaseModel):
    """Room information for the /rooms listing."""

    room_id: str
    phase: str
    player_count: int
    required_players: int | None
    roster_size: int
    players: list[str]
