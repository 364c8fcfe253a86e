"""Typed domain exceptions for room admission.

Invalid moves and out-of-phase votes are not errors: the room ignores them.
Only admission can fail, and the transport layer converts these exceptions
into a rejected websocket (denial response or close code).
"""


class RaceRuleError(Exception):
    """Base exception for room rule violations."""


class RoomFullError(RaceRuleError):
    """The room is mid-game or already holds its required number of humans."""

    def __init__(self, room_id: str, reason: str) -> None:
        self.room_id = room_id
        self.reason = reason
        super().__init__(f"room {room_id} cannot admit: {reason}")


class InvalidRosterSizeError(RaceRuleError):
    """Requested player count is outside 1..roster_size."""

    def __init__(self, requested: int, roster_size: int) -> None:
        self.requested = requested
        self.roster_size = roster_size
        super().__init__(f"players must be 1-{roster_size}, got {requested}")


class ServerAtCapacityError(Exception):
    """A new room was requested while the server already hosts max_rooms rooms."""
