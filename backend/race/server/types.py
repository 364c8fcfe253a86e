"""Admission parameters carried by the websocket upgrade request."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from race.logic.exceptions import InvalidRosterSizeError

if TYPE_CHECKING:
    from collections.abc import Mapping

PlayerName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=32)]


class AdmissionRequest(BaseModel):
    """Query parameters of a room websocket upgrade (``?name=...&players=...``)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: PlayerName
    players: int | None = Field(default=None, ge=1)


def parse_admission_request(
    params: Mapping[str, str],
    roster_size: int,
    *,
    sets_threshold: bool = True,
) -> AdmissionRequest:
    """Validate upgrade query parameters before any room state is touched.

    ``players`` only matters on the admission that fixes the room's threshold;
    otherwise it is dropped unparsed.

    Raises ValueError (pydantic ValidationError included) with a client-facing reason.
    """
    if not params.get("name"):
        raise ValueError("name required")
    raw_players = (params.get("players") or None) if sets_threshold else None
    request = AdmissionRequest(name=params["name"], players=raw_players)
    if request.players is not None and request.players > roster_size:
        raise ValueError(str(InvalidRosterSizeError(request.players, roster_size)))
    return request
