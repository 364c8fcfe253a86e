from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter


class ClientMessageType(StrEnum):
    CHOICE = "choice"
    REMATCH = "rematch"


class ServerMessageType(StrEnum):
    WAITING = "waiting"
    START = "start"
    STATE = "state"
    FINISH = "finish"


class ChoiceMessage(BaseModel):
    type: Literal[ClientMessageType.CHOICE] = ClientMessageType.CHOICE
    # Range is checked by the room against its choice set; only the type is enforced here.
    value: StrictInt


class RematchMessage(BaseModel):
    type: Literal[ClientMessageType.REMATCH] = ClientMessageType.REMATCH


ClientMessage = Annotated[ChoiceMessage | RematchMessage, Field(discriminator="type")]

_client_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ChoiceMessage | RematchMessage:
    """Parse a raw dict into a typed client message. Raises ValidationError on bad input."""
    return _client_adapter.validate_python(data)


class _WireModel(BaseModel):
    """Outbound payloads serialize with the camelCase keys clients expect (``isCPU``)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PlayerSummary(_WireModel):
    name: str
    is_cpu: bool = Field(alias="isCPU")


class PlayerPosition(_WireModel):
    name: str
    pos: int
    is_cpu: bool = Field(alias="isCPU")


class RankingEntry(_WireModel):
    rank: int
    name: str
    pos: int
    is_cpu: bool = Field(alias="isCPU")


class WaitingMessage(_WireModel):
    type: Literal[ServerMessageType.WAITING] = ServerMessageType.WAITING
    count: int
    required: int


class StartMessage(_WireModel):
    type: Literal[ServerMessageType.START] = ServerMessageType.START
    players: list[PlayerSummary]


class StateMessage(_WireModel):
    type: Literal[ServerMessageType.STATE] = ServerMessageType.STATE
    players: list[PlayerPosition]


class FinishMessage(_WireModel):
    type: Literal[ServerMessageType.FINISH] = ServerMessageType.FINISH
    ranking: list[RankingEntry]


ServerMessage = WaitingMessage | StartMessage | StateMessage | FinishMessage
