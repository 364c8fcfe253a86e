"""Race rule parameters: goal position, allowed move values, padded roster size."""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_GOAL = 12
DEFAULT_CHOICES = (1, 3, 5)
DEFAULT_ROSTER_SIZE = 4
MAX_ROSTER_SIZE = 16


class RaceSettings(BaseModel):
    """
    Gameplay rules for a single room.

    Defaults reproduce the classic board: goal 12, moves 1/3/5, four seats.
    """

    model_config = ConfigDict(frozen=True)

    goal: int = Field(default=DEFAULT_GOAL, ge=1)
    choices: tuple[int, ...] = Field(default=DEFAULT_CHOICES, min_length=1)
    roster_size: int = Field(default=DEFAULT_ROSTER_SIZE, ge=1, le=MAX_ROSTER_SIZE)

    @model_validator(mode="after")
    def _validate_choices(self) -> Self:
        if any(value <= 0 for value in self.choices):
            raise ValueError("choices must be positive integers")
        if len(set(self.choices)) != len(self.choices):
            raise ValueError("choices must not contain duplicates")
        return self

    def is_valid_choice(self, value: object) -> bool:
        # bool is an int subclass; a JSON `true` is not a move
        return isinstance(value, int) and not isinstance(value, bool) and value in self.choices
