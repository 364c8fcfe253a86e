"""Race server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from race.logic.settings import DEFAULT_CHOICES, DEFAULT_GOAL, DEFAULT_ROSTER_SIZE, MAX_ROSTER_SIZE, RaceSettings
from shared.validators import RawListEnvSettingsSource, parse_int_tuple, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class RaceServerSettings(BaseSettings):
    model_config = {"env_prefix": "RACE_"}

    host: str = "127.0.0.1"
    port: int = Field(default=8787, ge=1, le=65535)
    max_rooms: int = Field(default=100, ge=1)
    log_dir: str = Field(default="backend/logs/race", min_length=1)
    cors_origins: list[str] = ["http://localhost:8787"]

    # Gameplay rules shared by every room on this server.
    goal: int = Field(default=DEFAULT_GOAL, ge=1)
    choices: tuple[int, ...] = DEFAULT_CHOICES
    roster_size: int = Field(default=DEFAULT_ROSTER_SIZE, ge=1, le=MAX_ROSTER_SIZE)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @field_validator("choices", mode="before")
    @classmethod
    def validate_choices(cls, v: str | list[int] | tuple[int, ...]) -> tuple[int, ...]:
        return parse_int_tuple(v)

    @model_validator(mode="after")
    def _validate_rules(self) -> Self:
        try:
            self.race_settings()
        except ValidationError as e:
            raise ValueError("; ".join(err["msg"] for err in e.errors())) from None
        return self

    def race_settings(self) -> RaceSettings:
        return RaceSettings(goal=self.goal, choices=self.choices, roster_size=self.roster_size)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, RawListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
