"""Application settings (environment variables prefixed with FAST_EYES_, or a .env file)."""

from functools import lru_cache
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FAST_EYES_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./fast_eyes.db"
    echo_sql: bool = False

    # Room rules
    max_participants: int = Field(default=4, gt=0)
    min_players_to_start: int = Field(default=2, gt=0)
    min_numbers: int = Field(default=9, gt=0)
    max_numbers: int = Field(default=100, gt=0)
    default_numbers: int = 25

    # Chat
    milestone_interval: int = Field(default=10, gt=0)
    chat_max_length: int = Field(default=200, gt=0)
    display_name_max_length: int = Field(default=20, gt=0)

    cors_origins: list[str] = ["*"]

    @model_validator(mode="after")
    def check_grid_bounds(self) -> Self:
        if not self.min_numbers <= self.default_numbers <= self.max_numbers:
            raise ValueError(
                f"default_numbers must be between min_numbers ({self.min_numbers}) and max_numbers ({self.max_numbers})"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()
