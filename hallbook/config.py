"""Runtime settings, read from ``HALLBOOK_*`` environment variables or ``.env``."""

from __future__ import annotations

from datetime import time
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HALLBOOK_",
        env_file=".env",
        extra="ignore",
    )

    app_title: str = "Hall Booking Service"
    log_level: str = "INFO"
    seed_demo_data: bool = False

    # Slot grid offered to the booking form; the core accepts any valid range.
    slot_start: time = time(9, 0)
    slot_end: time = time(17, 30)
    slot_minutes: int = 30

    @model_validator(mode="after")
    def _check_grid(self) -> Settings:
        if self.slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        if self.slot_end < self.slot_start:
            raise ValueError("slot_end must not precede slot_start")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
