from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    config_path: Path = Path("config.json")
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=8080, ge=1, le=65535)
    checker_concurrency: int = Field(default=20, ge=1)
    subscriber_buffer_size: int = Field(default=1, ge=1)
    subscriber_overflow: Literal["block", "drop_oldest", "disconnect"] = "block"
    sse_keepalive_sec: float = Field(default=15.0, gt=0)
    log_level: str = "INFO"
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None

    # ENV-only configuration; targets come from the JSON document at config_path
    model_config = SettingsConfigDict(env_prefix="")


settings = Settings()
