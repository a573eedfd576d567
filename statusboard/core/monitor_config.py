from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from statusboard.core.errors import ConfigError
from statusboard.core.models import Target

logger = logging.getLogger(__name__)


class SlackConfig(BaseModel):
    url: str = ""
    username: str = ""
    icon_emoji: str = ""
    channel: str = ""


class CheckConfig(BaseModel):
    id: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    name: str = Field(..., max_length=255)
    description: str = ""
    method: str = "GET"
    interval: int = Field(..., ge=1)
    timeout: int = Field(..., ge=1)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _timeout_fits_interval(self) -> "CheckConfig":
        # a probe must finish before the same target is due again
        if self.timeout > self.interval * 1000:
            raise ValueError(
                f"timeout ({self.timeout}ms) exceeds interval ({self.interval}s)"
            )
        return self


class MonitorConfig(BaseModel):
    slack: SlackConfig = Field(default_factory=SlackConfig)
    checks: list[CheckConfig] = Field(default_factory=list)

    @field_validator("checks")
    @classmethod
    def _unique_ids(cls, checks: list[CheckConfig]) -> list[CheckConfig]:
        seen: set[str] = set()
        for check in checks:
            if check.id in seen:
                raise ValueError(f"duplicate check id: {check.id}")
            seen.add(check.id)
        return checks

    def build_targets(self) -> list[Target]:
        return [
            Target(
                id=check.id,
                url=check.url,
                name=check.name,
                description=check.description,
                method=check.method,
                interval=check.interval,
                timeout=check.timeout,
                error="",
                previously_healthy=True,
            )
            for check in self.checks
        ]


def load_config(path: Path | str) -> MonitorConfig:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot open config file {path}: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"cannot parse config file {path}: {exc}") from exc

    try:
        config = MonitorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid config file {path}: {exc}") from exc

    logger.info("config loaded", extra={"path": str(path), "checks": len(config.checks)})
    return config
