from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from statusboard.core.models import ProbeResult

logger = logging.getLogger(__name__)

EMPTY_EVENT = "{}"


class ProbeResultEvent(BaseModel):
    """Wire form of a probe result, keeping the dashboard's field names."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    name: str
    description: str
    method: str
    interval: int
    timeout: int
    timestamp: datetime | None
    status_code: int = Field(alias="statusCode")
    response_time: int = Field(alias="responseTime")
    error: str
    previously_healthy: bool = Field(alias="previousOk")

    @classmethod
    def from_result(cls, result: ProbeResult) -> "ProbeResultEvent":
        return cls.model_validate(asdict(result))


def encode_result(result: ProbeResult) -> str:
    try:
        return ProbeResultEvent.from_result(result).model_dump_json(by_alias=True)
    except (ValidationError, ValueError, TypeError) as exc:
        logger.warning("cannot serialize probe result", extra={"error": str(exc)})
        return EMPTY_EVENT
