from __future__ import annotations

from fastapi import APIRouter, Depends

from statusboard.api.dependencies import get_broker, get_targets
from statusboard.api.schemas.health import HealthStatus
from statusboard.core.models import Target
from statusboard.services.broker import Broker

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def health(
    broker: Broker = Depends(get_broker),
    targets: list[Target] = Depends(get_targets),
) -> HealthStatus:
    return HealthStatus(status="ok", targets=len(targets), subscribers=broker.subscriber_count)
