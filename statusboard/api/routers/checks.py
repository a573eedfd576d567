from __future__ import annotations

from typing import Sequence

from fastapi import APIRouter, Depends, HTTPException, status

from statusboard.api.dependencies import get_targets
from statusboard.api.schemas.events import ProbeResultEvent
from statusboard.core.models import Target

router = APIRouter(prefix="/checks", tags=["checks"])


@router.get("", response_model=Sequence[ProbeResultEvent])
async def list_checks(targets: list[Target] = Depends(get_targets)) -> Sequence[ProbeResultEvent]:
    return [ProbeResultEvent.from_result(target.snapshot()) for target in targets]


@router.get("/{check_id}", response_model=ProbeResultEvent)
async def get_check(check_id: str, targets: list[Target] = Depends(get_targets)) -> ProbeResultEvent:
    for target in targets:
        if target.id == check_id:
            return ProbeResultEvent.from_result(target.snapshot())
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Check not found")
