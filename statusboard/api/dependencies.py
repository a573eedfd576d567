from __future__ import annotations

from fastapi import Request

from statusboard.core.config import Settings
from statusboard.core.models import Target
from statusboard.services.broker import Broker


def get_broker(request: Request) -> Broker:
    return request.app.state.broker


def get_targets(request: Request) -> list[Target]:
    return request.app.state.targets


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
