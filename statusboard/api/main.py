from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI

from statusboard.alerts.base import AlertSender, FanoutNotifier
from statusboard.alerts.slack import SlackNotifier
from statusboard.alerts.telegram import TelegramNotifier
from statusboard.api.routers import checks, events, health
from statusboard.core.config import Settings, settings
from statusboard.core.errors import ConfigError
from statusboard.core.monitor_config import MonitorConfig, load_config
from statusboard.services.broker import Broker
from statusboard.services.prober import Prober
from statusboard.workers.dispatcher import Dispatcher
from statusboard.workers.scheduler import Scheduler

logger = logging.getLogger(__name__)


def build_notifier(config: MonitorConfig, app_settings: Settings) -> FanoutNotifier:
    senders: list[AlertSender] = [SlackNotifier(config.slack)]
    if app_settings.telegram_bot_token and app_settings.telegram_chat_id:
        senders.append(TelegramNotifier(app_settings.telegram_bot_token, app_settings.telegram_chat_id))
    return FanoutNotifier(senders)


def create_app(
    config: MonitorConfig,
    app_settings: Settings = settings,
    notifier: AlertSender | None = None,
) -> FastAPI:
    targets = config.build_targets()
    broker = Broker(
        buffer_size=app_settings.subscriber_buffer_size,
        overflow=app_settings.subscriber_overflow,
    )
    # notifiers built here are owned by the app and closed on shutdown
    owned_notifier = None if notifier is not None else build_notifier(config, app_settings)
    prober = Prober(broker, notifier or owned_notifier)
    dispatcher = Dispatcher(
        prober,
        queue_size=len(targets),
        concurrency=app_settings.checker_concurrency,
    )
    scheduler = Scheduler(dispatcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        broker.start()
        dispatcher.start()
        scheduler.start(targets)
        logger.info("running checks", extra={"targets": len(targets)})
        try:
            yield
        finally:
            await scheduler.stop()
            await dispatcher.stop()
            await broker.stop()
            if owned_notifier is not None:
                await owned_notifier.aclose()

    app = FastAPI(title="Statusboard", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.targets = targets
    app.state.broker = broker
    app.state.dispatcher = dispatcher
    app.state.scheduler = scheduler
    app.state.notifier = notifier or owned_notifier

    app.include_router(events.router)
    app.include_router(checks.router)
    app.include_router(health.router)
    return app


def main() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    try:
        config = load_config(settings.config_path)
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    app = create_app(config, settings)
    logger.info("serving", extra={"host": settings.api_host, "port": settings.api_port})
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
