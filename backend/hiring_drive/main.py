"""Application entry point."""

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI

from .api import api_router
from .api.errors import register_error_handlers
from .core.config import Settings, settings as default_settings
from .core.logging import RequestIDMiddleware, init_logging
from .services import DriveCoordinator, NotificationGateway, TaskRunner, build_gateway
from .store import DriveStore, build_store


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DriveStore] = None,
    gateway: Optional[NotificationGateway] = None,
    coordinator: Optional[DriveCoordinator] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings
    init_logging(settings.LOG_LEVEL)

    store = store or build_store(settings.DATABASE_URL)
    gateway = gateway or build_gateway(settings)
    coordinator = coordinator or DriveCoordinator.from_settings(settings, store, gateway)
    runner = TaskRunner(
        coordinator,
        store,
        poll_seconds=settings.TASK_POLL_SECONDS,
        lease=timedelta(seconds=settings.TASK_LEASE_SECONDS),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop = asyncio.Event()
        poller = None
        if settings.TASK_RUNNER_ENABLED:
            poller = asyncio.create_task(runner.run_forever(stop))
        try:
            yield
        finally:
            stop.set()
            if poller is not None:
                await poller
            gateway.shutdown(wait=False)

    app = FastAPI(title="Hiring Drive Scheduler", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.coordinator = coordinator
    app.state.task_runner = runner
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
