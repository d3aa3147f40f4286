"""Runner for persisted deferred tasks.

Tasks live in the drive store, so a restart loses nothing: whatever is due
when the runner next polls gets fired. A task claimed by a runner that
died before finishing it is claimed again once the claim is older than
the lease, so a task may fire twice; every handler works from a freshly
loaded drive. A failing task is recorded as FAILED and logged without
affecting the other tasks of the batch.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..core.logging import drive_context
from ..core.timeutil import utcnow
from ..store import DriveStore
from ..store.base import DEFAULT_TASK_LEASE
from .coordinator import DriveCoordinator

logger = logging.getLogger(__name__)


class TaskRunner:
    def __init__(
        self,
        coordinator: DriveCoordinator,
        store: DriveStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        poll_seconds: float = 5.0,
        lease: timedelta = DEFAULT_TASK_LEASE,
    ) -> None:
        self.coordinator = coordinator
        self.store = store
        self.clock = clock
        self.poll_seconds = poll_seconds
        self.lease = lease

    def run_due(self, now: Optional[datetime] = None) -> int:
        """Fire every task due at ``now``. Returns how many were claimed."""
        tasks = self.store.claim_due_tasks(now or self.clock(), self.lease)
        for task in tasks:
            with drive_context(task.drive_id):
                try:
                    self.coordinator.handle_task(task)
                except Exception as exc:
                    logger.exception("%s task %s failed", task.kind.value, task.id)
                    self.store.finish_task(task.id, error=f"{type(exc).__name__}: {exc}")
                else:
                    self.store.finish_task(task.id)
        return len(tasks)

    async def run_forever(self, stop: asyncio.Event) -> None:
        logger.info("task runner started, polling every %.1fs", self.poll_seconds)
        while not stop.is_set():
            try:
                await asyncio.to_thread(self.run_due)
            except Exception:
                logger.exception("task poll failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("task runner stopped")
