"""Process-local store, used when no DATABASE_URL is configured and in tests."""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timedelta
from typing import Dict, List

from ..core.errors import DriveNotFoundError, VersionConflictError
from ..core.timeutil import utcnow
from ..domain.models import Drive, ScheduledTask, TaskState
from .base import DEFAULT_TASK_LEASE, DriveStore


def _claimable(task: ScheduledTask, stale: datetime) -> bool:
    if task.state == TaskState.PENDING:
        return True
    return (
        task.state == TaskState.RUNNING
        and task.claimed_at is not None
        and task.claimed_at <= stale
    )


class InMemoryDriveStore(DriveStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._drives: Dict[str, Drive] = {}
        self._tasks: Dict[str, ScheduledTask] = {}

    def add(self, drive: Drive) -> None:
        with self._lock:
            drive.version = 1
            if drive.created_at is None:
                drive.created_at = utcnow()
            self._drives[drive.id] = copy.deepcopy(drive)

    def get(self, drive_id: str) -> Drive:
        with self._lock:
            try:
                return copy.deepcopy(self._drives[drive_id])
            except KeyError:
                raise DriveNotFoundError(drive_id) from None

    def list(self) -> List[Drive]:
        with self._lock:
            drives = [copy.deepcopy(d) for d in self._drives.values()]
        return sorted(drives, key=lambda d: d.created_at, reverse=True)

    def save(self, drive: Drive) -> None:
        with self._lock:
            stored = self._drives.get(drive.id)
            if stored is None:
                raise DriveNotFoundError(drive.id)
            if stored.version != drive.version:
                raise VersionConflictError(drive.id, drive.version)
            drive.version += 1
            self._drives[drive.id] = copy.deepcopy(drive)

    def add_task(self, task: ScheduledTask) -> None:
        with self._lock:
            self._tasks[task.id] = copy.deepcopy(task)

    def claim_due_tasks(
        self, now: datetime, lease: timedelta = DEFAULT_TASK_LEASE
    ) -> List[ScheduledTask]:
        stale = now - lease
        with self._lock:
            due = [
                t
                for t in self._tasks.values()
                if t.fire_at <= now and _claimable(t, stale)
            ]
            for task in due:
                task.state = TaskState.RUNNING
                task.claimed_at = now
            return [copy.deepcopy(t) for t in sorted(due, key=lambda t: t.fire_at)]

    def finish_task(self, task_id: str, error: str | None = None) -> None:
        with self._lock:
            task = self._tasks[task_id]
            task.state = TaskState.FAILED if error else TaskState.DONE
            task.error = error

    def list_tasks(self, drive_id: str) -> List[ScheduledTask]:
        with self._lock:
            return [
                copy.deepcopy(t)
                for t in self._tasks.values()
                if t.drive_id == drive_id
            ]
