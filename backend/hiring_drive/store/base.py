"""Persistence contract for drives and deferred tasks.

A store hands out independent copies of a drive. ``save`` only succeeds
when the stored version still equals the version the copy was read at;
on success the copy's version is bumped to match the stored one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List

from pydantic import TypeAdapter

from ..domain.models import Drive, ScheduledTask

_drive_adapter = TypeAdapter(Drive)
_task_adapter = TypeAdapter(ScheduledTask)

# A RUNNING task claimed longer ago than this is treated as abandoned by a
# runner that died mid-task and is handed out again.
DEFAULT_TASK_LEASE = timedelta(minutes=5)


def dump_drive(drive: Drive) -> Dict[str, Any]:
    """JSON-compatible document for ``drive``."""
    return _drive_adapter.dump_python(drive, mode="json")


def load_drive(document: Dict[str, Any]) -> Drive:
    return _drive_adapter.validate_python(document)


def dump_task(task: ScheduledTask) -> Dict[str, Any]:
    return _task_adapter.dump_python(task, mode="json")


def load_task(document: Dict[str, Any]) -> ScheduledTask:
    return _task_adapter.validate_python(document)


class DriveStore(ABC):
    """Versioned drive documents plus the durable task queue."""

    @abstractmethod
    def add(self, drive: Drive) -> None:
        """Insert a new drive. Its version is set to 1."""

    @abstractmethod
    def get(self, drive_id: str) -> Drive:
        """Return a private copy or raise ``DriveNotFoundError``."""

    @abstractmethod
    def list(self) -> List[Drive]:
        """All drives, newest first."""

    @abstractmethod
    def save(self, drive: Drive) -> None:
        """Write ``drive`` back or raise ``VersionConflictError``."""

    @abstractmethod
    def add_task(self, task: ScheduledTask) -> None:
        ...

    @abstractmethod
    def claim_due_tasks(
        self, now: datetime, lease: timedelta = DEFAULT_TASK_LEASE
    ) -> List[ScheduledTask]:
        """Atomically claim due tasks and return them, oldest first.

        Claims PENDING tasks and RUNNING tasks whose claim is older than
        ``lease``; each is moved to RUNNING with ``claimed_at = now``.
        """

    @abstractmethod
    def finish_task(self, task_id: str, error: str | None = None) -> None:
        """Mark a claimed task DONE, or FAILED when ``error`` is given."""

    @abstractmethod
    def list_tasks(self, drive_id: str) -> List[ScheduledTask]:
        ...
