"""SQLAlchemy-backed store.

Each drive is one row holding the whole record as a JSON document next to
an integer version column. Writes are a conditional
``UPDATE ... WHERE version = :read_version``; a zero row count means some
other writer got there first.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    and_,
    create_engine,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.errors import DriveNotFoundError, VersionConflictError
from ..core.timeutil import UTC, to_naive_utc, utcnow
from ..domain.models import Drive, ScheduledTask, TaskKind, TaskState
from .base import DEFAULT_TASK_LEASE, DriveStore, dump_drive, load_drive

logger = logging.getLogger(__name__)

Base = declarative_base()


class DriveRow(Base):
    __tablename__ = "hiring_drives"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    document = Column(JSON, nullable=False)


class TaskRow(Base):
    __tablename__ = "scheduled_tasks"

    id = Column(String(64), primary_key=True)
    drive_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    fire_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    state = Column(String(16), nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    error = Column(Text, nullable=True)
    claimed_at = Column(DateTime, nullable=True)  # naive UTC


def make_engine(url: str) -> Engine:
    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, pool_pre_ping=True)


def _task_from_row(row: TaskRow) -> ScheduledTask:
    return ScheduledTask(
        id=row.id,
        drive_id=row.drive_id,
        kind=TaskKind(row.kind),
        fire_at=row.fire_at.replace(tzinfo=UTC),
        payload=dict(row.payload or {}),
        state=TaskState(row.state),
        error=row.error,
        claimed_at=(
            row.claimed_at.replace(tzinfo=UTC) if row.claimed_at is not None else None
        ),
    )


class SqlDriveStore(DriveStore):
    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        Base.metadata.create_all(engine)
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "SqlDriveStore":
        return cls(make_engine(url))

    def add(self, drive: Drive) -> None:
        drive.version = 1
        if drive.created_at is None:
            drive.created_at = utcnow()
        with self._sessions.begin() as session:
            session.add(
                DriveRow(
                    id=drive.id,
                    name=drive.name,
                    version=drive.version,
                    created_at=to_naive_utc(drive.created_at),
                    document=dump_drive(drive),
                )
            )

    def get(self, drive_id: str) -> Drive:
        with self._sessions() as session:
            row = session.get(DriveRow, drive_id)
            if row is None:
                raise DriveNotFoundError(drive_id)
            return self._drive_from_row(row)

    def list(self) -> List[Drive]:
        with self._sessions() as session:
            rows = session.scalars(
                select(DriveRow).order_by(DriveRow.created_at.desc())
            ).all()
            return [self._drive_from_row(row) for row in rows]

    def save(self, drive: Drive) -> None:
        document = dump_drive(drive)
        document["version"] = drive.version + 1
        with self._sessions.begin() as session:
            result = session.execute(
                update(DriveRow)
                .where(DriveRow.id == drive.id, DriveRow.version == drive.version)
                .values(version=drive.version + 1, name=drive.name, document=document)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                if session.get(DriveRow, drive.id) is None:
                    raise DriveNotFoundError(drive.id)
                raise VersionConflictError(drive.id, drive.version)
        drive.version += 1

    def add_task(self, task: ScheduledTask) -> None:
        with self._sessions.begin() as session:
            session.add(
                TaskRow(
                    id=task.id,
                    drive_id=task.drive_id,
                    kind=task.kind.value,
                    fire_at=to_naive_utc(task.fire_at),
                    state=task.state.value,
                    payload=dict(task.payload),
                    error=task.error,
                    claimed_at=(
                        to_naive_utc(task.claimed_at) if task.claimed_at else None
                    ),
                )
            )

    def claim_due_tasks(
        self, now: datetime, lease: timedelta = DEFAULT_TASK_LEASE
    ) -> List[ScheduledTask]:
        claimed: List[ScheduledTask] = []
        naive_now = to_naive_utc(now)
        stale = to_naive_utc(now - lease)
        claimable = or_(
            TaskRow.state == TaskState.PENDING.value,
            and_(
                TaskRow.state == TaskState.RUNNING.value,
                TaskRow.claimed_at <= stale,
            ),
        )
        with self._sessions.begin() as session:
            rows = session.scalars(
                select(TaskRow)
                .where(claimable, TaskRow.fire_at <= naive_now)
                .order_by(TaskRow.fire_at)
            ).all()
            for row in rows:
                # only win the row if nobody re-claimed it since the select
                previous = (
                    TaskRow.claimed_at.is_(None)
                    if row.claimed_at is None
                    else TaskRow.claimed_at == row.claimed_at
                )
                result = session.execute(
                    update(TaskRow)
                    .where(TaskRow.id == row.id, TaskRow.state == row.state, previous)
                    .values(state=TaskState.RUNNING.value, claimed_at=naive_now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    continue
                if row.state == TaskState.RUNNING.value:
                    logger.warning(
                        "reclaimed %s task %s, claim from %s expired",
                        row.kind,
                        row.id,
                        row.claimed_at.isoformat(),
                    )
                task = _task_from_row(row)
                task.state = TaskState.RUNNING
                task.claimed_at = now
                claimed.append(task)
        return claimed

    def finish_task(self, task_id: str, error: str | None = None) -> None:
        state = TaskState.FAILED if error else TaskState.DONE
        with self._sessions.begin() as session:
            session.execute(
                update(TaskRow)
                .where(TaskRow.id == task_id)
                .values(state=state.value, error=error)
                .execution_options(synchronize_session=False)
            )

    def list_tasks(self, drive_id: str) -> List[ScheduledTask]:
        with self._sessions() as session:
            rows = session.scalars(
                select(TaskRow)
                .where(TaskRow.drive_id == drive_id)
                .order_by(TaskRow.fire_at)
            ).all()
            return [_task_from_row(row) for row in rows]

    @staticmethod
    def _drive_from_row(row: DriveRow) -> Drive:
        drive = load_drive(row.document)
        drive.version = row.version
        return drive
