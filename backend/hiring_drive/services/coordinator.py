"""Drive operations and the optimistic-concurrency write loop.

Every operation that changes a drive goes through :meth:`DriveCoordinator.mutate`:
load a fresh copy, apply a transform to it, write it back with the version
it was read at. A lost race reloads and re-applies the transform, so a
transform must depend only on the drive and the time it is given.
Side effects (deferred tasks, notifications) are collected by the
transform and only carried out once the write has landed.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Tuple, TypeVar

from ..core.config import Settings
from ..core.errors import (
    EventNotFoundError,
    InvalidTransitionError,
    RetriesExhaustedError,
    VersionConflictError,
)
from ..core.logging import drive_context
from ..core.timeutil import utcnow
from ..domain.models import (
    EVENT_STATUS_ORDER,
    Drive,
    Event,
    EventStatus,
    ScheduledTask,
    TaskKind,
)
from ..domain.schemas import (
    CompletedNotifData,
    CreateDriveRequest,
    DriveStats,
    EventOutcomeRequest,
    NotificationResponseRequest,
    ScheduledNotifData,
    StartNotifData,
)
from ..engine import drive_stats, refresh_statuses, schedule_interviews
from ..store import DriveStore
from .notifications import NotificationGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Changes:
    """Side effects produced by one transform, applied after commit."""

    new_events: List[Event] = field(default_factory=list)
    started: List[Event] = field(default_factory=list)
    tasks: List[ScheduledTask] = field(default_factory=list)


class DriveCoordinator:
    def __init__(
        self,
        store: DriveStore,
        gateway: NotificationGateway,
        *,
        clock: Callable[[], datetime] = utcnow,
        buffer: timedelta = timedelta(minutes=15),
        max_attempts: int = 3,
        backoff_seconds: float = 0.1,
        id_factory: Callable[[], str] = _new_id,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.clock = clock
        self.buffer = buffer
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.id_factory = id_factory
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: Settings, store: DriveStore, gateway: NotificationGateway
    ) -> "DriveCoordinator":
        return cls(
            store,
            gateway,
            buffer=timedelta(minutes=settings.SCHEDULING_BUFFER_MINUTES),
            max_attempts=settings.SAVE_MAX_ATTEMPTS,
            backoff_seconds=settings.SAVE_BACKOFF_SECONDS,
        )

    # -- write loop ---------------------------------------------------------

    def mutate(
        self, drive_id: str, transform: Callable[[Drive, datetime], T]
    ) -> Tuple[Drive, T]:
        """Read, transform, write with a version check; retry lost races.

        ``NotFoundError`` and anything else the transform raises propagate
        at once. Losing ``max_attempts`` races in a row raises
        ``RetriesExhaustedError``.
        """
        with drive_context(drive_id):
            for attempt in range(1, self.max_attempts + 1):
                drive = self.store.get(drive_id)
                result = transform(drive, self.clock())
                try:
                    self.store.save(drive)
                except VersionConflictError as exc:
                    if attempt == self.max_attempts:
                        logger.error(
                            "version conflict on attempt %d/%d, giving up",
                            attempt,
                            self.max_attempts,
                        )
                        raise RetriesExhaustedError(drive_id, attempt) from exc
                    delay = self.backoff_seconds * 2 ** (attempt - 1)
                    logger.warning(
                        "version conflict on attempt %d/%d, retrying in %.2fs",
                        attempt,
                        self.max_attempts,
                        delay,
                    )
                    self.sleep(delay)
                    continue
                return drive, result
        raise RetriesExhaustedError(drive_id, self.max_attempts)

    # -- public operations --------------------------------------------------

    def create_drive(self, request: CreateDriveRequest) -> Drive:
        now = self.clock()
        drive = Drive(
            id=self.id_factory(),
            name=request.name,
            start_time=request.start_time,
            end_time=request.end_time,
            rounds=[r.to_domain() for r in request.rounds],
            candidates=[c.to_domain() for c in request.candidates],
            interviewers=[i.to_domain() for i in request.interviewers],
            created_at=now,
        )
        with drive_context(drive.id):
            # participants start out WAITING, so later slots get pre-booked
            changes = Changes(new_events=self._schedule(drive, now))
            changes.tasks.extend(self._feedback_tasks(drive, changes.new_events))
            for interviewer in drive.interviewers:
                if interviewer.slot_start > now:
                    changes.tasks.append(
                        self._task(
                            drive,
                            TaskKind.SLOT_START,
                            interviewer.slot_start,
                            interviewer_email=interviewer.email,
                        )
                    )
            self.store.add(drive)
            logger.info(
                "created drive %r with %d candidates, %d interviewers, %d events",
                drive.name,
                len(drive.candidates),
                len(drive.interviewers),
                len(drive.events),
            )
            self._publish(drive, changes)
        return drive

    def get_drive(self, drive_id: str) -> Drive:
        return self.store.get(drive_id)

    def list_drives(self) -> List[Drive]:
        return self.store.list()

    def get_stats(self, drive_id: str) -> DriveStats:
        return drive_stats(self.store.get(drive_id))

    def trigger_scheduling(self, drive_id: str) -> int:
        drive, changes = self.mutate(drive_id, self._refresh_and_schedule)
        self._publish(drive, changes)
        return len(changes.new_events)

    def record_event_outcome(
        self, drive_id: str, outcome: EventOutcomeRequest
    ) -> Drive:
        def transform(drive: Drive, now: datetime) -> Changes:
            return self._apply_outcome(drive, now, outcome)

        drive, changes = self.mutate(drive_id, transform)
        self._publish(drive, changes)
        return drive

    def respond_to_notification(
        self, drive_id: str, response: NotificationResponseRequest
    ) -> Drive:
        """Turn a participant's reply into an event update."""
        drive = self.store.get(drive_id)
        event = drive.find_event(response.event_id)
        if event is None:
            raise EventNotFoundError(drive_id, response.event_id)
        if str(response.email) not in (event.candidate_email, event.interviewer_email):
            raise InvalidTransitionError(
                f"{response.email} is not a participant of event {event.id}"
            )

        data = response.data
        with drive_context(drive_id):
            logger.info(
                "received %s from %s %s for event %s",
                response.notification_type,
                response.source,
                response.email,
                event.id,
            )
            if isinstance(data, ScheduledNotifData):
                if not data.is_accepted:
                    # no rescheduling: the booking stands
                    logger.warning(
                        "%s %s declined event %s",
                        response.source,
                        response.email,
                        event.id,
                    )
                return drive
            if isinstance(data, StartNotifData):
                if not data.is_started:
                    return drive
                outcome = EventOutcomeRequest(
                    event_id=event.id, status=EventStatus.ONGOING
                )
            elif isinstance(data, CompletedNotifData):
                outcome = EventOutcomeRequest(
                    event_id=event.id,
                    status=EventStatus.COMPLETED,
                    decision=data.decision,
                    question=data.question_asked,
                    ready_for_next=data.is_ready_for_next_round,
                    break_time_minutes=data.break_time,
                )
            else:
                raise InvalidTransitionError(
                    f"unsupported notification {response.notification_type}"
                )
        return self.record_event_outcome(drive_id, outcome)

    # -- deferred tasks -----------------------------------------------------

    def handle_task(self, task: ScheduledTask) -> None:
        """Run a fired deferred task against a freshly loaded drive."""
        logger.info("firing %s task %s", task.kind.value, task.id)
        if task.kind == TaskKind.SLOT_START:
            self.trigger_scheduling(task.drive_id)
        elif task.kind == TaskKind.BREAK_END:
            email = task.payload["interviewer_email"]

            def transform(drive: Drive, now: datetime) -> Changes:
                return self._end_break(drive, now, email)

            drive, changes = self.mutate(task.drive_id, transform)
            self._publish(drive, changes)
        elif task.kind == TaskKind.FEEDBACK_DUE:
            self._solicit_feedback(task.drive_id, task.payload["event_id"])
        else:
            raise ValueError(f"unknown task kind {task.kind}")

    # -- transforms ---------------------------------------------------------

    def _schedule(self, drive: Drive, now: datetime) -> List[Event]:
        return schedule_interviews(
            drive, now, buffer=self.buffer, id_factory=self.id_factory
        )

    def _refresh_and_schedule(self, drive: Drive, now: datetime) -> Changes:
        refresh_statuses(drive, now)
        new_events = self._schedule(drive, now)
        return Changes(
            new_events=new_events,
            tasks=self._feedback_tasks(drive, new_events),
        )

    def _apply_outcome(
        self, drive: Drive, now: datetime, outcome: EventOutcomeRequest
    ) -> Changes:
        event = drive.find_event(outcome.event_id)
        if event is None:
            raise EventNotFoundError(drive.id, outcome.event_id)

        started: List[Event] = []
        if outcome.status is not None and outcome.status != event.status:
            if EVENT_STATUS_ORDER[outcome.status] < EVENT_STATUS_ORDER[event.status]:
                raise InvalidTransitionError(
                    f"event {event.id} cannot go from {event.status.value} "
                    f"to {outcome.status.value}"
                )
            event.status = outcome.status
            if event.status == EventStatus.ONGOING:
                started.append(event)
        if outcome.decision is not None:
            event.decision = outcome.decision
        if outcome.question is not None:
            event.question = outcome.question

        tasks: List[ScheduledTask] = []
        interviewer = drive.find_interviewer(event.interviewer_email)
        if interviewer is not None and event.status == EventStatus.COMPLETED:
            if not outcome.ready_for_next and outcome.break_time_minutes:
                interviewer.break_until = now + timedelta(
                    minutes=outcome.break_time_minutes
                )
                tasks.append(
                    self._task(
                        drive,
                        TaskKind.BREAK_END,
                        interviewer.break_until,
                        interviewer_email=interviewer.email,
                    )
                )
                logger.info(
                    "interviewer %s on a %d min break",
                    interviewer.email,
                    outcome.break_time_minutes,
                )
            elif outcome.ready_for_next:
                interviewer.break_until = None

        changes = self._refresh_and_schedule(drive, now)
        changes.started = started
        changes.tasks = tasks + changes.tasks
        return changes

    def _end_break(self, drive: Drive, now: datetime, email: str) -> Changes:
        interviewer = drive.find_interviewer(email)
        # a later, longer break keeps its own timer
        if (
            interviewer is not None
            and interviewer.break_until is not None
            and interviewer.break_until <= now
        ):
            interviewer.break_until = None
        return self._refresh_and_schedule(drive, now)

    def _solicit_feedback(self, drive_id: str, event_id: str) -> None:
        drive = self.store.get(drive_id)
        event = drive.find_event(event_id)
        if event is None:
            logger.warning("feedback due for unknown event %s", event_id)
            return
        if event.status == EventStatus.COMPLETED:
            return
        interviewer = drive.find_interviewer(event.interviewer_email)
        if interviewer is not None:
            self.gateway.notify_complete(event, interviewer)

    # -- helpers ------------------------------------------------------------

    def _task(
        self, drive: Drive, kind: TaskKind, fire_at: datetime, **payload: str
    ) -> ScheduledTask:
        return ScheduledTask(
            id=self.id_factory(),
            drive_id=drive.id,
            kind=kind,
            fire_at=fire_at,
            payload=dict(payload),
        )

    def _feedback_tasks(
        self, drive: Drive, events: List[Event]
    ) -> List[ScheduledTask]:
        return [
            self._task(drive, TaskKind.FEEDBACK_DUE, e.end_time, event_id=e.id)
            for e in events
        ]

    def _publish(self, drive: Drive, changes: Changes) -> None:
        for task in changes.tasks:
            self.store.add_task(task)
        for event in changes.new_events:
            interviewer = drive.find_interviewer(event.interviewer_email)
            candidate = drive.find_candidate(event.candidate_email)
            if interviewer is not None:
                self.gateway.notify_scheduled(event, interviewer)
            if candidate is not None:
                self.gateway.notify_scheduled(event, candidate)
        for event in changes.started:
            interviewer = drive.find_interviewer(event.interviewer_email)
            if interviewer is not None:
                self.gateway.notify_start(event, interviewer)
        if changes.new_events:
            logger.info("scheduled %d new events", len(changes.new_events))
