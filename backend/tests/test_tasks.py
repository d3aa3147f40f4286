"""Tests for the persisted deferred-task runner."""

import asyncio
from types import SimpleNamespace

import pytest

from factories import Clock, SequentialIds, at, drive_request, recording_gateway
from hiring_drive.domain.models import (
    Decision,
    EventStatus,
    ParticipantStatus,
    ScheduledTask,
    TaskKind,
    TaskState,
)
from hiring_drive.domain.schemas import EventOutcomeRequest
from hiring_drive.services.coordinator import DriveCoordinator
from hiring_drive.services.tasks import TaskRunner
from hiring_drive.store import InMemoryDriveStore


@pytest.fixture
def env():
    store = InMemoryDriveStore()
    gateway = recording_gateway()
    clock = Clock()
    coordinator = DriveCoordinator(
        store, gateway, clock=clock, id_factory=SequentialIds(), sleep=lambda _: None
    )
    runner = TaskRunner(coordinator, store, clock=clock, poll_seconds=0.01)
    drive = coordinator.create_drive(drive_request())
    gateway.channel.sent.clear()
    return SimpleNamespace(
        store=store,
        channel=gateway.channel,
        clock=clock,
        coordinator=coordinator,
        runner=runner,
        drive=drive,
    )


def states(env):
    return {t.kind: t.state for t in env.store.list_tasks(env.drive.id)}


def carol_event(env):
    return next(e for e in env.drive.events if e.candidate_email == "carol@example.com")


def test_nothing_fires_early(env):
    assert env.runner.run_due() == 0
    assert env.channel.sent == []


def test_slot_start_frees_interviewer(env):
    env.clock.now = at(hours=2)

    assert env.runner.run_due() == 3

    drive = env.coordinator.get_drive(env.drive.id)
    assert drive.find_interviewer("kim@example.com").current_status == ParticipantStatus.WAITING
    assert set(states(env).values()) == {TaskState.DONE}
    # both first-round events are overdue, so both interviewers are asked for feedback
    assert env.channel.kinds() == ["complete", "complete"]
    assert {n.to for n in env.channel.sent} == {"ivan@example.com", "jane@example.com"}


def test_feedback_request_skipped_for_completed_event(env):
    env.coordinator.record_event_outcome(
        env.drive.id,
        EventOutcomeRequest(
            event_id=carol_event(env).id,
            status=EventStatus.COMPLETED,
            decision=Decision.YES,
        ),
    )
    env.channel.sent.clear()
    env.clock.now = at(minutes=45)

    env.runner.run_due()

    assert env.channel.kinds() == ["complete"]
    assert env.channel.sent[0].to == "jane@example.com"
    dave_event = next(e for e in env.drive.events if e.candidate_email == "dave@example.com")
    assert env.channel.sent[0].body["event_id"] == dave_event.id


def test_break_end_returns_interviewer_to_pool(env):
    env.clock.now = at(minutes=45)
    env.coordinator.record_event_outcome(
        env.drive.id,
        EventOutcomeRequest(
            event_id=carol_event(env).id,
            status=EventStatus.COMPLETED,
            decision=Decision.YES,
            ready_for_next=False,
            break_time_minutes=30,
        ),
    )

    env.clock.now = at(hours=1)
    env.runner.run_due()
    drive = env.coordinator.get_drive(env.drive.id)
    assert drive.find_interviewer("ivan@example.com").current_status == ParticipantStatus.BUSY

    env.clock.now = at(hours=1, minutes=15)
    env.runner.run_due()
    drive = env.coordinator.get_drive(env.drive.id)
    ivan = drive.find_interviewer("ivan@example.com")
    assert ivan.break_until is None
    assert ivan.current_status == ParticipantStatus.WAITING
    assert states(env)[TaskKind.BREAK_END] == TaskState.DONE


def test_early_break_timer_keeps_longer_break(env):
    env.clock.now = at(minutes=45)
    env.coordinator.record_event_outcome(
        env.drive.id,
        EventOutcomeRequest(
            event_id=carol_event(env).id,
            status=EventStatus.COMPLETED,
            decision=Decision.YES,
            ready_for_next=False,
            break_time_minutes=30,
        ),
    )
    env.store.add_task(
        ScheduledTask(
            id="stale-break",
            drive_id=env.drive.id,
            kind=TaskKind.BREAK_END,
            fire_at=at(minutes=50),
            payload={"interviewer_email": "ivan@example.com"},
        )
    )

    env.clock.now = at(minutes=55)
    env.runner.run_due()

    ivan = env.coordinator.get_drive(env.drive.id).find_interviewer("ivan@example.com")
    assert ivan.break_until == at(hours=1, minutes=15)
    assert ivan.current_status == ParticipantStatus.BUSY


def test_break_end_after_slot_closed_leaves_interviewer_done(env):
    env.store.add_task(
        ScheduledTask(
            id="late-break",
            drive_id=env.drive.id,
            kind=TaskKind.BREAK_END,
            fire_at=at(hours=9),
            payload={"interviewer_email": "ivan@example.com"},
        )
    )

    env.clock.now = at(hours=9)
    env.runner.run_due()

    ivan = env.coordinator.get_drive(env.drive.id).find_interviewer("ivan@example.com")
    assert ivan.current_status == ParticipantStatus.DONE


def test_failing_task_does_not_block_the_batch(env):
    env.store.add_task(
        ScheduledTask(
            id="orphan",
            drive_id="missing",
            kind=TaskKind.SLOT_START,
            fire_at=at(minutes=-5),
        )
    )
    env.clock.now = at(hours=2)

    assert env.runner.run_due() == 4

    orphan = env.store.list_tasks("missing")[0]
    assert orphan.state == TaskState.FAILED
    assert orphan.error.startswith("DriveNotFoundError")
    assert set(states(env).values()) == {TaskState.DONE}


def test_run_forever_polls_until_stopped(env):
    env.clock.now = at(hours=2)

    async def run():
        stop = asyncio.Event()
        loop = asyncio.create_task(env.runner.run_forever(stop))
        await asyncio.sleep(0.2)
        stop.set()
        await asyncio.wait_for(loop, timeout=2)

    asyncio.run(run())

    assert set(states(env).values()) == {TaskState.DONE}


def test_task_left_running_by_dead_runner_fires_after_lease(env):
    env.clock.now = at(hours=2)
    # another runner claimed everything due and died before finishing
    assert len(env.store.claim_due_tasks(env.clock.now)) == 3

    assert env.runner.run_due() == 0

    env.clock.now = at(hours=2, minutes=10)
    assert env.runner.run_due() == 3

    drive = env.coordinator.get_drive(env.drive.id)
    assert drive.find_interviewer("kim@example.com").current_status == ParticipantStatus.WAITING
    assert set(states(env).values()) == {TaskState.DONE}
