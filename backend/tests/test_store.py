"""Contract tests run against both store backends."""

from datetime import timedelta

import pytest

from factories import NOW, at, make_candidate, make_drive, make_interviewer, make_round
from hiring_drive.core.errors import DriveNotFoundError, VersionConflictError
from hiring_drive.domain.models import (
    Decision,
    Event,
    EventStatus,
    RoundName,
    ScheduledTask,
    TaskKind,
    TaskState,
)
from hiring_drive.store import InMemoryDriveStore, build_store
from hiring_drive.store.base import dump_drive, load_drive
from hiring_drive.store.sql import SqlDriveStore, make_engine


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryDriveStore()
    return SqlDriveStore(make_engine("sqlite://"))


def sample_drive(drive_id="drive-1", created_at=NOW):
    carol = make_candidate()
    ivan = make_interviewer()
    bps = make_round(RoundName.BPS, elimination=True)
    drive = make_drive([bps, make_round(RoundName.CODING1)], [carol], [ivan])
    drive.id = drive_id
    drive.created_at = created_at
    ivan.break_until = at(minutes=30)
    drive.events.append(
        Event(
            id="evt-1",
            round=bps,
            candidate_email=carol.email,
            interviewer_email=ivan.email,
            start_time=at(minutes=15),
            duration=30,
            status=EventStatus.COMPLETED,
            decision=Decision.STRONG_YES,
            meeting_link="https://zoom.us/j/evt-1",
        )
    )
    return drive


def test_add_and_get_returns_independent_copy(store):
    drive = sample_drive()
    store.add(drive)

    loaded = store.get("drive-1")
    assert loaded.version == 1
    assert loaded == drive

    loaded.events.clear()
    assert len(store.get("drive-1").events) == 1


def test_document_keeps_types(store):
    store.add(sample_drive())

    loaded = store.get("drive-1")
    event = loaded.events[0]
    assert event.round.name is RoundName.BPS
    assert event.decision is Decision.STRONG_YES
    assert event.start_time == at(minutes=15)
    assert event.start_time.utcoffset().total_seconds() == 0
    assert loaded.interviewers[0].break_until == at(minutes=30)
    assert loaded.interviewers[0].eligibility[RoundName.CODING1] is True


def test_missing_drive(store):
    with pytest.raises(DriveNotFoundError):
        store.get("nope")
    with pytest.raises(DriveNotFoundError):
        store.save(sample_drive("nope"))


def test_save_bumps_version(store):
    store.add(sample_drive())
    drive = store.get("drive-1")
    drive.name = "Renamed"

    store.save(drive)

    assert drive.version == 2
    stored = store.get("drive-1")
    assert (stored.name, stored.version) == ("Renamed", 2)


def test_stale_save_is_rejected(store):
    store.add(sample_drive())
    first = store.get("drive-1")
    second = store.get("drive-1")
    first.name = "First"
    store.save(first)

    second.name = "Second"
    with pytest.raises(VersionConflictError):
        store.save(second)
    assert second.version == 1
    assert store.get("drive-1").name == "First"


def test_list_newest_first(store):
    store.add(sample_drive("old", created_at=at(hours=-2)))
    store.add(sample_drive("new", created_at=at(hours=1)))
    store.add(sample_drive("mid", created_at=NOW))

    assert [d.id for d in store.list()] == ["new", "mid", "old"]


def test_claim_due_tasks_once(store):
    for task_id, minutes in (("t-late", 90), ("t-2", 20), ("t-1", 10)):
        store.add_task(
            ScheduledTask(
                id=task_id,
                drive_id="drive-1",
                kind=TaskKind.FEEDBACK_DUE,
                fire_at=at(minutes=minutes),
                payload={"event_id": "evt-1"},
            )
        )

    claimed = store.claim_due_tasks(at(minutes=30))
    assert [t.id for t in claimed] == ["t-1", "t-2"]
    assert all(t.state == TaskState.RUNNING for t in claimed)
    assert claimed[0].payload == {"event_id": "evt-1"}
    assert claimed[0].fire_at == at(minutes=10)
    assert store.claim_due_tasks(at(minutes=30)) == []

    store.finish_task("t-1")
    store.finish_task("t-2", error="boom")
    by_id = {t.id: t for t in store.list_tasks("drive-1")}
    assert by_id["t-1"].state == TaskState.DONE
    assert (by_id["t-2"].state, by_id["t-2"].error) == (TaskState.FAILED, "boom")
    assert by_id["t-late"].state == TaskState.PENDING


def test_document_round_trip():
    drive = sample_drive()
    drive.version = 7

    document = dump_drive(drive)

    assert document["events"][0]["round"]["name"] == "BPS"
    assert document["candidates"][0]["overall_decision"] == "PENDING"
    assert load_drive(document) == drive


def test_build_store_picks_backend():
    assert isinstance(build_store(""), InMemoryDriveStore)
    assert isinstance(build_store("sqlite://"), SqlDriveStore)


def test_abandoned_claim_is_handed_out_again(store):
    store.add_task(
        ScheduledTask(
            id="t-1",
            drive_id="drive-1",
            kind=TaskKind.SLOT_START,
            fire_at=NOW,
        )
    )
    [first] = store.claim_due_tasks(NOW)
    assert first.claimed_at == NOW

    # the claiming runner never finishes; a live claim is left alone
    assert store.claim_due_tasks(at(minutes=1), lease=timedelta(minutes=5)) == []

    [again] = store.claim_due_tasks(at(hours=5), lease=timedelta(minutes=5))
    assert again.id == "t-1"
    assert again.state == TaskState.RUNNING
    assert again.claimed_at == at(hours=5)

    store.finish_task("t-1")
    assert store.claim_due_tasks(at(hours=10), lease=timedelta(minutes=5)) == []
    assert store.list_tasks("drive-1")[0].state == TaskState.DONE
