"""End-to-end tests for the hiring drive endpoints."""

import pytest
from fastapi.encoders import jsonable_encoder
from fastapi.testclient import TestClient

from factories import Clock, SequentialIds, at, drive_body, recording_gateway
from hiring_drive.core.config import Settings
from hiring_drive.core import timeutil
from hiring_drive.core.errors import VersionConflictError
from hiring_drive.main import create_app
from hiring_drive.services.coordinator import DriveCoordinator
from hiring_drive.store import InMemoryDriveStore


class AlwaysStaleStore(InMemoryDriveStore):
    def save(self, drive) -> None:
        raise VersionConflictError(drive.id, drive.version)


def build_client(store=None):
    store = store or InMemoryDriveStore()
    gateway = recording_gateway()
    clock = Clock()
    coordinator = DriveCoordinator(
        store, gateway, clock=clock, id_factory=SequentialIds(), sleep=lambda _: None
    )
    app = create_app(
        Settings(TASK_RUNNER_ENABLED=False),
        store=store,
        gateway=gateway,
        coordinator=coordinator,
    )
    client = TestClient(app)
    client.clock = clock
    client.channel = gateway.channel
    return client


@pytest.fixture
def client():
    return build_client()


def create(client, **overrides):
    response = client.post("/hiring-drives", json=jsonable_encoder(drive_body(**overrides)))
    assert response.status_code == 201, response.text
    return response.json()


def event_of(drive, email):
    return next(e for e in drive["events"] if e["candidate_email"] == email)


def test_create_drive(client):
    drive = create(client)

    assert drive["id"] == "id-1"
    assert drive["version"] == 1
    assert len(drive["events"]) == 2
    carol = event_of(drive, "carol@example.com")
    assert carol["round"]["name"] == "BPS"
    assert carol["status"] == "SCHEDULED"
    assert carol["decision"] == "PENDING"
    assert carol["meeting_link"] == f"https://zoom.us/j/{carol['id']}"
    assert carol["scorecard_link"].endswith("/carol@example.com/ivan@example.com/BPS")
    assert {c["current_status"] for c in drive["candidates"]} == {"WAITING"}
    assert client.channel.kinds() == ["scheduled"] * 4


def test_get_and_list(client):
    first = create(client, name="Morning")
    client.clock.advance(minutes=5)
    second = create(client, name="Evening")

    listed = client.get("/hiring-drives").json()
    assert [d["id"] for d in listed] == [second["id"], first["id"]]

    response = client.get(f"/hiring-drives/{first['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Morning"


def test_unknown_drive_is_404(client):
    for response in (
        client.get("/hiring-drives/missing"),
        client.get("/hiring-drives/missing/stats"),
        client.post("/hiring-drives/missing/schedule"),
    ):
        assert response.status_code == 404
        assert "missing" in response.json()["error"]


def test_trigger_is_idempotent(client):
    drive = create(client)

    response = client.post(f"/hiring-drives/{drive['id']}/schedule")

    assert response.status_code == 200
    assert response.json() == {"new_event_count": 0}


def test_event_feedback_books_next_round(client):
    drive = create(client)
    event_id = event_of(drive, "carol@example.com")["id"]
    client.clock.now = at(minutes=45)

    response = client.patch(
        f"/hiring-drives/{drive['id']}/events",
        json={
            "event_id": event_id,
            "status": "COMPLETED",
            "decision": "YES",
            "question": "Merge intervals",
            "ready_for_next": True,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["version"] == 2
    rounds = [e["round"]["name"] for e in body["events"] if e["candidate_email"] == "carol@example.com"]
    assert rounds == ["BPS", "CODING1"]

    stats = client.get(f"/hiring-drives/{drive['id']}/stats").json()
    assert stats == {
        "total_candidates": 2,
        "total_interviewers": 3,
        "ongoing_interviews": 0,
        "candidates_pending_decision": 2,
        "percent_completed": 0.0,
        "percent_selected": 0.0,
    }


def test_backward_transition_is_409(client):
    drive = create(client)
    event_id = event_of(drive, "carol@example.com")["id"]
    url = f"/hiring-drives/{drive['id']}/events"
    client.patch(url, json={"event_id": event_id, "status": "COMPLETED", "decision": "NO"})

    response = client.patch(url, json={"event_id": event_id, "status": "SCHEDULED"})

    assert response.status_code == 409


def test_unknown_event_is_404(client):
    drive = create(client)

    response = client.patch(
        f"/hiring-drives/{drive['id']}/events", json={"event_id": "nope", "decision": "YES"}
    )

    assert response.status_code == 404


@pytest.mark.parametrize(
    "overrides",
    [
        {"end_time": at(hours=-2)},
        {"rounds": []},
        {"rounds": [{"name": "BPS", "duration": 0}]},
        {"rounds": [{"name": "LUNCH", "duration": 30}]},
        {"candidates": [{"email": "not-an-email", "name": "X"}]},
        {
            "candidates": [
                {"email": "carol@example.com", "name": "Carol"},
                {"email": "carol@example.com", "name": "Carol again"},
            ]
        },
    ],
)
def test_malformed_drive_is_422(client, overrides):
    response = client.post("/hiring-drives", json=jsonable_encoder(drive_body(**overrides)))

    assert response.status_code == 422
    assert client.get("/hiring-drives").json() == []


def test_interviewer_slot_must_be_ordered(client):
    body = drive_body()
    body["interviewers"][0]["slot_end"] = at(hours=-1)

    response = client.post("/hiring-drives", json=jsonable_encoder(body))

    assert response.status_code == 422


def test_naive_times_use_configured_zone(client, monkeypatch):
    monkeypatch.setattr(timeutil.settings, "TZ", "Asia/Kolkata")
    body = jsonable_encoder(drive_body())
    # 14:30 in Asia/Kolkata is 09:00 UTC
    body["interviewers"][0]["slot_start"] = "2025-03-03T14:30:00"

    response = client.post("/hiring-drives", json=body)

    assert response.status_code == 201
    ivan = response.json()["interviewers"][0]
    assert ivan["slot_start"].startswith("2025-03-03T09:00:00")


def test_notification_reply(client):
    drive = create(client)
    event_id = event_of(drive, "carol@example.com")["id"]
    url = f"/hiring-drives/{drive['id']}/notifications"

    response = client.post(
        url,
        json={
            "source": "interviewer",
            "email": "ivan@example.com",
            "event_id": event_id,
            "notification_type": "start_notif",
            "data": {"is_started": True},
        },
    )

    assert response.status_code == 200
    assert event_of(response.json(), "carol@example.com")["status"] == "ONGOING"
    assert client.channel.kinds()[-1] == "start"


def test_notification_data_must_match_type(client):
    drive = create(client)
    event_id = event_of(drive, "carol@example.com")["id"]

    response = client.post(
        f"/hiring-drives/{drive['id']}/notifications",
        json={
            "source": "interviewer",
            "email": "ivan@example.com",
            "event_id": event_id,
            "notification_type": "scheduled_notif",
            "data": {"is_started": True},
        },
    )

    assert response.status_code == 422


def test_lost_races_are_503():
    client = build_client(AlwaysStaleStore())
    drive = create(client)

    response = client.post(f"/hiring-drives/{drive['id']}/schedule")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert "3 attempts" in response.json()["error"]
