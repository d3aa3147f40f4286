"""Hiring drive endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status

from ..domain import schemas
from ..services import DriveCoordinator
from .deps import get_coordinator

router = APIRouter(prefix="/hiring-drives", tags=["hiring-drives"])


def _out(drive) -> schemas.Drive:
    return schemas.Drive.model_validate(drive, from_attributes=True)


@router.post("", response_model=schemas.Drive, status_code=status.HTTP_201_CREATED)
def create_drive(
    body: schemas.CreateDriveRequest,
    coordinator: DriveCoordinator = Depends(get_coordinator),
) -> schemas.Drive:
    """Create a drive and pre-schedule the first round."""
    return _out(coordinator.create_drive(body))


@router.get("", response_model=List[schemas.Drive])
def list_drives(
    coordinator: DriveCoordinator = Depends(get_coordinator),
) -> List[schemas.Drive]:
    return [_out(d) for d in coordinator.list_drives()]


@router.get("/{drive_id}", response_model=schemas.Drive)
def get_drive(
    drive_id: str, coordinator: DriveCoordinator = Depends(get_coordinator)
) -> schemas.Drive:
    return _out(coordinator.get_drive(drive_id))


@router.post("/{drive_id}/schedule", response_model=schemas.ScheduleResult)
def trigger_scheduling(
    drive_id: str, coordinator: DriveCoordinator = Depends(get_coordinator)
) -> schemas.ScheduleResult:
    """Refresh statuses and run one scheduling pass."""
    return schemas.ScheduleResult(
        new_event_count=coordinator.trigger_scheduling(drive_id)
    )


@router.patch("/{drive_id}/events", response_model=schemas.Drive)
def update_event(
    drive_id: str,
    body: schemas.EventOutcomeRequest,
    coordinator: DriveCoordinator = Depends(get_coordinator),
) -> schemas.Drive:
    """Record interviewer feedback or progress for one event."""
    return _out(coordinator.record_event_outcome(drive_id, body))


@router.post("/{drive_id}/notifications", response_model=schemas.Drive)
def notification_response(
    drive_id: str,
    body: schemas.NotificationResponseRequest,
    coordinator: DriveCoordinator = Depends(get_coordinator),
) -> schemas.Drive:
    """Participant reply to a scheduled/start/completed notification."""
    return _out(coordinator.respond_to_notification(drive_id, body))


@router.get("/{drive_id}/stats", response_model=schemas.DriveStats)
def get_stats(
    drive_id: str, coordinator: DriveCoordinator = Depends(get_coordinator)
) -> schemas.DriveStats:
    return coordinator.get_stats(drive_id)
