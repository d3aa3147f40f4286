"""Error taxonomy shared by the stores, the coordinator and the API."""

from __future__ import annotations


class DriveError(Exception):
    """Base class for hiring drive errors."""


class NotFoundError(DriveError):
    """A drive or event id does not exist. Never retried."""


class DriveNotFoundError(NotFoundError):
    def __init__(self, drive_id: str) -> None:
        super().__init__(f"hiring drive {drive_id!r} not found")
        self.drive_id = drive_id


class EventNotFoundError(NotFoundError):
    def __init__(self, drive_id: str, event_id: str) -> None:
        super().__init__(f"event {event_id!r} not found in drive {drive_id!r}")
        self.drive_id = drive_id
        self.event_id = event_id


class VersionConflictError(DriveError):
    """The stored drive moved on since it was read."""

    def __init__(self, drive_id: str, expected_version: int) -> None:
        super().__init__(
            f"drive {drive_id!r} is no longer at version {expected_version}"
        )
        self.drive_id = drive_id
        self.expected_version = expected_version


class RetriesExhaustedError(DriveError):
    """Every save attempt lost a version race; the caller may retry."""

    def __init__(self, drive_id: str, attempts: int) -> None:
        super().__init__(
            f"gave up saving drive {drive_id!r} after {attempts} attempts"
        )
        self.drive_id = drive_id
        self.attempts = attempts


class InvalidTransitionError(DriveError):
    """An update would move an event or participant backwards."""
