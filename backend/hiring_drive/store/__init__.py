"""Drive persistence."""

from .base import DriveStore, dump_drive, load_drive
from .memory import InMemoryDriveStore
from .sql import SqlDriveStore


def build_store(database_url: str) -> DriveStore:
    """SQL store for a configured DATABASE_URL, in-memory otherwise."""
    if database_url:
        return SqlDriveStore.from_url(database_url)
    return InMemoryDriveStore()


__all__ = [
    "DriveStore",
    "InMemoryDriveStore",
    "SqlDriveStore",
    "build_store",
    "dump_drive",
    "load_drive",
]
