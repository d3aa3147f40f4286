"""Coordination around the engines: persistence, deferred tasks, notifications."""

from .coordinator import DriveCoordinator
from .notifications import NotificationGateway, build_gateway
from .tasks import TaskRunner

__all__ = ["DriveCoordinator", "NotificationGateway", "TaskRunner", "build_gateway"]
