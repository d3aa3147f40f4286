"""Request-scoped access to the objects built in ``create_app``."""

from fastapi import Request

from ..services import DriveCoordinator


def get_coordinator(request: Request) -> DriveCoordinator:
    return request.app.state.coordinator
