"""Mapping of drive errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import (
    DriveError,
    InvalidTransitionError,
    NotFoundError,
    RetriesExhaustedError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = [
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (RetriesExhaustedError, 503),
]


async def drive_error_handler(request: Request, exc: DriveError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 500
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    headers = {"Retry-After": "1"} if status_code == 503 else None
    return JSONResponse(
        status_code=status_code, content={"error": str(exc)}, headers=headers
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DriveError, drive_error_handler)
