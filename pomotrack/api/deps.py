from __future__ import annotations

from fastapi import HTTPException, Request

from ..errors import (
    InvalidSettingsError,
    InvalidTaskError,
    NoActiveSessionError,
    PomodoroError,
    TaskCompletedError,
    TaskNotFoundError,
)
from .service import PomodoroService


def get_service(request: Request) -> PomodoroService:
    return request.app.state.service


def to_http_error(exc: PomodoroError) -> HTTPException:
    if isinstance(exc, TaskNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, NoActiveSessionError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (TaskCompletedError, InvalidTaskError, InvalidSettingsError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
