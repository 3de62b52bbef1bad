from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ...errors import PomodoroError
from ..deps import get_service, to_http_error
from ..schemas import (
    CancelOut,
    CurrentSessionOut,
    PomodoroCompleteOut,
    PomodoroCompleteRequest,
    PomodoroStartRequest,
    SessionOut,
    SwitchTaskRequest,
)
from ..service import PomodoroService

router = APIRouter(prefix="/api/v1", tags=["pomodoro"])


@router.get("/pomodoro/current", response_model=CurrentSessionOut | None)
def current_session(service: PomodoroService = Depends(get_service)) -> CurrentSessionOut | None:
    with service.lock:
        current = service.coordinator.get_current_session()
    if current is None:
        return None
    return CurrentSessionOut(session_id=current.session_id, task_id=current.task_id)


@router.post("/pomodoro/start", response_model=CurrentSessionOut)
def start_session(
    payload: PomodoroStartRequest,
    service: PomodoroService = Depends(get_service),
) -> CurrentSessionOut:
    with service.lock:
        try:
            session_id = service.coordinator.start_pomodoro_session(payload.mode, payload.task_id)
        except PomodoroError as exc:
            raise to_http_error(exc) from exc
    return CurrentSessionOut(session_id=session_id, task_id=payload.task_id or None)


@router.post("/pomodoro/complete", response_model=PomodoroCompleteOut)
def complete_session(
    payload: PomodoroCompleteRequest | None = None,
    service: PomodoroService = Depends(get_service),
) -> PomodoroCompleteOut:
    completed = payload.completed if payload is not None else True
    with service.lock:
        try:
            session = service.coordinator.complete_pomodoro_session(completed)
        except PomodoroError as exc:
            raise to_http_error(exc) from exc
    return PomodoroCompleteOut(session=SessionOut.build(session) if session else None)


@router.post("/pomodoro/cancel", response_model=CancelOut)
def cancel_session(service: PomodoroService = Depends(get_service)) -> CancelOut:
    with service.lock:
        cancelled = service.coordinator.cancel_pomodoro_session()
    return CancelOut(cancelled=cancelled)


@router.post("/pomodoro/switch-task", response_model=CurrentSessionOut)
def switch_task(payload: SwitchTaskRequest, service: PomodoroService = Depends(get_service)) -> CurrentSessionOut:
    with service.lock:
        try:
            service.coordinator.switch_session_task(payload.task_id)
        except PomodoroError as exc:
            raise to_http_error(exc) from exc
        service.workflow.task_id = payload.task_id or None
        current = service.coordinator.get_current_session()
    if current is None:
        raise HTTPException(status_code=409, detail="No active session to switch task for")
    return CurrentSessionOut(session_id=current.session_id, task_id=current.task_id)
