from __future__ import annotations

import json
import queue
from typing import Iterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...errors import PomodoroError
from ..deps import get_service, to_http_error
from ..schemas import ModeRequest, SettingsModel, TimerStartRequest, TimerStateOut
from ..service import PomodoroService

router = APIRouter(prefix="/api/v1", tags=["timer"])


def _state_out(service: PomodoroService) -> TimerStateOut:
    current = service.coordinator.get_current_session()
    return TimerStateOut.build(
        service.engine.get_state(),
        session_id=current.session_id if current else None,
        task_id=current.task_id if current else service.workflow.task_id,
    )


@router.get("/timer/state", response_model=TimerStateOut)
def timer_state(service: PomodoroService = Depends(get_service)) -> TimerStateOut:
    with service.lock:
        return _state_out(service)


@router.post("/timer/start", response_model=TimerStateOut)
def start_timer(
    payload: TimerStartRequest | None = None,
    service: PomodoroService = Depends(get_service),
) -> TimerStateOut:
    task_id = payload.task_id if payload is not None else None
    with service.lock:
        try:
            service.workflow.start(task_id)
        except PomodoroError as exc:
            raise to_http_error(exc) from exc
        return _state_out(service)


@router.post("/timer/pause", response_model=TimerStateOut)
def pause_timer(service: PomodoroService = Depends(get_service)) -> TimerStateOut:
    with service.lock:
        service.workflow.pause()
        return _state_out(service)


@router.post("/timer/reset", response_model=TimerStateOut)
def reset_timer(service: PomodoroService = Depends(get_service)) -> TimerStateOut:
    with service.lock:
        service.workflow.reset()
        return _state_out(service)


@router.post("/timer/skip", response_model=TimerStateOut)
def skip_timer(service: PomodoroService = Depends(get_service)) -> TimerStateOut:
    with service.lock:
        service.workflow.skip()
        return _state_out(service)


@router.post("/timer/mode", response_model=TimerStateOut)
def switch_mode(payload: ModeRequest, service: PomodoroService = Depends(get_service)) -> TimerStateOut:
    with service.lock:
        service.workflow.switch_mode(payload.mode)
        return _state_out(service)


@router.get("/settings", response_model=SettingsModel)
def get_settings(service: PomodoroService = Depends(get_service)) -> SettingsModel:
    return SettingsModel.build(service.settings())


@router.put("/settings", response_model=SettingsModel)
def put_settings(payload: SettingsModel, service: PomodoroService = Depends(get_service)) -> SettingsModel:
    try:
        updated = service.update_settings(payload.to_settings())
    except PomodoroError as exc:
        raise to_http_error(exc) from exc
    return SettingsModel.build(updated)


@router.get("/timer/stream")
def timer_stream(service: PomodoroService = Depends(get_service)) -> StreamingResponse:
    subscriber = service.subscribe()

    def event_iter() -> Iterator[str]:
        try:
            while True:
                try:
                    event = subscriber.get(timeout=10)
                    yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
                except queue.Empty:
                    yield ": keepalive\n\n"
        finally:
            service.unsubscribe(subscriber)

    return StreamingResponse(event_iter(), media_type="text/event-stream")
