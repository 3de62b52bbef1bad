from __future__ import annotations

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_service
from ..schemas import ClearResult, SessionOut
from ..service import PomodoroService

router = APIRouter(prefix="/api/v1", tags=["sessions"])


@router.get("/sessions", response_model=list[SessionOut])
def list_sessions(
    day: date | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    task_id: str | None = None,
    completed_only: bool = False,
    service: PomodoroService = Depends(get_service),
) -> list[SessionOut]:
    ledger = service.ledger
    with service.lock:
        if day is not None:
            items = ledger.get_sessions_by_date(day)
        elif start is not None or end is not None:
            items = ledger.get_sessions_by_date_range(
                start or datetime.min.replace(tzinfo=timezone.utc),
                end or datetime.max.replace(tzinfo=timezone.utc),
            )
        elif task_id:
            items = ledger.get_sessions_by_task(task_id)
        else:
            items = ledger.get_all_sessions()

    if task_id:
        items = [item for item in items if item.task_id == task_id]
    if completed_only:
        items = [item for item in items if item.completed]
    return [SessionOut.build(item) for item in items]


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str, service: PomodoroService = Depends(get_service)) -> SessionOut:
    with service.lock:
        item = service.ledger.get_session(session_id)
    if item is not None:
        return SessionOut.build(item)
    raise HTTPException(status_code=404, detail="session not found")


@router.delete("/sessions/{session_id}")
def cancel_session(session_id: str, service: PomodoroService = Depends(get_service)) -> dict[str, bool]:
    with service.lock:
        ok = service.ledger.cancel_session(session_id)
    if not ok:
        raise HTTPException(status_code=404, detail="session not found")
    return {"ok": True}


@router.delete("/sessions", response_model=ClearResult)
def clear_sessions(before: datetime, service: PomodoroService = Depends(get_service)) -> ClearResult:
    with service.lock:
        removed = service.ledger.clear_sessions_before(before)
    return ClearResult(removed=removed)
