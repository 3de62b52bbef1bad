from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ...errors import PomodoroError
from ..deps import get_service, to_http_error
from ..schemas import TaskCreateRequest, TaskOut, TaskPomodoroStatsOut, TaskSummaryOut
from ..service import PomodoroService

router = APIRouter(prefix="/api/v1", tags=["tasks"])


@router.get("/tasks", response_model=list[TaskOut])
def list_tasks(
    is_completed: bool | None = None,
    service: PomodoroService = Depends(get_service),
) -> list[TaskOut]:
    with service.lock:
        items = service.tasks.filter_tasks(is_completed=is_completed)
    return [TaskOut.build(item) for item in items]


@router.post("/tasks", response_model=TaskOut)
def create_task(payload: TaskCreateRequest, service: PomodoroService = Depends(get_service)) -> TaskOut:
    with service.lock:
        try:
            task = service.tasks.create_task(
                payload.title,
                estimated_pomodoros=payload.estimated_pomodoros,
                description=payload.description,
            )
        except PomodoroError as exc:
            raise to_http_error(exc) from exc
    return TaskOut.build(task)


@router.get("/tasks/summary", response_model=list[TaskSummaryOut])
def tasks_summary(service: PomodoroService = Depends(get_service)) -> list[TaskSummaryOut]:
    with service.lock:
        items = service.coordinator.get_all_tasks_pomodoro_summary()
    return [TaskSummaryOut.build(item) for item in items]


@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: str, service: PomodoroService = Depends(get_service)) -> TaskOut:
    with service.lock:
        task = service.tasks.get_by_id(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task with id {task_id} not found")
    return TaskOut.build(task)


@router.post("/tasks/{task_id}/complete", response_model=TaskOut)
def complete_task(task_id: str, service: PomodoroService = Depends(get_service)) -> TaskOut:
    with service.lock:
        try:
            task = service.tasks.mark_task_as_completed(task_id)
        except PomodoroError as exc:
            raise to_http_error(exc) from exc
    return TaskOut.build(task)


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, service: PomodoroService = Depends(get_service)) -> dict[str, bool]:
    with service.lock:
        ok = service.tasks.delete_task(task_id)
    if not ok:
        raise HTTPException(status_code=404, detail=f"Task with id {task_id} not found")
    return {"ok": True}


@router.get("/tasks/{task_id}/stats", response_model=TaskPomodoroStatsOut)
def task_stats(task_id: str, service: PomodoroService = Depends(get_service)) -> TaskPomodoroStatsOut:
    with service.lock:
        try:
            stats = service.coordinator.get_task_pomodoro_stats(task_id)
        except PomodoroError as exc:
            raise to_http_error(exc) from exc
    return TaskPomodoroStatsOut.build(stats)
