from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_service
from ..schemas import HealthOut
from ..service import PomodoroService

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("/health", response_model=HealthOut)
def health(service: PomodoroService = Depends(get_service)) -> HealthOut:
    state = service.state()
    return HealthOut(timer_running=state.is_running, mode=state.mode.value)
