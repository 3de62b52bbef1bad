from __future__ import annotations

import platform

from fastapi import APIRouter, Depends, Request

from ... import __version__
from ..deps import get_service
from ..schemas import MetaOut
from ..service import PomodoroService

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("/meta", response_model=MetaOut)
def meta(request: Request, service: PomodoroService = Depends(get_service)) -> MetaOut:
    settings_path = service.settings_path
    return MetaOut(
        app="pomotrack",
        version=__version__,
        db_path=str(request.app.state.db_path),
        settings_path=str(settings_path) if settings_path is not None else None,
        persist_errors=service.persist_errors,
        platform=platform.platform(),
    )
