from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI

from .. import __version__
from ..db import default_db_path
from ..settings import default_settings_path
from .routes.health import router as health_router
from .routes.meta import router as meta_router
from .routes.pomodoro import router as pomodoro_router
from .routes.sessions import router as sessions_router
from .routes.tasks import router as tasks_router
from .routes.timer import router as timer_router
from .service import PomodoroService


def create_app(
    db_path: Path | None = None,
    settings_path: Path | None = None,
    service: PomodoroService | None = None,
) -> FastAPI:
    resolved_db = Path(db_path or default_db_path())
    if service is None:
        service = PomodoroService.from_paths(
            resolved_db,
            settings_path=Path(settings_path or default_settings_path()),
        )

    app = FastAPI(title="pomotrack API", version=__version__)
    app.state.db_path = str(resolved_db)
    app.state.service = service

    app.include_router(health_router)
    app.include_router(meta_router)
    app.include_router(timer_router)
    app.include_router(sessions_router)
    app.include_router(tasks_router)
    app.include_router(pomodoro_router)
    return app
