import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

import workout_planner.models as _models  # noqa: F401  (registers tables with SQLModel metadata)
from workout_planner.config import get_settings
from workout_planner.database import create_db_and_tables
from workout_planner.errors import ProgramError
from workout_planner.routers import data, days, exercises, sets, summary, workout_groups
from workout_planner.routers.deps import program_error_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    create_db_and_tables()
    logger.info("Database ready at %s", get_settings().database_url)
    yield


app = FastAPI(title="Workout Planner", lifespan=lifespan)
app.add_exception_handler(ProgramError, program_error_handler)

app.include_router(workout_groups.router, prefix="/api/workout-groups", tags=["workout-groups"])
app.include_router(exercises.router, prefix="/api/exercises", tags=["exercises"])
app.include_router(days.router, prefix="/api/days", tags=["days"])
app.include_router(sets.router, prefix="/api/sets", tags=["sets"])
app.include_router(data.router, prefix="/api/data", tags=["data"])
app.include_router(summary.router, prefix="/api/summary", tags=["summary"])

# Serve frontend static files when a bundle is present
_frontend = Path(get_settings().frontend_dir)
if _frontend.is_dir():
    app.mount("/static", StaticFiles(directory=_frontend, html=True), name="static")

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_spa(full_path: str):
        return FileResponse(_frontend / "index.html")
