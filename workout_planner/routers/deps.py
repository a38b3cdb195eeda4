from typing import Annotated

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from workout_planner.database import get_session
from workout_planner.errors import ProgramError
from workout_planner.services.repository import ProgramRepository

SessionDep = Annotated[Session, Depends(get_session)]


def get_repository(session: SessionDep) -> ProgramRepository:
    return ProgramRepository(session)


RepoDep = Annotated[ProgramRepository, Depends(get_repository)]


async def program_error_handler(request: Request, exc: ProgramError) -> JSONResponse:
    body = {"detail": exc.message, "kind": exc.kind.value}
    if exc.field is not None:
        body["field"] = exc.field
    return JSONResponse(status_code=exc.kind.http_status, content=body)
