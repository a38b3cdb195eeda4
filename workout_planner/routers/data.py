import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from sqlmodel import SQLModel

from workout_planner.routers.deps import RepoDep
from workout_planner.seed import seed_sample_program
from workout_planner.services.csv_codec import (
    decode_document,
    describe_format,
    detect_format,
    export_document,
    export_filename,
    import_document,
)
from workout_planner.services.pretty_print import export_pretty_print

logger = logging.getLogger(__name__)

router = APIRouter()


class ImportRead(SQLModel):
    ok: bool
    counts: dict[str, int]
    kind: str | None = None
    message: str | None = None
    warnings: list[str] = []


class DetectRead(SQLModel):
    format: str
    message: str


class SeedRead(SQLModel):
    seeded: bool


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _read_text(request: Request) -> str:
    return decode_document(await request.body())


DocumentDep = Annotated[str, Depends(_read_text)]


@router.get("/export")
def export_complete(repo: RepoDep):
    return _csv_response(export_document(repo), export_filename("complete"))


@router.get("/export/pretty")
def export_program(repo: RepoDep):
    return _csv_response(export_pretty_print(repo), export_filename("program"))


@router.post("/import", response_model=ImportRead)
def import_csv(text: DocumentDep, repo: RepoDep):
    """Replace the whole program with the CSV document sent as the request body."""
    result = import_document(repo, text)
    body = ImportRead(
        ok=result.ok,
        counts=result.counts,
        kind=result.kind.value if result.kind else None,
        message=result.message,
        warnings=result.warnings,
    )
    if not result.ok:
        return JSONResponse(status_code=result.kind.http_status, content=body.model_dump())
    return body


@router.post("/detect", response_model=DetectRead)
def detect_csv(text: DocumentDep):
    csv_format = detect_format(text)
    return DetectRead(format=csv_format.value, message=describe_format(csv_format))


@router.post("/clear", status_code=204)
def clear_all(repo: RepoDep):
    repo.clear_all()
    repo.persist()


@router.post("/clear-program", status_code=204)
def clear_program(repo: RepoDep):
    """Remove days and sets; workout groups and exercises stay."""
    repo.clear_program_data()
    repo.persist()


@router.post("/seed", response_model=SeedRead)
def seed(repo: RepoDep):
    seeded = seed_sample_program(repo)
    if seeded:
        logger.info("Seeded the sample program")
    return SeedRead(seeded=seeded)
