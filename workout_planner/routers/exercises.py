from fastapi import APIRouter
from sqlmodel import SQLModel

from workout_planner.routers.deps import RepoDep

router = APIRouter()


class ExerciseRead(SQLModel):
    id: int
    workout_group_id: int
    name: str
    notes: str


class ExerciseCreate(SQLModel):
    workout_group_id: int
    name: str
    notes: str = ""


class ExerciseUpdate(SQLModel):
    workout_group_id: int | None = None
    name: str | None = None
    notes: str | None = None


@router.get("/", response_model=list[ExerciseRead])
def list_exercises(repo: RepoDep, workout_group_id: int | None = None):
    return repo.list_exercises(workout_group_id=workout_group_id)


@router.post("/", response_model=ExerciseRead, status_code=201)
def create_exercise(body: ExerciseCreate, repo: RepoDep):
    exercise = repo.create_exercise(body.workout_group_id, body.name, body.notes)
    repo.persist()
    return exercise


@router.get("/{id}", response_model=ExerciseRead)
def get_exercise(id: int, repo: RepoDep):
    return repo.get_exercise(id)


@router.patch("/{id}", response_model=ExerciseRead)
def update_exercise(id: int, body: ExerciseUpdate, repo: RepoDep):
    current = repo.get_exercise(id)
    exercise = repo.update_exercise(
        id,
        body.workout_group_id if body.workout_group_id is not None else current.workout_group_id,
        body.name if body.name is not None else current.name,
        body.notes if body.notes is not None else current.notes,
    )
    repo.persist()
    return exercise


@router.delete("/{id}", status_code=204)
def delete_exercise(id: int, repo: RepoDep):
    repo.delete_exercise(id)
    repo.persist()
