from fastapi import APIRouter
from sqlmodel import SQLModel

from workout_planner.routers.deps import RepoDep

router = APIRouter()


class WorkoutGroupRead(SQLModel):
    id: int
    name: str
    notes: str


class WorkoutGroupCreate(SQLModel):
    name: str
    notes: str = ""


class WorkoutGroupUpdate(SQLModel):
    name: str | None = None
    notes: str | None = None


class ExerciseRead(SQLModel):
    id: int
    workout_group_id: int
    name: str
    notes: str


@router.get("/", response_model=list[WorkoutGroupRead])
def list_workout_groups(repo: RepoDep):
    return repo.list_workout_groups()


@router.post("/", response_model=WorkoutGroupRead, status_code=201)
def create_workout_group(body: WorkoutGroupCreate, repo: RepoDep):
    group = repo.create_workout_group(body.name, body.notes)
    repo.persist()
    return group


@router.get("/{id}", response_model=WorkoutGroupRead)
def get_workout_group(id: int, repo: RepoDep):
    return repo.get_workout_group(id)


@router.patch("/{id}", response_model=WorkoutGroupRead)
def update_workout_group(id: int, body: WorkoutGroupUpdate, repo: RepoDep):
    current = repo.get_workout_group(id)
    group = repo.update_workout_group(
        id,
        body.name if body.name is not None else current.name,
        body.notes if body.notes is not None else current.notes,
    )
    repo.persist()
    return group


@router.delete("/{id}", status_code=204)
def delete_workout_group(id: int, repo: RepoDep):
    """Delete the group together with its exercises, their sets and its day links."""
    repo.delete_workout_group(id)
    repo.persist()


@router.get("/{id}/exercises", response_model=list[ExerciseRead])
def list_group_exercises(id: int, repo: RepoDep):
    repo.get_workout_group(id)
    return repo.list_exercises(workout_group_id=id)
