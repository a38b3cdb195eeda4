from fastapi import APIRouter
from sqlmodel import SQLModel

from workout_planner.routers.deps import RepoDep

router = APIRouter()


class SetRead(SQLModel):
    id: int
    day_id: int
    exercise_id: int
    exercise_order: int
    set_order: int
    reps: int | None
    weight: float | None
    rir: int | None
    notes: str


class SetCreate(SQLModel):
    day_id: int
    exercise_id: int
    exercise_order: int | None = None
    set_order: int | None = None
    reps: int | None = None
    weight: float | None = None
    rir: int | None = None
    notes: str = ""


class SetUpdate(SQLModel):
    exercise_order: int | None = None
    set_order: int | None = None
    reps: int | None = None
    weight: float | None = None
    rir: int | None = None
    notes: str | None = None


@router.get("/", response_model=list[SetRead])
def list_sets(repo: RepoDep, day_id: int | None = None, exercise_id: int | None = None):
    if day_id is not None and exercise_id is not None:
        return repo.get_sets_by_day_and_exercise(day_id, exercise_id)
    if day_id is not None:
        return repo.get_sets_by_day(day_id)
    sets = repo.list_workout_sets()
    if exercise_id is not None:
        sets = [s for s in sets if s.exercise_id == exercise_id]
    return sets


@router.post("/", response_model=SetRead, status_code=201)
def create_set(body: SetCreate, repo: RepoDep):
    workout_set = repo.create_workout_set(**body.model_dump())
    repo.persist()
    return workout_set


@router.get("/{id}", response_model=SetRead)
def get_set(id: int, repo: RepoDep):
    return repo.get_workout_set(id)


@router.patch("/{id}", response_model=SetRead)
def update_set(id: int, body: SetUpdate, repo: RepoDep):
    # Only fields present in the request change; an explicit null clears a metric.
    workout_set = repo.update_workout_set(id, body.model_dump(exclude_unset=True))
    repo.persist()
    return workout_set


@router.delete("/{id}", status_code=204)
def delete_set(id: int, repo: RepoDep):
    """Delete a set and renumber the ones left behind."""
    repo.delete_workout_set(id)
    repo.persist()
