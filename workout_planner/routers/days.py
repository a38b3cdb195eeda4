from fastapi import APIRouter
from sqlmodel import SQLModel

from workout_planner.routers.deps import RepoDep

router = APIRouter()


class DayRead(SQLModel):
    id: int
    day_name: str
    day_order: int
    notes: str


class DayCreate(SQLModel):
    day_name: str
    notes: str = ""
    after_day_id: int | None = None


class DayUpdate(SQLModel):
    day_name: str | None = None
    notes: str | None = None


class DayWorkoutGroupRead(SQLModel):
    id: int
    day_id: int
    workout_group_id: int


class DayWorkoutGroupsReplace(SQLModel):
    workout_group_ids: list[int]


class DaySetRead(SQLModel):
    id: int
    set_order: int
    reps: int | None
    weight: float | None
    rir: int | None
    notes: str


class DayExerciseRead(SQLModel):
    exercise_id: int
    exercise_name: str
    workout_group_id: int
    workout_group_name: str
    exercise_order: int
    sets: list[DaySetRead]


# ---------------------------------------------------------------------------
# Days
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[DayRead])
def list_days(repo: RepoDep):
    return repo.list_days()


@router.post("/", response_model=DayRead, status_code=201)
def create_day(body: DayCreate, repo: RepoDep):
    """Append a day, or insert it right after ``after_day_id``."""
    if body.after_day_id is None:
        day = repo.add_day(body.day_name, notes=body.notes)
    else:
        day = repo.insert_day_after(body.day_name, body.after_day_id, notes=body.notes)
    repo.persist()
    return day


@router.delete("/last", status_code=204)
def remove_last_day(repo: RepoDep):
    repo.remove_last_day()
    repo.persist()


@router.get("/{id}", response_model=DayRead)
def get_day(id: int, repo: RepoDep):
    return repo.get_day(id)


@router.patch("/{id}", response_model=DayRead)
def update_day(id: int, body: DayUpdate, repo: RepoDep):
    day = repo.get_day(id)
    if body.day_name is not None:
        day = repo.rename_day(id, body.day_name)
    if body.notes is not None:
        day = repo.update_day_notes(id, body.notes)
    repo.persist()
    return day


@router.delete("/{id}", status_code=204)
def delete_day(id: int, repo: RepoDep):
    repo.delete_day(id)
    repo.persist()


@router.post("/{id}/duplicate", response_model=DayRead, status_code=201)
def duplicate_day(id: int, repo: RepoDep):
    day = repo.duplicate_day(id)
    repo.persist()
    return day


# ---------------------------------------------------------------------------
# Workout groups assigned to a day
# ---------------------------------------------------------------------------


@router.get("/{id}/workout-groups", response_model=list[DayWorkoutGroupRead])
def list_day_workout_groups(id: int, repo: RepoDep):
    repo.get_day(id)
    return repo.get_day_workout_groups(id)


@router.put("/{id}/workout-groups", response_model=list[DayWorkoutGroupRead])
def replace_day_workout_groups(id: int, body: DayWorkoutGroupsReplace, repo: RepoDep):
    links = repo.set_day_workout_groups(id, body.workout_group_ids)
    repo.persist()
    return links


@router.post(
    "/{id}/workout-groups/{workout_group_id}",
    response_model=DayWorkoutGroupRead,
    status_code=201,
)
def add_day_workout_group(id: int, workout_group_id: int, repo: RepoDep):
    link = repo.add_day_workout_group(id, workout_group_id)
    repo.persist()
    return link


@router.delete("/{id}/workout-groups/{workout_group_id}", status_code=204)
def remove_day_workout_group(id: int, workout_group_id: int, repo: RepoDep):
    repo.remove_day_workout_group(id, workout_group_id)
    repo.persist()


# ---------------------------------------------------------------------------
# Sets of a day
# ---------------------------------------------------------------------------


@router.get("/{id}/sets", response_model=list[DayExerciseRead])
def get_day_sets(id: int, repo: RepoDep):
    """Sets of the day grouped by exercise, in exercise_order."""
    repo.get_day(id)
    return [
        DayExerciseRead(
            exercise_id=entry.exercise.id,
            exercise_name=entry.exercise.name,
            workout_group_id=entry.workout_group.id,
            workout_group_name=entry.workout_group.name,
            exercise_order=entry.exercise_order,
            sets=[
                DaySetRead(
                    id=s.id,
                    set_order=s.set_order,
                    reps=s.reps,
                    weight=s.weight,
                    rir=s.rir,
                    notes=s.notes,
                )
                for s in entry.sets
            ],
        )
        for entry in repo.get_sets_by_day_grouped(id)
    ]


@router.delete("/{id}/sets", status_code=204)
def clear_day_sets(id: int, repo: RepoDep):
    repo.get_day(id)
    repo.delete_sets_by_day(id)
    repo.persist()


@router.delete("/{id}/exercises/{exercise_id}", status_code=204)
def remove_exercise_from_day(id: int, exercise_id: int, repo: RepoDep):
    repo.get_day(id)
    repo.delete_exercise_from_day(id, exercise_id)
    repo.persist()
