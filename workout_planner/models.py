from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

# AUTOINCREMENT keeps a per-table sequence in sqlite_sequence, which clear_all() resets.
_AUTOINCREMENT = {"sqlite_autoincrement": True}


class WorkoutGroup(SQLModel, table=True):
    __tablename__ = "workout_groups"
    __table_args__ = _AUTOINCREMENT

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    notes: str = ""


class Exercise(SQLModel, table=True):
    __tablename__ = "exercises"
    __table_args__ = _AUTOINCREMENT

    id: int | None = Field(default=None, primary_key=True)
    workout_group_id: int = Field(foreign_key="workout_groups.id", index=True)
    name: str
    notes: str = ""


class Day(SQLModel, table=True):
    __tablename__ = "days"
    __table_args__ = _AUTOINCREMENT

    id: int | None = Field(default=None, primary_key=True)
    day_name: str
    day_order: int = Field(index=True)  # dense 1..N, checked by invariants
    notes: str = ""


class DayWorkoutGroup(SQLModel, table=True):
    __tablename__ = "day_workout_groups"
    __table_args__ = (UniqueConstraint("day_id", "workout_group_id"), _AUTOINCREMENT)

    id: int | None = Field(default=None, primary_key=True)
    day_id: int = Field(foreign_key="days.id", index=True)
    workout_group_id: int = Field(foreign_key="workout_groups.id")


class WorkoutSet(SQLModel, table=True):
    __tablename__ = "workout_sets"
    __table_args__ = _AUTOINCREMENT

    id: int | None = Field(default=None, primary_key=True)
    day_id: int = Field(foreign_key="days.id", index=True)
    exercise_id: int = Field(foreign_key="exercises.id", index=True)
    exercise_order: int
    set_order: int
    reps: int | None = None
    weight: float | None = None
    rir: int | None = None  # reps in reserve
    notes: str = ""
