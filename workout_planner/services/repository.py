"""SQLModel-backed store for the workout program.

Mutators add and flush but never commit; callers make their changes durable
with ``persist()`` so that one request (or one import batch) commits once.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, func, select

from workout_planner.errors import ErrorKind, ProgramError, not_found
from workout_planner.models import Day, DayWorkoutGroup, Exercise, WorkoutGroup, WorkoutSet
from workout_planner.services.validation import check_set_metrics, positive, required

logger = logging.getLogger(__name__)

# Children before parents.
DELETE_ORDER: list[type[SQLModel]] = [WorkoutSet, DayWorkoutGroup, Exercise, Day, WorkoutGroup]

SET_FIELDS = ("exercise_order", "set_order", "reps", "weight", "rir", "notes")


@dataclass
class ExerciseSets:
    exercise: Exercise
    workout_group: WorkoutGroup
    exercise_order: int
    sets: list[WorkoutSet] = field(default_factory=list)


class ProgramRepository:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, model: type[SQLModel], id: int, label: str):
        row = self.session.get(model, id)
        if row is None:
            raise not_found(label)
        return row

    def _flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise ProgramError(ErrorKind.CONFLICT, f"Conflicting row: {exc.orig}") from exc

    def _delete_all(self, rows) -> None:
        for row in rows:
            self.session.delete(row)

    def _check_id_free(self, model: type[SQLModel], id: int | None, label: str) -> None:
        if id is not None and self.session.get(model, id) is not None:
            raise ProgramError(ErrorKind.CONFLICT, f"{label} with id {id} already exists")

    # ------------------------------------------------------------------
    # Workout groups
    # ------------------------------------------------------------------

    def list_workout_groups(self) -> list[WorkoutGroup]:
        return list(self.session.exec(select(WorkoutGroup).order_by(WorkoutGroup.name)).all())

    def get_workout_group(self, id: int) -> WorkoutGroup:
        return self._get(WorkoutGroup, id, "Workout group")

    def _ensure_group_name_free(self, name: str, exclude_id: int | None = None) -> None:
        for group in self.session.exec(select(WorkoutGroup)).all():
            if group.id != exclude_id and group.name.casefold() == name.casefold():
                raise ProgramError(
                    ErrorKind.CONFLICT, "A workout group with this name already exists", "name"
                )

    def create_workout_group(self, name: str, notes: str = "", id: int | None = None) -> WorkoutGroup:
        name = required(name, "name")
        self._ensure_group_name_free(name)
        self._check_id_free(WorkoutGroup, id, "Workout group")
        group = WorkoutGroup(id=id, name=name, notes=notes or "")
        self.session.add(group)
        self._flush()
        return group

    def update_workout_group(self, id: int, name: str, notes: str = "") -> WorkoutGroup:
        group = self.get_workout_group(id)
        name = required(name, "name")
        self._ensure_group_name_free(name, exclude_id=id)
        group.name = name
        group.notes = notes or ""
        self.session.add(group)
        self._flush()
        return group

    def delete_workout_group(self, id: int) -> None:
        """Delete a group together with its exercises, their sets and its day links."""
        group = self.get_workout_group(id)
        for exercise in self.list_exercises(workout_group_id=id):
            self._delete_exercise_rows(exercise)
        self._delete_all(
            self.session.exec(
                select(DayWorkoutGroup).where(DayWorkoutGroup.workout_group_id == id)
            ).all()
        )
        self.session.delete(group)
        self._flush()

    # ------------------------------------------------------------------
    # Exercises
    # ------------------------------------------------------------------

    def list_exercises(self, workout_group_id: int | None = None) -> list[Exercise]:
        statement = select(Exercise).order_by(Exercise.name)
        if workout_group_id is not None:
            statement = statement.where(Exercise.workout_group_id == workout_group_id)
        return list(self.session.exec(statement).all())

    def list_exercises_for_groups(self, workout_group_ids: list[int]) -> list[Exercise]:
        if not workout_group_ids:
            return []
        statement = (
            select(Exercise)
            .where(Exercise.workout_group_id.in_(workout_group_ids))
            .order_by(Exercise.name)
        )
        return list(self.session.exec(statement).all())

    def get_exercise(self, id: int) -> Exercise:
        return self._get(Exercise, id, "Exercise")

    def create_exercise(
        self, workout_group_id: int, name: str, notes: str = "", id: int | None = None
    ) -> Exercise:
        name = required(name, "name")
        self.get_workout_group(workout_group_id)
        self._check_id_free(Exercise, id, "Exercise")
        exercise = Exercise(id=id, workout_group_id=workout_group_id, name=name, notes=notes or "")
        self.session.add(exercise)
        self._flush()
        return exercise

    def update_exercise(
        self, id: int, workout_group_id: int, name: str, notes: str = ""
    ) -> Exercise:
        exercise = self.get_exercise(id)
        name = required(name, "name")
        self.get_workout_group(workout_group_id)
        exercise.workout_group_id = workout_group_id
        exercise.name = name
        exercise.notes = notes or ""
        self.session.add(exercise)
        self._flush()
        return exercise

    def _delete_exercise_rows(self, exercise: Exercise) -> None:
        sets = self.session.exec(select(WorkoutSet).where(WorkoutSet.exercise_id == exercise.id)).all()
        day_ids = {s.day_id for s in sets}
        self._delete_all(sets)
        self.session.delete(exercise)
        self._flush()
        for day_id in sorted(day_ids):
            self._compact_exercise_orders(day_id)

    def delete_exercise(self, id: int) -> None:
        self._delete_exercise_rows(self.get_exercise(id))

    # ------------------------------------------------------------------
    # Days
    # ------------------------------------------------------------------

    def list_days(self) -> list[Day]:
        return list(self.session.exec(select(Day).order_by(Day.day_order, Day.id)).all())

    def get_day(self, id: int) -> Day:
        return self._get(Day, id, "Day")

    def count_days(self) -> int:
        return self.session.exec(select(func.count()).select_from(Day)).one()

    def _max_day_order(self) -> int:
        return self.session.exec(select(func.max(Day.day_order))).one() or 0

    def _ensure_day_name_free(self, name: str, exclude_id: int | None = None) -> None:
        for day in self.session.exec(select(Day)).all():
            if day.id != exclude_id and day.day_name.casefold() == name.casefold():
                raise ProgramError(
                    ErrorKind.CONFLICT, "A day with this name already exists", "day_name"
                )

    def add_day(
        self,
        day_name: str,
        notes: str = "",
        id: int | None = None,
        day_order: int | None = None,
    ) -> Day:
        """Append a day, or place it at ``day_order`` when one is given."""
        day_name = required(day_name, "day_name")
        self._ensure_day_name_free(day_name)
        self._check_id_free(Day, id, "Day")
        if day_order is None:
            day_order = self._max_day_order() + 1
        day = Day(id=id, day_name=day_name, day_order=day_order, notes=notes or "")
        self.session.add(day)
        self._flush()
        return day

    def insert_day_after(self, day_name: str, after_day_id: int, notes: str = "") -> Day:
        after = self.get_day(after_day_id)
        day_name = required(day_name, "day_name")
        self._ensure_day_name_free(day_name)
        insert_order = after.day_order + 1
        for day in self.session.exec(select(Day).where(Day.day_order >= insert_order)).all():
            day.day_order += 1
            self.session.add(day)
        day = Day(day_name=day_name, day_order=insert_order, notes=notes or "")
        self.session.add(day)
        self._flush()
        return day

    def remove_last_day(self) -> None:
        days = self.list_days()
        if not days:
            raise ProgramError(ErrorKind.VALIDATION, "No days to remove")
        self.delete_day(days[-1].id)

    def delete_day(self, id: int) -> None:
        """Delete a day with its sets and links, then close the gap in day_order."""
        day = self.get_day(id)
        self._delete_all(self.session.exec(select(WorkoutSet).where(WorkoutSet.day_id == id)).all())
        self._delete_all(
            self.session.exec(select(DayWorkoutGroup).where(DayWorkoutGroup.day_id == id)).all()
        )
        self.session.delete(day)
        self._flush()
        self._compact_day_orders()

    def rename_day(self, id: int, day_name: str) -> Day:
        day = self.get_day(id)
        day_name = required(day_name, "day_name")
        self._ensure_day_name_free(day_name, exclude_id=id)
        day.day_name = day_name
        self.session.add(day)
        self._flush()
        return day

    def update_day_notes(self, id: int, notes: str) -> Day:
        day = self.get_day(id)
        day.notes = notes or ""
        self.session.add(day)
        self._flush()
        return day

    def duplicate_day(self, id: int) -> Day:
        """Copy a day with its links and sets to the end of the program."""
        source = self.get_day(id)
        taken = {d.day_name.casefold() for d in self.list_days()}
        new_name = f"{source.day_name} (Copy)"
        while new_name.casefold() in taken:
            new_name = f"{new_name} (Copy)"

        copy = self.add_day(new_name, notes=source.notes)
        for link in self.get_day_workout_groups(id):
            self.session.add(DayWorkoutGroup(day_id=copy.id, workout_group_id=link.workout_group_id))
        for s in self.get_sets_by_day(id):
            self.session.add(
                WorkoutSet(
                    day_id=copy.id,
                    exercise_id=s.exercise_id,
                    exercise_order=s.exercise_order,
                    set_order=s.set_order,
                    reps=s.reps,
                    weight=s.weight,
                    rir=s.rir,
                    notes=s.notes,
                )
            )
        self._flush()
        return copy

    def _compact_day_orders(self) -> None:
        for order, day in enumerate(self.list_days(), start=1):
            if day.day_order != order:
                day.day_order = order
                self.session.add(day)
        self._flush()

    # ------------------------------------------------------------------
    # Day workout groups
    # ------------------------------------------------------------------

    def list_day_workout_groups(self) -> list[DayWorkoutGroup]:
        return list(self.session.exec(select(DayWorkoutGroup).order_by(DayWorkoutGroup.id)).all())

    def get_day_workout_groups(self, day_id: int) -> list[DayWorkoutGroup]:
        statement = (
            select(DayWorkoutGroup)
            .join(WorkoutGroup, WorkoutGroup.id == DayWorkoutGroup.workout_group_id)
            .where(DayWorkoutGroup.day_id == day_id)
            .order_by(WorkoutGroup.name)
        )
        return list(self.session.exec(statement).all())

    def add_day_workout_group(
        self, day_id: int, workout_group_id: int, id: int | None = None
    ) -> DayWorkoutGroup:
        self.get_day(day_id)
        self.get_workout_group(workout_group_id)
        self._check_id_free(DayWorkoutGroup, id, "Day workout group")
        existing = self.session.exec(
            select(DayWorkoutGroup).where(
                DayWorkoutGroup.day_id == day_id,
                DayWorkoutGroup.workout_group_id == workout_group_id,
            )
        ).first()
        if existing is not None:
            raise ProgramError(ErrorKind.CONFLICT, "Workout group already assigned to this day")
        link = DayWorkoutGroup(id=id, day_id=day_id, workout_group_id=workout_group_id)
        self.session.add(link)
        self._flush()
        return link

    def set_day_workout_groups(self, day_id: int, workout_group_ids: list[int]) -> list[DayWorkoutGroup]:
        """Replace every workout group assigned to a day."""
        self.get_day(day_id)
        for group_id in workout_group_ids:
            self.get_workout_group(group_id)
        self._delete_all(
            self.session.exec(select(DayWorkoutGroup).where(DayWorkoutGroup.day_id == day_id)).all()
        )
        self._flush()
        for group_id in dict.fromkeys(workout_group_ids):
            self.session.add(DayWorkoutGroup(day_id=day_id, workout_group_id=group_id))
        self._flush()
        return self.get_day_workout_groups(day_id)

    def remove_day_workout_group(self, day_id: int, workout_group_id: int) -> None:
        link = self.session.exec(
            select(DayWorkoutGroup).where(
                DayWorkoutGroup.day_id == day_id,
                DayWorkoutGroup.workout_group_id == workout_group_id,
            )
        ).first()
        if link is None:
            raise not_found("Day workout group")
        self.session.delete(link)
        self._flush()

    # ------------------------------------------------------------------
    # Workout sets
    # ------------------------------------------------------------------

    def list_workout_sets(self) -> list[WorkoutSet]:
        return list(self.session.exec(select(WorkoutSet).order_by(WorkoutSet.id)).all())

    def get_workout_set(self, id: int) -> WorkoutSet:
        return self._get(WorkoutSet, id, "Workout set")

    def get_sets_by_day(self, day_id: int) -> list[WorkoutSet]:
        statement = (
            select(WorkoutSet)
            .where(WorkoutSet.day_id == day_id)
            .order_by(WorkoutSet.exercise_order, WorkoutSet.set_order, WorkoutSet.id)
        )
        return list(self.session.exec(statement).all())

    def get_sets_by_day_and_exercise(self, day_id: int, exercise_id: int) -> list[WorkoutSet]:
        statement = (
            select(WorkoutSet)
            .where(WorkoutSet.day_id == day_id, WorkoutSet.exercise_id == exercise_id)
            .order_by(WorkoutSet.set_order, WorkoutSet.id)
        )
        return list(self.session.exec(statement).all())

    def count_sets(self, day_id: int, exercise_id: int) -> int:
        return len(self.get_sets_by_day_and_exercise(day_id, exercise_id))

    def list_sets_with_exercises(self, day_id: int | None = None):
        """Return ``(set, exercise, workout_group)`` rows ordered as a day is performed."""
        statement = (
            select(WorkoutSet, Exercise, WorkoutGroup)
            .join(Exercise, Exercise.id == WorkoutSet.exercise_id)
            .join(WorkoutGroup, WorkoutGroup.id == Exercise.workout_group_id)
            .order_by(WorkoutSet.day_id, WorkoutSet.exercise_order, WorkoutSet.set_order, WorkoutSet.id)
        )
        if day_id is not None:
            statement = statement.where(WorkoutSet.day_id == day_id)
        return list(self.session.exec(statement).all())

    def get_sets_by_day_grouped(self, day_id: int) -> list[ExerciseSets]:
        grouped: dict[int, ExerciseSets] = {}
        for workout_set, exercise, group in self.list_sets_with_exercises(day_id):
            entry = grouped.get(exercise.id)
            if entry is None:
                entry = ExerciseSets(
                    exercise=exercise,
                    workout_group=group,
                    exercise_order=workout_set.exercise_order,
                )
                grouped[exercise.id] = entry
            entry.sets.append(workout_set)
        return sorted(grouped.values(), key=lambda e: e.exercise_order)

    def create_workout_set(
        self,
        day_id: int,
        exercise_id: int,
        exercise_order: int | None = None,
        set_order: int | None = None,
        reps: int | None = None,
        weight: float | None = None,
        rir: int | None = None,
        notes: str = "",
        id: int | None = None,
    ) -> WorkoutSet:
        """Add a set; missing orders continue the exercise's existing position on the day."""
        self.get_day(day_id)
        self.get_exercise(exercise_id)
        check_set_metrics(reps, weight, rir)
        self._check_id_free(WorkoutSet, id, "Workout set")

        existing = self.get_sets_by_day_and_exercise(day_id, exercise_id)
        if exercise_order is None:
            if existing:
                exercise_order = existing[0].exercise_order
            else:
                day_sets = self.get_sets_by_day(day_id)
                exercise_order = max((s.exercise_order for s in day_sets), default=0) + 1
        if set_order is None:
            set_order = max((s.set_order for s in existing), default=0) + 1

        workout_set = WorkoutSet(
            id=id,
            day_id=day_id,
            exercise_id=exercise_id,
            exercise_order=exercise_order,
            set_order=set_order,
            reps=reps,
            weight=weight,
            rir=rir,
            notes=notes or "",
        )
        self.session.add(workout_set)
        self._flush()
        return workout_set

    def update_workout_set(self, id: int, changes: dict) -> WorkoutSet:
        workout_set = self.get_workout_set(id)
        unknown = set(changes) - set(SET_FIELDS)
        if unknown:
            raise ProgramError(ErrorKind.VALIDATION, f"Unknown set fields: {', '.join(sorted(unknown))}")
        merged = {name: changes.get(name, getattr(workout_set, name)) for name in SET_FIELDS}
        for name in ("exercise_order", "set_order"):
            positive(required(merged[name], name), name)
        check_set_metrics(merged["reps"], merged["weight"], merged["rir"])
        for name, value in merged.items():
            setattr(workout_set, name, value if name != "notes" else (value or ""))
        self.session.add(workout_set)
        self._flush()
        return workout_set

    def delete_workout_set(self, id: int) -> None:
        workout_set = self.get_workout_set(id)
        day_id, exercise_id = workout_set.day_id, workout_set.exercise_id
        self.session.delete(workout_set)
        self._flush()
        if self.get_sets_by_day_and_exercise(day_id, exercise_id):
            self._compact_set_orders(day_id, exercise_id)
        else:
            self._compact_exercise_orders(day_id)

    def delete_exercise_from_day(self, day_id: int, exercise_id: int) -> None:
        self._delete_all(self.get_sets_by_day_and_exercise(day_id, exercise_id))
        self._flush()
        self._compact_exercise_orders(day_id)

    def delete_sets_by_day(self, day_id: int) -> None:
        self._delete_all(self.get_sets_by_day(day_id))
        self._flush()

    def _compact_set_orders(self, day_id: int, exercise_id: int) -> None:
        for order, s in enumerate(self.get_sets_by_day_and_exercise(day_id, exercise_id), start=1):
            if s.set_order != order:
                s.set_order = order
                self.session.add(s)
        self._flush()

    def _compact_exercise_orders(self, day_id: int) -> None:
        positions: dict[int, int] = {}
        for s in self.get_sets_by_day(day_id):
            positions.setdefault(s.exercise_id, len(positions) + 1)
            if s.exercise_order != positions[s.exercise_id]:
                s.exercise_order = positions[s.exercise_id]
                self.session.add(s)
        self._flush()

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def _delete_tables(self, models: list[type[SQLModel]]) -> None:
        for model in models:
            self._delete_all(self.session.exec(select(model)).all())
        self._flush()

    def clear_all(self) -> None:
        """Delete every row and reset the id sequences."""
        self._delete_tables(DELETE_ORDER)
        if self.session.get_bind().dialect.name == "sqlite":
            self.session.connection().exec_driver_sql("DELETE FROM sqlite_sequence")
        logger.info("Cleared all program data")

    def clear_program_data(self) -> None:
        """Delete days, day links and sets; workout groups and exercises survive."""
        self._delete_tables([WorkoutSet, DayWorkoutGroup, Day])
        logger.info("Cleared days, day workout groups and sets")

    def persist(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise ProgramError(ErrorKind.INTERNAL, str(exc)) from exc
