"""Human-readable, denormalized program sheet (export only)."""

import csv
import io

from workout_planner.services.repository import ProgramRepository

PRETTY_COLUMNS = ["day", "exercise", "workout_group", "set_number", "reps", "weight", "rir", "notes"]

NO_EXERCISES = "(No exercises)"


def _cell(value) -> str:
    return "" if value is None else str(value)


def export_pretty_print(repo: ProgramRepository) -> str:
    """One row per set, in program order: day, then exercise position, then set."""
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(PRETTY_COLUMNS)

    for day in repo.list_days():
        grouped = repo.get_sets_by_day_grouped(day.id)
        if not grouped:
            writer.writerow([day.day_name, NO_EXERCISES, "", "", "", "", "", ""])
            continue
        for entry in grouped:
            for workout_set in entry.sets:
                writer.writerow(
                    [
                        day.day_name,
                        entry.exercise.name,
                        entry.workout_group.name,
                        workout_set.set_order,
                        _cell(workout_set.reps),
                        _cell(workout_set.weight),
                        _cell(workout_set.rir),
                        workout_set.notes,
                    ]
                )
    return out.getvalue()
