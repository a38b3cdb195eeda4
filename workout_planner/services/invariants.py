"""Whole-program consistency checks run after an import has been written."""

from collections import defaultdict

from workout_planner.services.repository import ProgramRepository


def _is_dense(values: list[int]) -> bool:
    return sorted(values) == list(range(1, len(values) + 1))


def find_violations(repo: ProgramRepository) -> list[str]:
    """Return a description of every broken invariant; an empty list means consistent."""
    problems: list[str] = []

    groups = repo.list_workout_groups()
    exercises = repo.list_exercises()
    days = repo.list_days()
    links = repo.list_day_workout_groups()
    sets = repo.list_workout_sets()

    group_ids = {g.id for g in groups}
    exercise_ids = {e.id for e in exercises}
    day_ids = {d.id for d in days}

    # Foreign keys
    for exercise in exercises:
        if exercise.workout_group_id not in group_ids:
            problems.append(
                f"exercise {exercise.id} references missing workout group {exercise.workout_group_id}"
            )
    for link in links:
        if link.day_id not in day_ids:
            problems.append(f"day workout group {link.id} references missing day {link.day_id}")
        if link.workout_group_id not in group_ids:
            problems.append(
                f"day workout group {link.id} references missing workout group {link.workout_group_id}"
            )
    for s in sets:
        if s.day_id not in day_ids:
            problems.append(f"workout set {s.id} references missing day {s.day_id}")
        if s.exercise_id not in exercise_ids:
            problems.append(f"workout set {s.id} references missing exercise {s.exercise_id}")

    if not _is_dense([d.day_order for d in days]):
        problems.append("day_order values are not a permutation of 1..N")

    orders_by_day: dict[int, dict[int, set[int]]] = defaultdict(lambda: defaultdict(set))
    set_orders: dict[tuple[int, int], list[int]] = defaultdict(list)
    for s in sets:
        orders_by_day[s.day_id][s.exercise_id].add(s.exercise_order)
        set_orders[(s.day_id, s.exercise_id)].append(s.set_order)

    for day_id, by_exercise in sorted(orders_by_day.items()):
        split = [ex for ex, orders in by_exercise.items() if len(orders) > 1]
        if split:
            problems.append(f"day {day_id}: exercises {sorted(split)} use more than one exercise_order")
            continue
        used = [next(iter(orders)) for orders in by_exercise.values()]
        if not _is_dense(used):
            problems.append(f"day {day_id}: exercise_order values are not dense 1..M")

    for (day_id, exercise_id), orders in sorted(set_orders.items()):
        if not _is_dense(orders):
            problems.append(f"day {day_id}, exercise {exercise_id}: set_order values are not dense 1..K")

    for s in sets:
        if s.reps is not None and s.reps <= 0:
            problems.append(f"workout set {s.id}: reps must be positive")
        if s.weight is not None and s.weight < 0:
            problems.append(f"workout set {s.id}: weight must be non-negative")
        if s.rir is not None and s.rir < 0:
            problems.append(f"workout set {s.id}: rir must be non-negative")

    seen_names: dict[str, int] = {}
    for group in sorted(groups, key=lambda g: g.id):
        if not group.name.strip():
            problems.append(f"workout group {group.id} has an empty name")
        key = group.name.casefold()
        if key in seen_names:
            problems.append(
                f"workout groups {seen_names[key]} and {group.id} share the name {group.name!r}"
            )
        seen_names.setdefault(key, group.id)
    for exercise in exercises:
        if not exercise.name.strip():
            problems.append(f"exercise {exercise.id} has an empty name")
    for day in days:
        if not day.day_name.strip():
            problems.append(f"day {day.id} has an empty name")

    return problems
