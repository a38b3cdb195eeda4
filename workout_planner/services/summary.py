from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from workout_planner.models import Day
from workout_planner.services.repository import ProgramRepository


@dataclass
class SetSample:
    """The slice of a set row the aggregator needs."""

    day_id: int
    exercise_id: int
    exercise_name: str
    workout_group_name: str
    rir: int | None


@dataclass
class ExerciseBreakdown:
    exercise_id: int
    exercise_name: str
    workout_group_name: str
    set_count: int
    avg_rir: float | None  # rounded to 1 decimal
    rir_mean: float | None  # unrounded, used for cross-day weighting


@dataclass
class DaySummary:
    id: int
    name: str
    order: int
    total_exercises: int
    total_sets: int
    avg_rir: float | None
    exercise_breakdown: list[ExerciseBreakdown] = field(default_factory=list)


@dataclass
class ExerciseAggregate:
    exercise_id: int
    exercise_name: str
    workout_group_name: str
    total_sets: int
    avg_rir: float | None


@dataclass
class AggregateStats:
    total_days: int
    total_exercises: int
    total_sets: int
    avg_rir: float | None
    exercise_aggregates: list[ExerciseAggregate] = field(default_factory=list)


@dataclass
class DayAppearance:
    day_id: int
    day_name: str
    set_count: int
    avg_rir: float | None


@dataclass
class ExerciseAppearances:
    exercise_id: int
    exercise_name: str
    workout_group_name: str
    total_sets: int
    avg_rir: float | None
    day_appearances: list[DayAppearance] = field(default_factory=list)


@dataclass
class WorkoutGroupBreakdown:
    workout_group_name: str
    exercises: list[ExerciseAppearances] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def round_rir(value: float | None) -> float | None:
    """Round half-up to one decimal place."""
    if value is None:
        return None
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _mean(values: list[int]) -> float | None:
    return sum(values) / len(values) if values else None


class _WeightedRir:
    """Set-weighted mean of per-day exercise means."""

    def __init__(self) -> None:
        self.total = 0.0
        self.weight = 0

    def add(self, mean: float | None, set_count: int) -> None:
        if mean is not None:
            self.total += mean * set_count
            self.weight += set_count

    def value(self) -> float | None:
        return round_rir(self.total / self.weight) if self.weight else None


def _selected(day_summaries: list[DaySummary], selected_day_ids: Iterable[int]) -> list[DaySummary]:
    wanted = set(selected_day_ids)
    return [day for day in day_summaries if day.id in wanted]


# ---------------------------------------------------------------------------
# Per-day summaries
# ---------------------------------------------------------------------------


def build_day_summaries(days: Iterable[Day], samples: Iterable[SetSample]) -> list[DaySummary]:
    """Summarize every day; days keep the order they are given in."""
    by_day: dict[int, dict[int, list[SetSample]]] = {}
    for sample in samples:
        by_day.setdefault(sample.day_id, {}).setdefault(sample.exercise_id, []).append(sample)

    summaries: list[DaySummary] = []
    for day in days:
        exercises = by_day.get(day.id, {})
        breakdown: list[ExerciseBreakdown] = []
        day_rirs: list[int] = []
        total_sets = 0
        for exercise_id, exercise_samples in exercises.items():
            rirs = [s.rir for s in exercise_samples if s.rir is not None]
            day_rirs.extend(rirs)
            total_sets += len(exercise_samples)
            mean = _mean(rirs)
            breakdown.append(
                ExerciseBreakdown(
                    exercise_id=exercise_id,
                    exercise_name=exercise_samples[0].exercise_name,
                    workout_group_name=exercise_samples[0].workout_group_name,
                    set_count=len(exercise_samples),
                    avg_rir=round_rir(mean),
                    rir_mean=mean,
                )
            )
        breakdown.sort(key=lambda entry: entry.exercise_name.casefold())
        summaries.append(
            DaySummary(
                id=day.id,
                name=day.day_name,
                order=day.day_order,
                total_exercises=len(exercises),
                total_sets=total_sets,
                avg_rir=round_rir(_mean(day_rirs)),
                exercise_breakdown=breakdown,
            )
        )
    return summaries


def load_day_summaries(repo: ProgramRepository) -> list[DaySummary]:
    """Snapshot the store and summarize every day in program order."""
    samples = [
        SetSample(
            day_id=workout_set.day_id,
            exercise_id=exercise.id,
            exercise_name=exercise.name,
            workout_group_name=group.name,
            rir=workout_set.rir,
        )
        for workout_set, exercise, group in repo.list_sets_with_exercises()
    ]
    return build_day_summaries(repo.list_days(), samples)


# ---------------------------------------------------------------------------
# Cross-day statistics
# ---------------------------------------------------------------------------


def calculate_aggregate_stats(
    day_summaries: list[DaySummary], selected_day_ids: Iterable[int]
) -> AggregateStats:
    """Totals across the selected days, with exercises ordered by total sets (most first)."""
    selected = _selected(day_summaries, selected_day_ids)
    if not selected:
        return AggregateStats(total_days=0, total_exercises=0, total_sets=0, avg_rir=None)

    aggregates: dict[int, ExerciseAggregate] = {}
    weights: dict[int, _WeightedRir] = {}
    overall = _WeightedRir()
    for day in selected:
        for entry in day.exercise_breakdown:
            aggregate = aggregates.get(entry.exercise_id)
            if aggregate is None:
                aggregate = ExerciseAggregate(
                    exercise_id=entry.exercise_id,
                    exercise_name=entry.exercise_name,
                    workout_group_name=entry.workout_group_name,
                    total_sets=0,
                    avg_rir=None,
                )
                aggregates[entry.exercise_id] = aggregate
                weights[entry.exercise_id] = _WeightedRir()
            aggregate.total_sets += entry.set_count
            weights[entry.exercise_id].add(entry.rir_mean, entry.set_count)
            overall.add(entry.rir_mean, entry.set_count)

    for exercise_id, aggregate in aggregates.items():
        aggregate.avg_rir = weights[exercise_id].value()

    return AggregateStats(
        total_days=len(selected),
        total_exercises=len(aggregates),
        total_sets=sum(day.total_sets for day in selected),
        avg_rir=overall.value(),
        exercise_aggregates=sorted(aggregates.values(), key=lambda a: a.total_sets, reverse=True),
    )


def calculate_exercise_breakdown(
    day_summaries: list[DaySummary], selected_day_ids: Iterable[int]
) -> list[WorkoutGroupBreakdown]:
    """Exercises of the selected days grouped by workout group, with the days each appears on."""
    exercises: dict[int, ExerciseAppearances] = {}
    weights: dict[int, _WeightedRir] = {}
    for day in _selected(day_summaries, selected_day_ids):
        for entry in day.exercise_breakdown:
            appearances = exercises.get(entry.exercise_id)
            if appearances is None:
                appearances = ExerciseAppearances(
                    exercise_id=entry.exercise_id,
                    exercise_name=entry.exercise_name,
                    workout_group_name=entry.workout_group_name,
                    total_sets=0,
                    avg_rir=None,
                )
                exercises[entry.exercise_id] = appearances
                weights[entry.exercise_id] = _WeightedRir()
            appearances.day_appearances.append(
                DayAppearance(
                    day_id=day.id,
                    day_name=day.name,
                    set_count=entry.set_count,
                    avg_rir=entry.avg_rir,
                )
            )
            appearances.total_sets += entry.set_count
            weights[entry.exercise_id].add(entry.rir_mean, entry.set_count)

    groups: dict[str, WorkoutGroupBreakdown] = {}
    for exercise_id, appearances in exercises.items():
        appearances.avg_rir = weights[exercise_id].value()
        appearances.day_appearances.sort(key=lambda a: a.day_name.casefold())
        group = groups.setdefault(
            appearances.workout_group_name,
            WorkoutGroupBreakdown(workout_group_name=appearances.workout_group_name),
        )
        group.exercises.append(appearances)

    for group in groups.values():
        group.exercises.sort(key=lambda e: e.exercise_name.casefold())
    return sorted(groups.values(), key=lambda g: g.workout_group_name.casefold())
