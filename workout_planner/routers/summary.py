from typing import Annotated

from fastapi import APIRouter, Query

from workout_planner.routers.deps import RepoDep
from workout_planner.services.summary import (
    AggregateStats,
    DaySummary,
    WorkoutGroupBreakdown,
    calculate_aggregate_stats,
    calculate_exercise_breakdown,
    load_day_summaries,
)

router = APIRouter()

DayIdsQuery = Annotated[list[int] | None, Query()]


def _day_ids(summaries: list[DaySummary], day_ids: list[int] | None) -> list[int]:
    # No selection means every day.
    return [s.id for s in summaries] if day_ids is None else day_ids


@router.get("/", response_model=list[DaySummary])
def get_day_summaries(repo: RepoDep):
    return load_day_summaries(repo)


@router.get("/aggregate", response_model=AggregateStats)
def get_aggregate_stats(repo: RepoDep, day_ids: DayIdsQuery = None):
    summaries = load_day_summaries(repo)
    return calculate_aggregate_stats(summaries, _day_ids(summaries, day_ids))


@router.get("/breakdown", response_model=list[WorkoutGroupBreakdown])
def get_exercise_breakdown(repo: RepoDep, day_ids: DayIdsQuery = None):
    summaries = load_day_summaries(repo)
    return calculate_exercise_breakdown(summaries, _day_ids(summaries, day_ids))
