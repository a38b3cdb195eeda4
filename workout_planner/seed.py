"""
Seed the store with a sample week: seven days plus a starter catalogue of
workout groups and exercises.

Run with: workout-planner seed (add --reset to wipe existing data first)
"""

import logging

from workout_planner.services.repository import ProgramRepository

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Sample program
# ---------------------------------------------------------------------------

DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Workout group -> (notes, [(exercise, notes), ...])
CATALOGUE: dict[str, tuple[str, list[tuple[str, str]]]] = {
    "Chest": (
        "Chest exercises",
        [
            ("Barbell Bench Press", "Compound chest movement"),
            ("Incline Dumbbell Press", "Upper chest focus"),
            ("Cable Flyes", "Chest isolation"),
        ],
    ),
    "Back": (
        "Back exercises",
        [
            ("Deadlift", "Compound back and posterior chain"),
            ("Pull-ups", "Vertical pulling movement"),
            ("Barbell Rows", "Horizontal pulling movement"),
        ],
    ),
    "Legs": (
        "Leg exercises",
        [
            ("Back Squat", "Compound leg movement"),
            ("Romanian Deadlift", "Hamstring focus"),
            ("Leg Press", "Quad focus"),
        ],
    ),
    "Shoulders": (
        "Shoulder exercises",
        [
            ("Overhead Press", "Compound shoulder movement"),
            ("Lateral Raises", "Lateral delt isolation"),
            ("Face Pulls", "Rear delt and upper back"),
        ],
    ),
    "Arms": (
        "Arm exercises",
        [
            ("Barbell Curls", "Bicep compound"),
            ("Tricep Dips", "Tricep compound"),
            ("Hammer Curls", "Bicep and forearm"),
        ],
    ),
    "Cardio": (
        "Cardiovascular training",
        [
            ("Treadmill", "Running or walking"),
            ("Cycling", "Low impact cardio"),
            ("Rowing Machine", "Full body cardio"),
        ],
    ),
    "Rest": ("Rest and recovery", [("Rest Day", "Active recovery")]),
}


def is_empty(repo: ProgramRepository) -> bool:
    return not repo.list_workout_groups() and repo.count_days() == 0


def seed_sample_program(repo: ProgramRepository, reset: bool = False) -> bool:
    """Insert the sample week; returns False (and writes nothing) when data already exists."""
    if reset:
        repo.clear_all()
    elif not is_empty(repo):
        logger.info("Store already holds data; skipping seed")
        return False

    for day_name in DAYS:
        repo.add_day(day_name)

    exercise_count = 0
    for group_name, (group_notes, exercises) in CATALOGUE.items():
        group = repo.create_workout_group(group_name, group_notes)
        for exercise_name, exercise_notes in exercises:
            repo.create_exercise(group.id, exercise_name, exercise_notes)
            exercise_count += 1

    repo.persist()
    logger.info(
        "Created %d days, %d workout groups and %d exercises",
        len(DAYS),
        len(CATALOGUE),
        exercise_count,
    )
    return True
