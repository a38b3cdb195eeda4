"""Field checks shared by the repository and the CSV codec.

Each helper raises FieldValidationError naming the offending field; callers
decide how that maps onto their own result type.
"""

from workout_planner.errors import FieldValidationError


def required(value, field: str) -> str:
    """Return the trimmed string, or raise if it is missing or blank."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        raise FieldValidationError(field, f"{field} is required")
    return value.strip() if isinstance(value, str) else value


def positive(value: float | None, field: str) -> None:
    if value is not None and value <= 0:
        raise FieldValidationError(field, f"{field} must be a positive number")


def non_negative(value: float | None, field: str) -> None:
    if value is not None and value < 0:
        raise FieldValidationError(field, f"{field} must be non-negative")


def check_set_metrics(reps: int | None, weight: float | None, rir: int | None) -> None:
    positive(reps, "reps")
    non_negative(weight, "weight")
    non_negative(rir, "rir")
