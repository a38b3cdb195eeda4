"""Sectioned CSV export/import of the whole program.

A document is a run of sections, each a bracketed name line followed by a
headered CSV table and a blank line::

    [WORKOUT_GROUPS]
    id,name,notes
    1,Chest,

Import is destructive: the store is cleared and every row is re-inserted
with the id it carries in the document, parents before children.
"""

import csv
import io
import logging
import math
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from workout_planner.errors import ErrorKind, FieldValidationError, ProgramError
from workout_planner.services.invariants import find_violations
from workout_planner.services.repository import ProgramRepository
from workout_planner.services.validation import non_negative, positive, required

logger = logging.getLogger(__name__)

# Dependency order: every section only references sections above it.
SECTION_COLUMNS: dict[str, list[str]] = {
    "WORKOUT_GROUPS": ["id", "name", "notes"],
    "EXERCISES": ["id", "workout_group_id", "name", "notes"],
    "DAYS": ["id", "day_name", "day_order"],
    "DAY_WORKOUT_GROUPS": ["id", "day_id", "workout_group_id"],
    "WORKOUT_SETS": [
        "id",
        "day_id",
        "exercise_id",
        "exercise_order",
        "set_order",
        "reps",
        "weight",
        "rir",
        "notes",
    ],
}

REQUIRED_COLUMNS: dict[str, list[str]] = {
    "WORKOUT_GROUPS": ["id", "name"],
    "EXERCISES": ["id", "workout_group_id", "name"],
    "DAYS": ["id", "day_name"],
    "DAY_WORKOUT_GROUPS": ["id", "day_id", "workout_group_id"],
    "WORKOUT_SETS": ["id", "day_id", "exercise_id"],
}

# Sections whose header may not carry columns beyond SECTION_COLUMNS.
STRICT_SECTIONS = {"WORKOUT_SETS"}

COUNT_KEYS = {
    "WORKOUT_GROUPS": "workout_groups",
    "EXERCISES": "exercises",
    "DAYS": "days",
    "DAY_WORKOUT_GROUPS": "day_workout_groups",
    "WORKOUT_SETS": "workout_sets",
}

INT_COLUMNS = {
    "id",
    "workout_group_id",
    "day_id",
    "exercise_id",
    "day_order",
    "exercise_order",
    "set_order",
    "reps",
    "rir",
}
FLOAT_COLUMNS = {"weight"}

EXPORT_PREFIXES = {"complete": "workout-complete", "program": "workout-program"}

_SECTION_RE = re.compile(r"^\[([A-Z_]+)\]$", re.IGNORECASE)
_MAX_REPORTED = 10

# SQLite INTEGER is a signed 64-bit value.
INT_MIN, INT_MAX = -(2**63), 2**63 - 1

# One import at a time per process.
_IMPORT_LOCK = threading.Lock()


class CsvFormat(str, Enum):
    CURRENT = "current"
    LEGACY = "legacy"
    UNKNOWN = "unknown"


class DecodeState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    PRE_VALIDATING = "pre_validating"
    CLEARING = "clearing"
    INSERTING = "inserting"
    POST_VALIDATING = "post_validating"
    DONE = "done"


@dataclass
class ImportResult:
    ok: bool
    counts: dict[str, int] = field(default_factory=lambda: {key: 0 for key in COUNT_KEYS.values()})
    kind: ErrorKind | None = None
    message: str | None = None
    warnings: list[str] = field(default_factory=list)
    # Last state entered; for failures, the state the import failed in.
    state: DecodeState = DecodeState.IDLE


Row = dict[str, object]


@dataclass
class _RawSection:
    name: str
    line: int
    lines: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _cell(value) -> str:
    return "" if value is None else str(value)


def export_document(repo: ProgramRepository) -> str:
    """Serialize every table; empty sections are left out, rows are sorted by id."""
    tables = {
        "WORKOUT_GROUPS": repo.list_workout_groups(),
        "EXERCISES": repo.list_exercises(),
        "DAYS": repo.list_days(),
        "DAY_WORKOUT_GROUPS": repo.list_day_workout_groups(),
        "WORKOUT_SETS": repo.list_workout_sets(),
    }
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    for name, columns in SECTION_COLUMNS.items():
        rows = sorted(tables[name], key=lambda row: row.id)
        if not rows:
            continue
        out.write(f"[{name}]\n")
        writer.writerow(columns)
        for row in rows:
            writer.writerow([_cell(getattr(row, column)) for column in columns])
        out.write("\n")
    return out.getvalue()


def export_filename(kind: str, on: date | None = None) -> str:
    """``workout-complete-YYYY-MM-DD.csv`` or ``workout-program-YYYY-MM-DD.csv``."""
    return f"{EXPORT_PREFIXES[kind]}-{(on or date.today()).isoformat()}.csv"


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


def detect_format(text: str) -> CsvFormat:
    text = text.upper()
    if "[WORKOUT_SETS]" in text:
        return CsvFormat.CURRENT
    if "[DAY_EXERCISES]" in text and "[SETS]" in text:
        return CsvFormat.LEGACY
    if any(f"[{name}]" in text for name in SECTION_COLUMNS):
        return CsvFormat.CURRENT
    return CsvFormat.UNKNOWN


def describe_format(csv_format: CsvFormat) -> str:
    if csv_format is CsvFormat.LEGACY:
        return (
            "This file uses the old export format with separate [DAY_EXERCISES] and [SETS] "
            "sections, which can no longer be imported. Export it again from a current version."
        )
    if csv_format is CsvFormat.UNKNOWN:
        return "No recognizable sections found; expected markers such as [WORKOUT_GROUPS] or [WORKOUT_SETS]."
    return "Current sectioned format."


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def decode_document(data: bytes) -> str:
    """Decode an uploaded or on-disk document; a leading BOM is dropped."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ProgramError(
            ErrorKind.PARSE, f"Document is not valid UTF-8 (byte {exc.start}: {exc.reason})"
        ) from exc


def _normalize(text: str) -> str:
    return text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


def _raise_collected(kind: ErrorKind, messages: list[str]) -> None:
    if not messages:
        return
    shown = "; ".join(messages[:_MAX_REPORTED])
    if len(messages) > _MAX_REPORTED:
        shown += f" (and {len(messages) - _MAX_REPORTED} more)"
    raise ProgramError(kind, shown)


def _ends_in_quotes(line: str, in_quotes: bool) -> bool:
    """Whether a quoted field is still open at the end of ``line``.

    Only a quote at the start of a field opens one, as with ``csv.reader``;
    a bare ``45" plate`` stays an ordinary value.
    """
    at_field_start = True
    i = 0
    while i < len(line):
        char = line[i]
        if in_quotes:
            if char == '"':
                if line.startswith('"', i + 1):
                    i += 1  # escaped ""
                else:
                    in_quotes = False
        elif char == '"' and at_field_start:
            in_quotes = True
        at_field_start = char == "," and not in_quotes
        i += 1
    return in_quotes


def _split_sections(text: str, errors: list[str]) -> list[_RawSection]:
    """Cut the document at section header lines that are not inside a quoted value."""
    sections: list[_RawSection] = []
    current: _RawSection | None = None
    in_quotes = False
    orphan_reported = False

    for number, line in enumerate(text.split("\n"), start=1):
        if not in_quotes:
            marker = line.strip().rstrip(",").strip()
            if marker.startswith("[") and marker.endswith("]"):
                match = _SECTION_RE.match(marker)
                if match is None:
                    errors.append(f"line {number}: malformed section header {marker!r}")
                    current = _RawSection("", number)  # rows until the next header are dropped
                else:
                    current = _RawSection(match.group(1).upper(), number)
                    sections.append(current)
                continue
            if not line.strip():
                continue
            if current is None:
                if not orphan_reported:
                    errors.append(f"line {number}: data outside of any section")
                    orphan_reported = True
                continue
        current.lines.append(line)
        in_quotes = _ends_in_quotes(line, in_quotes)

    if in_quotes and current is not None:
        errors.append(f"[{current.name}] starting at line {current.line}: unterminated quoted value")
    return sections


def _read_table(
    section: _RawSection, errors: list[str], warnings: list[str]
) -> tuple[list[str], list[tuple[int, dict[str, str]]]] | None:
    name = section.name
    reader = csv.reader(io.StringIO("\n".join(section.lines)), strict=True)
    try:
        records = list(reader)
    except csv.Error as exc:
        errors.append(f"[{name}] line {section.line + reader.line_num}: {exc}")
        return None
    if not records:
        errors.append(f"[{name}] at line {section.line}: missing header row")
        return None

    header = [cell.strip() for cell in records[0]]
    while header and header[-1] == "":
        header.pop()
    if not header or "" in header:
        errors.append(f"[{name}]: header row has blank column names")
        return None
    duplicates = sorted({column for column in header if header.count(column) > 1})
    if duplicates:
        errors.append(f"[{name}]: duplicate columns {', '.join(duplicates)}")
        return None

    unexpected = [column for column in header if column not in SECTION_COLUMNS[name]]
    if unexpected:
        if name in STRICT_SECTIONS:
            errors.append(f"[{name}]: unexpected columns {', '.join(unexpected)}")
            return None
        message = f"[{name}]: ignoring unknown columns {', '.join(unexpected)}"
        logger.warning(message)
        warnings.append(message)

    rows: list[tuple[int, dict[str, str]]] = []
    for row_number, record in enumerate(records[1:], start=1):
        values = [cell.strip() for cell in record]
        if any(values[len(header):]):
            errors.append(
                f"[{name}] row {row_number}: {len(values)} values for {len(header)} columns"
            )
            continue
        values = values[: len(header)] + [""] * (len(header) - len(values))
        if not any(values):
            continue
        rows.append((row_number, dict(zip(header, values))))
    return header, rows


def parse_document(text: str) -> tuple[dict[str, tuple[list[str], list]], list[str]]:
    """Split and tokenize a document into ``{section: (header, rows)}`` plus warnings.

    Raises ProgramError(PARSE) listing every malformed line found.
    """
    errors: list[str] = []
    warnings: list[str] = []
    tables: dict[str, tuple[list[str], list]] = {}

    for section in _split_sections(_normalize(text), errors):
        if section.name not in SECTION_COLUMNS:
            message = f"ignoring unknown section [{section.name}]"
            logger.warning(message)
            warnings.append(message)
            continue
        if section.name in tables:
            errors.append(f"line {section.line}: section [{section.name}] appears more than once")
            continue
        table = _read_table(section, errors, warnings)
        if table is not None:
            tables[section.name] = table

    _raise_collected(ErrorKind.PARSE, errors)
    return tables, warnings


# ---------------------------------------------------------------------------
# Pre-validation
# ---------------------------------------------------------------------------


def _to_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        as_float = float(value)
        if not as_float.is_integer():
            raise ValueError(f"{value!r} is not a whole number") from None
        number = int(as_float)
    if not INT_MIN <= number <= INT_MAX:
        raise OverflowError(f"{value!r} is out of range")
    return number


def _to_float(value: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{value!r} is not a finite number")
    return number


def _coerce(section: str, rows: list, errors: list[str]) -> list[tuple[int, Row]]:
    typed: list[tuple[int, Row]] = []
    for row_number, raw in rows:
        row: Row = {}
        for column in SECTION_COLUMNS[section]:
            value = raw.get(column, "")
            if column in INT_COLUMNS or column in FLOAT_COLUMNS:
                if value == "":
                    row[column] = None
                    continue
                try:
                    row[column] = _to_int(value) if column in INT_COLUMNS else _to_float(value)
                except OverflowError as exc:
                    errors.append(f"[{section}] row {row_number}: {column} {exc}")
                except ValueError:
                    kind = "an integer" if column in INT_COLUMNS else "a number"
                    errors.append(f"[{section}] row {row_number}: {column} must be {kind}, got {value!r}")
            else:
                row[column] = value
        typed.append((row_number, row))
    return typed


def _check_fields(section: str, row: Row) -> None:
    for column in REQUIRED_COLUMNS[section]:
        required(row[column], column)
    if section == "DAYS":
        positive(row["day_order"], "day_order")
    elif section == "WORKOUT_SETS":
        positive(row["exercise_order"], "exercise_order")
        positive(row["set_order"], "set_order")
        positive(row["reps"], "reps")
        non_negative(row["weight"], "weight")
        non_negative(row["rir"], "rir")


def _check_references(doc: dict[str, list[tuple[int, Row]]]) -> list[str]:
    problems: list[str] = []

    for section, rows in doc.items():
        seen: set[int] = set()
        for row_number, row in rows:
            if row["id"] in seen:
                problems.append(f"[{section}] row {row_number}: duplicate id {row['id']}")
            seen.add(row["id"])

    def ids(section: str) -> set:
        return {row["id"] for _, row in doc.get(section, [])}

    def unique_names(section: str, column: str) -> None:
        seen: dict[str, int] = {}
        for row_number, row in doc.get(section, []):
            key = str(row[column]).casefold()
            if key in seen:
                problems.append(
                    f"[{section}] row {row_number}: {column} {row[column]!r} duplicates row {seen[key]}"
                )
            seen.setdefault(key, row_number)

    unique_names("WORKOUT_GROUPS", "name")
    unique_names("DAYS", "day_name")

    group_ids, exercise_ids, day_ids = ids("WORKOUT_GROUPS"), ids("EXERCISES"), ids("DAYS")

    for row_number, row in doc.get("EXERCISES", []):
        if row["workout_group_id"] not in group_ids:
            problems.append(
                f"[EXERCISES] row {row_number}: workout_group_id {row['workout_group_id']} "
                "not found in [WORKOUT_GROUPS]"
            )

    pairs: set[tuple] = set()
    for row_number, row in doc.get("DAY_WORKOUT_GROUPS", []):
        if row["day_id"] not in day_ids:
            problems.append(f"[DAY_WORKOUT_GROUPS] row {row_number}: day_id {row['day_id']} not found in [DAYS]")
        if row["workout_group_id"] not in group_ids:
            problems.append(
                f"[DAY_WORKOUT_GROUPS] row {row_number}: workout_group_id "
                f"{row['workout_group_id']} not found in [WORKOUT_GROUPS]"
            )
        pair = (row["day_id"], row["workout_group_id"])
        if pair in pairs:
            problems.append(f"[DAY_WORKOUT_GROUPS] row {row_number}: day {pair[0]} already has group {pair[1]}")
        pairs.add(pair)

    exercise_orders: dict[tuple, int] = {}
    for row_number, row in doc.get("WORKOUT_SETS", []):
        if row["day_id"] not in day_ids:
            problems.append(f"[WORKOUT_SETS] row {row_number}: day_id {row['day_id']} not found in [DAYS]")
        if row["exercise_id"] not in exercise_ids:
            problems.append(
                f"[WORKOUT_SETS] row {row_number}: exercise_id {row['exercise_id']} not found in [EXERCISES]"
            )
        if row["exercise_order"] is None:
            continue
        key = (row["day_id"], row["exercise_id"])
        known = exercise_orders.setdefault(key, row["exercise_order"])
        if known != row["exercise_order"]:
            problems.append(
                f"[WORKOUT_SETS] row {row_number}: exercise {key[1]} on day {key[0]} uses "
                f"exercise_order {row['exercise_order']} but earlier rows use {known}"
            )
    return problems


def pre_validate(tables: dict[str, tuple[list[str], list]]) -> dict[str, list[tuple[int, Row]]]:
    """Check columns, types, field domains and in-document references.

    Returns typed rows per section. Nothing in the store is touched.
    """
    missing = [
        f"[{section}]: missing required column {column}"
        for section, (header, _) in tables.items()
        for column in REQUIRED_COLUMNS[section]
        if column not in header
    ]
    _raise_collected(ErrorKind.VALIDATION, missing)

    parse_errors: list[str] = []
    doc = {
        section: _coerce(section, rows, parse_errors)
        for section, (_, rows) in tables.items()
    }
    _raise_collected(ErrorKind.PARSE, parse_errors)

    invalid: list[str] = []
    for section, rows in doc.items():
        for row_number, row in rows:
            try:
                _check_fields(section, row)
            except FieldValidationError as exc:
                invalid.append(f"[{section}] row {row_number}: {exc.message}")
    _raise_collected(ErrorKind.VALIDATION, invalid)

    _raise_collected(ErrorKind.INTEGRITY, _check_references(doc))
    return doc


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _insert_row(repo: ProgramRepository, section: str, row: Row) -> None:
    if section == "WORKOUT_GROUPS":
        repo.create_workout_group(row["name"], row["notes"], id=row["id"])
    elif section == "EXERCISES":
        repo.create_exercise(row["workout_group_id"], row["name"], row["notes"], id=row["id"])
    elif section == "DAYS":
        repo.add_day(row["day_name"], id=row["id"], day_order=row["day_order"])
    elif section == "DAY_WORKOUT_GROUPS":
        repo.add_day_workout_group(row["day_id"], row["workout_group_id"], id=row["id"])
    else:
        repo.create_workout_set(
            row["day_id"],
            row["exercise_id"],
            exercise_order=row["exercise_order"],
            set_order=row["set_order"],
            reps=row["reps"],
            weight=row["weight"],
            rir=row["rir"],
            notes=row["notes"],
            id=row["id"],
        )


def _clear_after_failure(repo: ProgramRepository) -> None:
    repo.session.rollback()
    repo.clear_all()
    repo.persist()


def _fail(result: ImportResult, kind: ErrorKind, message: str) -> ImportResult:
    result.ok = False
    result.kind = kind
    result.message = message
    logger.warning("Import failed during %s: %s %s", result.state.value, kind.value, message)
    return result


def _enter(result: ImportResult, state: DecodeState, detail: str = "") -> None:
    result.state = state
    logger.info("Import %s%s", state.value, f" {detail}" if detail else "")


def import_document(
    repo: ProgramRepository,
    text: str,
    cancel: Callable[[], bool] | None = None,
) -> ImportResult:
    """Replace the whole program with the contents of ``text``.

    Parse, format and pre-validation failures leave the store untouched. A
    failure once rows are being written leaves the store empty. ``cancel`` is
    polled between sections; a cancelled import keeps the sections already
    written.
    """
    with _IMPORT_LOCK:
        return _import(repo, text, cancel)


def _import(repo: ProgramRepository, text: str, cancel: Callable[[], bool] | None) -> ImportResult:
    result = ImportResult(ok=False)

    _enter(result, DecodeState.PARSING)
    if not isinstance(text, str):
        return _fail(result, ErrorKind.VALIDATION, "Document must be text")
    if _normalize(text).strip():
        csv_format = detect_format(text)
        if csv_format is not CsvFormat.CURRENT:
            return _fail(result, ErrorKind.FORMAT_UNSUPPORTED, describe_format(csv_format))
    try:
        tables, result.warnings = parse_document(text)
        _enter(result, DecodeState.PRE_VALIDATING)
        doc = pre_validate(tables)
    except ProgramError as exc:
        return _fail(result, exc.kind, exc.message)

    try:
        _enter(result, DecodeState.CLEARING)
        repo.clear_all()
        repo.persist()

        for section in SECTION_COLUMNS:
            if cancel is not None and cancel():
                return _fail(result, ErrorKind.INTERNAL, f"Import cancelled before [{section}]")
            rows = doc.get(section, [])
            _enter(result, DecodeState.INSERTING, f"[{section}] ({len(rows)} rows)")
            for _, row in rows:
                _insert_row(repo, section, row)
            repo.persist()
            result.counts[COUNT_KEYS[section]] = len(rows)

        _enter(result, DecodeState.POST_VALIDATING)
        violations = find_violations(repo)
        if violations:
            _clear_after_failure(repo)
            _raise_collected(ErrorKind.INTEGRITY, violations)
        repo.persist()
    except ProgramError as exc:
        if result.state is DecodeState.INSERTING:
            _clear_after_failure(repo)
        kind = ErrorKind.INTERNAL if exc.kind is ErrorKind.INTERNAL else ErrorKind.INTEGRITY
        result.counts = {key: 0 for key in COUNT_KEYS.values()}
        return _fail(result, kind, exc.message)
    except SQLAlchemyError as exc:
        _clear_after_failure(repo)
        result.counts = {key: 0 for key in COUNT_KEYS.values()}
        return _fail(result, ErrorKind.INTERNAL, str(exc))
    except Exception as exc:
        logger.exception("Unexpected failure during import %s", result.state.value)
        _clear_after_failure(repo)
        result.counts = {key: 0 for key in COUNT_KEYS.values()}
        return _fail(result, ErrorKind.INTERNAL, f"{type(exc).__name__}: {exc}")

    result.ok = True
    _enter(result, DecodeState.DONE, str(result.counts))
    return result
