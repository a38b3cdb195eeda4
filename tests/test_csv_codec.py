from datetime import date

import pytest

from workout_planner.errors import ErrorKind, ProgramError
from workout_planner.services.csv_codec import (
    CsvFormat,
    DecodeState,
    decode_document,
    detect_format,
    export_document,
    export_filename,
    import_document,
    parse_document,
)
from workout_planner.services.repository import ProgramRepository

SINGLE_SET = """\
[WORKOUT_GROUPS]
id,name,notes
1,Chest,

[EXERCISES]
id,workout_group_id,name,notes
1,1,Bench,

[DAYS]
id,day_name,day_order
1,Monday,1

[WORKOUT_SETS]
id,day_id,exercise_id,exercise_order,set_order,reps,weight,rir,notes
1,1,1,1,1,8,135.0,2,

"""

LEGACY = """\
[DAYS]
id,day_name,day_order
1,Monday,1

[DAY_EXERCISES]
id,day_id,exercise_id,exercise_order
1,1,1,1

[SETS]
id,day_exercise_id,set_order,reps,rir
1,1,1,8,2
"""


def snapshot(repo: ProgramRepository) -> dict[str, list[dict]]:
    """Entity-by-entity view of the store, ids included."""
    return {
        "workout_groups": [g.model_dump() for g in sorted(repo.list_workout_groups(), key=lambda r: r.id)],
        "exercises": [e.model_dump() for e in sorted(repo.list_exercises(), key=lambda r: r.id)],
        "days": [d.model_dump() for d in sorted(repo.list_days(), key=lambda r: r.id)],
        "day_workout_groups": [link.model_dump() for link in repo.list_day_workout_groups()],
        "workout_sets": [s.model_dump() for s in repo.list_workout_sets()],
    }


def assert_import_fails(repo: ProgramRepository, text: str, kind: ErrorKind) -> str:
    before = snapshot(repo)
    result = import_document(repo, text)
    assert not result.ok
    assert result.kind is kind, result.message
    assert snapshot(repo) == before
    return result.message


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def test_export_empty_store(repo: ProgramRepository):
    assert export_document(repo) == ""


def test_export_single_set(repo: ProgramRepository):
    chest = repo.create_workout_group("Chest")
    bench = repo.create_exercise(chest.id, "Bench")
    monday = repo.add_day("Monday")
    repo.create_workout_set(monday.id, bench.id, reps=8, weight=135.0, rir=2)
    repo.persist()

    assert export_document(repo) == SINGLE_SET


def test_export_is_stable(program: ProgramRepository):
    first = export_document(program)
    assert export_document(program) == first
    assert "\r" not in first


def test_export_sorts_rows_by_id(repo: ProgramRepository):
    repo.create_workout_group("Zebra", id=2)
    repo.create_workout_group("Apple", id=1)
    repo.persist()

    lines = export_document(repo).splitlines()
    assert lines[2:4] == ["1,Apple,", "2,Zebra,"]


def test_export_quotes_awkward_notes(program: ProgramRepository):
    workout_set = program.list_workout_sets()[0]
    program.update_workout_set(workout_set.id, {"notes": 'said "go", then\nrest'})
    program.persist()

    assert '"said ""go"", then\nrest"' in export_document(program)


def test_export_filename():
    assert export_filename("complete", on=date(2024, 3, 9)) == "workout-complete-2024-03-09.csv"
    assert export_filename("program", on=date(2024, 3, 9)) == "workout-program-2024-03-09.csv"


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text, expected",
    [
        (SINGLE_SET, CsvFormat.CURRENT),
        ("[DAYS]\nid,day_name,day_order\n1,Monday,1\n", CsvFormat.CURRENT),
        (LEGACY, CsvFormat.LEGACY),
        ("[workout_sets]\nid,day_id,exercise_id\n", CsvFormat.CURRENT),
        ("[day_exercises]\n\n[Sets]\n", CsvFormat.LEGACY),
        ("day,exercise\nMon,Bench\n", CsvFormat.UNKNOWN),
        ("", CsvFormat.UNKNOWN),
    ],
)
def test_detect_format(text, expected):
    assert detect_format(text) is expected


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


def test_round_trip_preserves_state(program: ProgramRepository):
    before = snapshot(program)
    result = import_document(program, export_document(program))

    assert result.ok, result.message
    assert result.state is DecodeState.DONE
    assert snapshot(program) == before
    assert result.counts == {
        "workout_groups": 2,
        "exercises": 3,
        "days": 3,
        "day_workout_groups": 2,
        "workout_sets": 4,
    }


def test_round_trip_single_set(repo: ProgramRepository):
    result = import_document(repo, SINGLE_SET)
    assert result.ok, result.message
    assert export_document(repo) == SINGLE_SET

    (workout_set,) = repo.list_workout_sets()
    assert (workout_set.reps, workout_set.weight, workout_set.rir) == (8, 135.0, 2)


def test_round_trip_keeps_awkward_notes(program: ProgramRepository):
    workout_set = program.list_workout_sets()[0]
    note = 'said "go", then\n[DAYS]\n  rest'
    program.update_workout_set(workout_set.id, {"notes": note})
    program.persist()
    before = snapshot(program)

    result = import_document(program, export_document(program))
    assert result.ok, result.message
    assert snapshot(program) == before


def test_import_is_idempotent(repo: ProgramRepository):
    import_document(repo, SINGLE_SET)
    first = snapshot(repo)

    result = import_document(repo, export_document(repo))
    assert result.ok
    assert snapshot(repo) == first


def test_section_order_does_not_matter(repo: ProgramRepository):
    sections = SINGLE_SET.strip().split("\n\n")
    import_document(repo, SINGLE_SET)
    expected = snapshot(repo)

    result = import_document(repo, "\n\n".join(reversed(sections)) + "\n")
    assert result.ok, result.message
    assert snapshot(repo) == expected


def test_import_replaces_existing_program(program: ProgramRepository):
    result = import_document(program, SINGLE_SET)
    assert result.ok
    assert [g.name for g in program.list_workout_groups()] == ["Chest"]
    assert [d.day_name for d in program.list_days()] == ["Monday"]


@pytest.mark.parametrize("text", ["", "   \n\n"])
def test_import_empty_document_clears_store(program: ProgramRepository, text):
    result = import_document(program, text)
    assert result.ok
    assert set(result.counts.values()) == {0}
    assert snapshot(program) == {
        "workout_groups": [],
        "exercises": [],
        "days": [],
        "day_workout_groups": [],
        "workout_sets": [],
    }


# ---------------------------------------------------------------------------
# Lenient input
# ---------------------------------------------------------------------------


def test_import_tolerates_spreadsheet_resave(repo: ProgramRepository):
    text = (
        "\ufeff[WORKOUT_GROUPS],,\r\n"
        "id,name,notes,\r\n"
        " 1 , Chest ,,\r\n"
        ",,,\r\n"
        "\r\n"
        "[DAYS],,\r\n"
        "id,day_name,day_order\r\n"
        "1,Monday,1.0\r\n"
    )
    result = import_document(repo, text)
    assert result.ok, result.message
    assert [g.name for g in repo.list_workout_groups()] == ["Chest"]
    assert repo.list_days()[0].day_order == 1


def test_import_accepts_lowercase_section_names(repo: ProgramRepository):
    text = SINGLE_SET
    for name in ("WORKOUT_GROUPS", "EXERCISES", "DAYS", "WORKOUT_SETS"):
        text = text.replace(f"[{name}]", f"[{name.lower()}]")
    result = import_document(repo, text)
    assert result.ok, result.message
    assert export_document(repo) == SINGLE_SET


def test_import_keeps_bare_inch_mark(repo: ProgramRepository):
    # The later section headers must still be found.
    text = SINGLE_SET.replace("1,Chest,", '1,Chest,45" plate')
    result = import_document(repo, text)
    assert result.ok, result.message
    assert repo.list_workout_groups()[0].notes == '45" plate'
    assert result.counts["workout_sets"] == 1


def test_decode_document_strips_bom():
    assert decode_document("\ufeff[DAYS]\nCafé\n".encode("utf-8")) == "[DAYS]\nCafé\n"


def test_decode_document_rejects_invalid_utf8():
    with pytest.raises(ProgramError) as exc_info:
        decode_document(b"[WORKOUT_GROUPS]\nid,name,notes\n1,Ch\xffest,\n")
    assert exc_info.value.kind is ErrorKind.PARSE
    assert "UTF-8" in exc_info.value.message


def test_import_assigns_blank_orders(repo: ProgramRepository):
    text = SINGLE_SET.replace("1,Monday,1", "1,Monday,").replace("1,1,1,1,1,8,135.0,2,", "1,1,1,,,8,,,")
    result = import_document(repo, text)
    assert result.ok, result.message

    (workout_set,) = repo.list_workout_sets()
    assert (workout_set.exercise_order, workout_set.set_order) == (1, 1)
    assert workout_set.weight is None
    assert workout_set.rir is None
    assert repo.list_days()[0].day_order == 1


def test_import_warns_about_unknown_sections_and_columns(repo: ProgramRepository):
    text = SINGLE_SET.replace("id,name,notes", "id,name,notes,color").replace("1,Chest,", "1,Chest,,red")
    text += "[TEMPLATES]\nid,name\n1,PPL\n"
    result = import_document(repo, text)

    assert result.ok, result.message
    assert result.warnings == [
        "[WORKOUT_GROUPS]: ignoring unknown columns color",
        "ignoring unknown section [TEMPLATES]",
    ]


# ---------------------------------------------------------------------------
# Rejected input (store untouched)
# ---------------------------------------------------------------------------


def test_import_rejects_legacy_format(program: ProgramRepository):
    message = assert_import_fails(program, LEGACY, ErrorKind.FORMAT_UNSUPPORTED)
    assert "[DAY_EXERCISES]" in message


def test_import_rejects_unknown_format(program: ProgramRepository):
    assert_import_fails(program, "day,exercise\nMon,Bench\n", ErrorKind.FORMAT_UNSUPPORTED)


def test_import_rejects_dangling_workout_group(program: ProgramRepository):
    text = SINGLE_SET.replace("1,1,Bench,", "1,9,Bench,")
    message = assert_import_fails(program, text, ErrorKind.INTEGRITY)
    assert "workout_group_id 9" in message


def test_import_rejects_dangling_set_references(program: ProgramRepository):
    text = SINGLE_SET.replace("1,1,1,1,1,8,135.0,2,", "1,4,7,1,1,8,135.0,2,")
    message = assert_import_fails(program, text, ErrorKind.INTEGRITY)
    assert "day_id 4" in message
    assert "exercise_id 7" in message


def test_import_rejects_split_exercise_order(program: ProgramRepository):
    text = SINGLE_SET.replace(
        "1,1,1,1,1,8,135.0,2,\n", "1,1,1,1,1,8,135.0,2,\n2,1,1,2,2,8,135.0,2,\n"
    )
    assert_import_fails(program, text, ErrorKind.INTEGRITY)


def test_import_rejects_duplicate_ids(program: ProgramRepository):
    text = SINGLE_SET.replace("1,Chest,\n", "1,Chest,\n1,Back,\n")
    message = assert_import_fails(program, text, ErrorKind.INTEGRITY)
    assert "duplicate id 1" in message


def test_import_rejects_duplicate_group_names(program: ProgramRepository):
    text = SINGLE_SET.replace("1,Chest,\n", "1,Chest,\n2,chest,\n")
    assert_import_fails(program, text, ErrorKind.INTEGRITY)


def test_import_rejects_non_numeric_value(program: ProgramRepository):
    text = SINGLE_SET.replace("1,1,1,1,1,8,135.0,2,", "1,1,1,1,1,eight,135.0,2,")
    message = assert_import_fails(program, text, ErrorKind.PARSE)
    assert "reps must be an integer" in message


@pytest.mark.parametrize("weight", ["nan", "inf"])
def test_import_rejects_non_finite_weight(program: ProgramRepository, weight):
    text = SINGLE_SET.replace("135.0", weight)
    assert_import_fails(program, text, ErrorKind.PARSE)


def test_import_rejects_fractional_integer(program: ProgramRepository):
    text = SINGLE_SET.replace("1,Monday,1", "1,Monday,1.5")
    assert_import_fails(program, text, ErrorKind.PARSE)


@pytest.mark.parametrize(
    "old, new",
    [
        ("1,Chest,", "99999999999999999999,Back,"),
        ("1,1,1,1,1,8,135.0,2,", "1,1,1,1,1,9223372036854775808,135.0,2,"),
        ("1,Monday,1", "1,Monday,1e30"),
    ],
)
def test_import_rejects_integer_out_of_range(program: ProgramRepository, old, new):
    message = assert_import_fails(program, SINGLE_SET.replace(old, new), ErrorKind.PARSE)
    assert "out of range" in message


def test_import_accepts_largest_integer(repo: ProgramRepository):
    largest = 2**63 - 1
    result = import_document(repo, SINGLE_SET.replace("1,1,1,1,1,8,", f"{largest},1,1,1,1,8,"))
    assert result.ok, result.message
    assert repo.list_workout_sets()[0].id == largest


def test_import_rejects_out_of_domain_value(program: ProgramRepository):
    text = SINGLE_SET.replace("1,1,1,1,1,8,135.0,2,", "1,1,1,1,1,8,-5,2,")
    message = assert_import_fails(program, text, ErrorKind.VALIDATION)
    assert "weight must be non-negative" in message


def test_import_rejects_blank_required_value(program: ProgramRepository):
    text = SINGLE_SET.replace("1,Chest,", "1,,")
    message = assert_import_fails(program, text, ErrorKind.VALIDATION)
    assert "name is required" in message


def test_import_rejects_missing_required_column(program: ProgramRepository):
    text = SINGLE_SET.replace("id,day_name,day_order\n1,Monday,1", "id,day_order\n1,1")
    message = assert_import_fails(program, text, ErrorKind.VALIDATION)
    assert "missing required column day_name" in message


def test_import_rejects_unexpected_set_columns(program: ProgramRepository):
    text = SINGLE_SET.replace("rir,notes", "rir,notes,set_type").replace("135.0,2,", "135.0,2,,warmup")
    message = assert_import_fails(program, text, ErrorKind.PARSE)
    assert "set_type" in message


def test_import_rejects_extra_values(program: ProgramRepository):
    text = SINGLE_SET.replace("1,Chest,", "1,Chest,,surprise")
    assert_import_fails(program, text, ErrorKind.PARSE)


def test_import_rejects_malformed_section_header(program: ProgramRepository):
    text = SINGLE_SET.replace("[DAYS]", "[days of week]")
    assert_import_fails(program, text, ErrorKind.PARSE)


def test_import_rejects_repeated_section(program: ProgramRepository):
    text = SINGLE_SET + "[WORKOUT_GROUPS]\nid,name,notes\n2,Back,\n"
    assert_import_fails(program, text, ErrorKind.PARSE)


def test_import_rejects_rows_outside_sections(program: ProgramRepository):
    assert_import_fails(program, "stray,row\n" + SINGLE_SET, ErrorKind.PARSE)


def test_import_rejects_unterminated_quote(program: ProgramRepository):
    text = SINGLE_SET.replace("1,Chest,", '1,Chest,"never closed')
    assert_import_fails(program, text, ErrorKind.PARSE)


def test_parse_document_collects_every_error():
    text = "[WORKOUT_GROUPS]\nid,name\n1,Chest,x\n\n[BAD HEADER]\n"
    with pytest.raises(ProgramError) as exc_info:
        parse_document(text)
    assert exc_info.value.kind is ErrorKind.PARSE
    assert "[WORKOUT_GROUPS] row 1" in exc_info.value.message
    assert "malformed section header" in exc_info.value.message


# ---------------------------------------------------------------------------
# Failures after clearing
# ---------------------------------------------------------------------------


def test_post_validation_failure_leaves_store_cleared(program: ProgramRepository):
    # Gaps in day_order pass the document checks but break the stored program.
    text = SINGLE_SET.replace("1,Monday,1", "1,Monday,1\n2,Tuesday,3")
    result = import_document(program, text)

    assert not result.ok
    assert result.kind is ErrorKind.INTEGRITY
    assert result.state is DecodeState.POST_VALIDATING
    assert "day_order" in result.message
    assert set(result.counts.values()) == {0}
    assert export_document(program) == ""
    # Sequences were reset along with the rows.
    assert program.create_workout_group("Arms").id == 1


def test_post_validation_catches_set_order_gaps(repo: ProgramRepository):
    text = SINGLE_SET.replace(
        "1,1,1,1,1,8,135.0,2,\n", "1,1,1,1,1,8,135.0,2,\n2,1,1,1,3,8,135.0,2,\n"
    )
    result = import_document(repo, text)
    assert result.kind is ErrorKind.INTEGRITY
    assert repo.list_workout_sets() == []


def test_store_error_while_inserting_leaves_store_cleared(program: ProgramRepository, monkeypatch):
    def conflicting(*args, **kwargs):
        raise ProgramError(ErrorKind.CONFLICT, "Conflicting row")

    monkeypatch.setattr(program, "create_workout_set", conflicting)
    result = import_document(program, SINGLE_SET)

    assert not result.ok
    assert result.kind is ErrorKind.INTEGRITY
    assert result.state is DecodeState.INSERTING
    assert set(result.counts.values()) == {0}
    assert export_document(program) == ""
    assert program.create_workout_group("Arms").id == 1


def test_unexpected_error_while_inserting_is_reported(program: ProgramRepository, monkeypatch):
    def broken(*args, **kwargs):
        raise OverflowError("Python int too large to convert to SQLite INTEGER")

    monkeypatch.setattr(program, "create_exercise", broken)
    result = import_document(program, SINGLE_SET)

    assert not result.ok
    assert result.kind is ErrorKind.INTERNAL
    assert result.state is DecodeState.INSERTING
    assert "OverflowError" in result.message
    assert set(result.counts.values()) == {0}
    assert export_document(program) == ""
    assert program.create_workout_group("Arms").id == 1


def test_cancelled_import_keeps_completed_sections(repo: ProgramRepository):
    polls = []

    def cancel() -> bool:
        polls.append(True)
        return len(polls) > 2

    result = import_document(repo, SINGLE_SET, cancel=cancel)
    assert not result.ok
    assert result.kind is ErrorKind.INTERNAL
    assert "[DAYS]" in result.message
    assert [g.name for g in repo.list_workout_groups()] == ["Chest"]
    assert [e.name for e in repo.list_exercises()] == ["Bench"]
    assert repo.list_days() == []
