import argparse
import json
import logging
import sys

from sqlmodel import Session

from workout_planner.config import get_settings
from workout_planner.database import build_engine, create_db_and_tables
from workout_planner.errors import ErrorKind, ProgramError
from workout_planner.seed import seed_sample_program
from workout_planner.services.csv_codec import (
    CsvFormat,
    decode_document,
    describe_format,
    detect_format,
    export_document,
    import_document,
)
from workout_planner.services.pretty_print import export_pretty_print
from workout_planner.services.repository import ProgramRepository


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workout-planner", description="Export, import and seed a workout program"
    )
    parser.add_argument("--database", help="Database URL (default: from settings)")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Write the complete sectioned CSV")
    export.add_argument("-o", "--output", help="Output file path (default: stdout)")

    pretty = sub.add_parser("export-pretty", help="Write the human-readable program sheet")
    pretty.add_argument("-o", "--output", help="Output file path (default: stdout)")

    importer = sub.add_parser("import", help="Replace the program with a sectioned CSV file")
    importer.add_argument("input", help="Input CSV file path")

    detect = sub.add_parser("detect", help="Report which CSV format a file uses")
    detect.add_argument("input", help="Input CSV file path")

    seed = sub.add_parser("seed", help="Insert the sample week into an empty store")
    seed.add_argument("--reset", action="store_true", help="Wipe existing data first")
    return parser


def _read(path: str) -> str:
    with open(path, "rb") as f:
        return decode_document(f.read())


def _write(text: str, path: str | None) -> None:
    if path:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    else:
        sys.stdout.write(text)


def _run(args: argparse.Namespace, repo: ProgramRepository) -> int:
    if args.command == "export":
        _write(export_document(repo), args.output)
    elif args.command == "export-pretty":
        _write(export_pretty_print(repo), args.output)
    elif args.command == "import":
        result = import_document(repo, _read(args.input))
        for warning in result.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        if not result.ok:
            print(f"Error ({result.kind.value}): {result.message}", file=sys.stderr)
            return result.kind.exit_code
        print(json.dumps(result.counts))
    elif args.command == "detect":
        csv_format = detect_format(_read(args.input))
        print(f"{csv_format.value}: {describe_format(csv_format)}")
        if csv_format is not CsvFormat.CURRENT:
            return ErrorKind.FORMAT_UNSUPPORTED.exit_code
    elif args.command == "seed":
        if not seed_sample_program(repo, reset=args.reset):
            print("Store already holds data; nothing seeded (use --reset to replace it)")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    engine = build_engine(args.database or settings.database_url)
    try:
        create_db_and_tables(engine)
        with Session(engine) as session:
            return _run(args, ProgramRepository(session))
    except FileNotFoundError as e:
        print(f"Error: File not found: {e.filename}", file=sys.stderr)
        return 1
    except ProgramError as e:
        print(f"Error ({e.kind.value}): {e.message}", file=sys.stderr)
        return e.kind.exit_code
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
