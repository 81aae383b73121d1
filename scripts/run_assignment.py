"""Assign substitutes for one date from the files in the configured data directory.

Run:
  PYTHONPATH=backend python scripts/run_assignment.py 2026-10-19 "Sir Bakir Shah"
  PYTHONPATH=backend python scripts/run_assignment.py 2026-10-19   # reads the absentee snapshot
"""

from __future__ import annotations

import argparse
from datetime import date
import json
import logging
import sys

from subcover.core.config import get_settings
from subcover.core.exceptions import FatalRunError
from subcover.services.assignment_engine import AssignmentEngine


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("date", type=date.fromisoformat, help="Date to cover, YYYY-MM-DD")
    parser.add_argument("absent", nargs="*", help="Absent teacher names; omit to use the absentee snapshot")
    parser.add_argument("--strict", action="store_true", help="Raise on fatal input errors instead of returning them")
    parser.add_argument("--json", action="store_true", help="Print the full run result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = AssignmentEngine(get_settings())
    absent = args.absent or None
    try:
        result = engine.run_strict(args.date, absent) if args.strict else engine.run(args.date, absent)
    except FatalRunError as exc:
        print(f"FATAL: {exc.message}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
        return 1 if result.fatal else 0

    print(f"{result.target_date.isoformat()} ({result.day}): {len(result.assignments)} new assignments")
    for item in result.assignments:
        print(f"  P{item.period} {item.class_name}: {item.substitute} covers {item.original_teacher} [{item.substitute_phone}]")
    for report in result.verification:
        print(f"  [{report.status}] {report.check}: {report.details}")
    for warning in result.warnings:
        print(f"  WARNING: {warning}")
    return 1 if result.fatal else 0


if __name__ == "__main__":
    sys.exit(main())
