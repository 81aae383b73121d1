from __future__ import annotations

import csv
from dataclasses import dataclass, field
import io
import logging
from pathlib import Path
import re

from pydantic import ValidationError

from subcover.schemas.teacher import Teacher
from subcover.services.name_resolver import NameResolver
from subcover.services.names import normalize_name

logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")
GRADE_LEVELS = range(0, 21)


@dataclass
class RosterParseResult:
    teachers: list[Teacher] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def clean_phone(value: str | None) -> str:
    return _PHONE_SEPARATORS.sub("", value or "")


def _looks_like_header(row: list[str]) -> bool:
    phone = row[1] if len(row) > 1 else ""
    return not any(char.isdigit() for char in phone)


def read_roster_text(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text), skipinitialspace=True)
    return [[cell.strip() for cell in row] for row in reader if any(cell.strip() for cell in row)]


def load_roster_file(path: Path) -> list[list[str]] | None:
    if not path.exists():
        return None
    return read_roster_text(path.read_text(encoding="utf-8-sig"))


def parse_roster(rows: list[list[str]], resolver: NameResolver) -> RosterParseResult:
    result = RosterParseResult()
    seen: set[str] = set()

    for row_number, row in enumerate(rows, start=1):
        if row_number == 1 and _looks_like_header(row):
            continue
        name = row[0].strip() if row else ""
        if not name or not normalize_name(name):
            if name:
                result.warnings.append(f"Roster row {row_number}: unusable teacher name {name!r}")
            continue

        phone = clean_phone(row[1]) if len(row) > 1 else ""
        if not phone:
            result.warnings.append(f"Roster row {row_number}: {name} has no phone number and cannot substitute")

        grade_level: int | None = None
        raw_grade = row[2].strip() if len(row) > 2 else ""
        if raw_grade:
            try:
                grade_level = int(raw_grade)
                if grade_level not in GRADE_LEVELS:
                    raise ValueError(grade_level)
            except ValueError:
                grade_level = None
                result.warnings.append(
                    f"Roster row {row_number}: invalid grade level {raw_grade!r} for {name}, default kept"
                )

        try:
            teacher = resolver.register_or_match(name, phone or None, source="roster", grade_level=grade_level)
        except ValidationError:
            result.warnings.append(f"Roster row {row_number}: unusable teacher name ({len(name)} characters)")
            continue
        if teacher.phone and phone and teacher.phone != phone:
            result.warnings.append(
                f"Roster row {row_number}: {name} matched {teacher.canonical_name} who already has phone {teacher.phone}"
            )
        if teacher.canonical_id not in seen:
            seen.add(teacher.canonical_id)
            result.teachers.append(teacher)

    logger.info("Loaded %d substitute teachers", len(result.teachers))
    return result
