from __future__ import annotations

import csv
from dataclasses import dataclass, field
import io
import logging
from pathlib import Path

from pydantic import ValidationError

from subcover.core.config import DEFAULT_CLASS_NAMES
from subcover.core.exceptions import SourceFileMissingError, TimetableFormatError
from subcover.schemas.teacher import ScheduleSlot
from subcover.services.name_resolver import NameResolver
from subcover.services.names import normalize_name

logger = logging.getLogger(__name__)

DAY_ALIASES = {
    "monday": "monday",
    "mon": "monday",
    "tuesday": "tuesday",
    "tue": "tuesday",
    "tues": "tuesday",
    "wednesday": "wednesday",
    "wed": "wednesday",
    "thursday": "thursday",
    "thurday": "thursday",
    "thu": "thursday",
    "thur": "thursday",
    "thurs": "thursday",
    "friday": "friday",
    "fri": "friday",
    "saturday": "saturday",
    "sat": "saturday",
    "sunday": "sunday",
    "sun": "sunday",
}
EMPTY_CELL = "empty"

ScheduleGrid = dict[str, dict[int, list[str | None]]]
TeacherSchedule = dict[str, list[ScheduleSlot]]


def normalize_day(value: str | None) -> str | None:
    if not value:
        return None
    return DAY_ALIASES.get(value.strip().strip(".").lower())


def expected_column_count(class_names: list[str] | None = None) -> int:
    return 2 + len(class_names or DEFAULT_CLASS_NAMES)


@dataclass
class TimetableParseResult:
    grid: ScheduleGrid = field(default_factory=dict)
    teacher_schedule: TeacherSchedule = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def teachers_at(self, day: str, period: int) -> set[str]:
        return {name for name in self.grid.get(day, {}).get(period, []) if name}

    def slots_for(self, teacher_name: str, day: str) -> list[ScheduleSlot]:
        return [slot for slot in self.teacher_schedule.get(teacher_name, []) if slot.day == day]


def _read_rows(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text), strict=True, skipinitialspace=True)
    return [[cell.strip() for cell in row] for row in reader if any(cell.strip() for cell in row)]


def _malformed_rows(rows: list[list[str]], expected_columns: int) -> list[int]:
    return [index for index, row in enumerate(rows, start=1) if len(row) != expected_columns]


def repair_timetable_text(text: str, *, expected_columns: int) -> str:
    """Drop stray quotes on unbalanced lines and trim or pad every line to the expected width."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for line in text.splitlines():
        if not line.strip():
            continue
        if line.count('"') % 2:
            line = line.replace('"', "")
        try:
            cells = next(csv.reader([line], strict=True, skipinitialspace=True))
        except csv.Error:
            cells = line.replace('"', "").split(",")
        cells = [cell.strip() for cell in cells]
        if len(cells) > expected_columns:
            cells = cells[:expected_columns]
        else:
            cells.extend([""] * (expected_columns - len(cells)))
        writer.writerow(cells)
    return buffer.getvalue()


def read_timetable_text(
    text: str,
    *,
    expected_columns: int | None = None,
    warnings: list[str] | None = None,
) -> list[list[str]]:
    expected = expected_columns or expected_column_count()
    original_rows: list[list[str]] | None
    try:
        original_rows = _read_rows(text)
    except csv.Error as exc:
        logger.warning("Timetable CSV could not be parsed as-is: %s", exc)
        original_rows = None

    if original_rows == []:
        raise TimetableFormatError("Timetable file is empty")
    if original_rows is not None and not _malformed_rows(original_rows, expected):
        return original_rows

    repaired = repair_timetable_text(text, expected_columns=expected)
    try:
        repaired_rows = _read_rows(repaired)
    except csv.Error as exc:
        raise TimetableFormatError("Timetable CSV is malformed and could not be repaired", details={"error": str(exc)}) from exc

    if original_rows is not None and repaired_rows == original_rows:
        raise TimetableFormatError("Timetable CSV is malformed and repair made no change")
    bad_rows = _malformed_rows(repaired_rows, expected)
    if bad_rows:
        raise TimetableFormatError(
            "Timetable CSV is still malformed after repair",
            details={"rows": bad_rows},
        )

    message = f"Timetable CSV was repaired to {expected} columns per row"
    logger.warning(message)
    if warnings is not None:
        warnings.append(message)
    return repaired_rows


def load_timetable_file(
    path: Path,
    *,
    expected_columns: int | None = None,
    warnings: list[str] | None = None,
) -> list[list[str]]:
    if not path.exists():
        raise SourceFileMissingError("Timetable", str(path))
    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TimetableFormatError("Timetable file is not valid UTF-8 text", details={"path": str(path)}) from exc
    return read_timetable_text(text, expected_columns=expected_columns, warnings=warnings)


def parse_timetable(
    rows: list[list[str]],
    resolver: NameResolver,
    *,
    class_names: list[str] | None = None,
) -> TimetableParseResult:
    classes = list(class_names or DEFAULT_CLASS_NAMES)
    result = TimetableParseResult()

    for row_number, row in enumerate(rows[1:], start=2):
        if not row or not any(cell.strip() for cell in row):
            continue

        day = normalize_day(row[0])
        if day is None:
            result.warnings.append(f"Timetable row {row_number}: unknown day {row[0]!r}, row skipped")
            continue
        try:
            period = int(row[1].strip())
            if period < 0:
                raise ValueError(period)
        except (IndexError, ValueError):
            raw_period = row[1] if len(row) > 1 else ""
            result.warnings.append(f"Timetable row {row_number}: invalid period {raw_period!r}, row skipped")
            continue

        day_grid = result.grid.setdefault(day, {})
        if period in day_grid:
            result.warnings.append(
                f"Timetable row {row_number}: duplicate entry for {day} period {period}, row skipped"
            )
            continue

        slots: list[str | None] = []
        for offset, class_name in enumerate(classes):
            column = offset + 2
            cell = row[column].strip() if column < len(row) else ""
            if not cell or cell.lower() == EMPTY_CELL:
                slots.append(None)
                continue
            if not normalize_name(cell):
                result.warnings.append(
                    f"Timetable row {row_number}: unusable teacher name {cell!r} for {class_name}"
                )
                slots.append(None)
                continue
            try:
                teacher = resolver.register_or_match(cell, source="timetable")
            except ValidationError:
                result.warnings.append(
                    f"Timetable row {row_number}: unusable teacher name ({len(cell)} characters) for {class_name}"
                )
                slots.append(None)
                continue
            slots.append(teacher.canonical_name)
            result.teacher_schedule.setdefault(teacher.canonical_name, []).append(
                ScheduleSlot(day=day, period=period, class_name=class_name)
            )
        day_grid[period] = slots

    for slots in result.teacher_schedule.values():
        slots.sort(key=ScheduleSlot.sort_key)

    logger.info(
        "Parsed timetable: %d teachers across %d days",
        len(result.teacher_schedule),
        len(result.grid),
    )
    return result
