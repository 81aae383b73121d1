from __future__ import annotations

from dataclasses import dataclass, field
import logging

from subcover.core.config import NameMatchThresholds, Settings
from subcover.services.name_resolver import NameResolver
from subcover.services.registry import TeacherRegistry
from subcover.services.roster_parser import load_roster_file, parse_roster
from subcover.services.timetable_parser import (
    ScheduleGrid,
    TeacherSchedule,
    TimetableParseResult,
    expected_column_count,
    load_timetable_file,
    parse_timetable,
)

logger = logging.getLogger(__name__)


@dataclass
class TeacherDirectory:
    registry: TeacherRegistry
    resolver: NameResolver
    timetable: TimetableParseResult
    warnings: list[str] = field(default_factory=list)

    @property
    def grid(self) -> ScheduleGrid:
        return self.timetable.grid

    @property
    def teacher_schedule(self) -> TeacherSchedule:
        return self.timetable.teacher_schedule


def build_teacher_directory(
    timetable_rows: list[list[str]],
    roster_rows: list[list[str]] | None = None,
    *,
    class_names: list[str] | None = None,
    thresholds: NameMatchThresholds | None = None,
    default_grade_level: int = 10,
) -> TeacherDirectory:
    """Merge roster and timetable names into one registry.

    The roster is registered first so that candidate order follows the
    roster file and phone numbers are attached before timetable variants
    are merged in.
    """
    registry = TeacherRegistry()
    resolver = NameResolver(registry, thresholds, default_grade_level=default_grade_level)
    warnings: list[str] = []

    if roster_rows:
        roster = parse_roster(roster_rows, resolver)
        warnings.extend(roster.warnings)

    timetable = parse_timetable(timetable_rows, resolver, class_names=class_names)
    warnings.extend(timetable.warnings)

    return TeacherDirectory(registry=registry, resolver=resolver, timetable=timetable, warnings=warnings)


def load_teacher_directory(settings: Settings) -> TeacherDirectory:
    """Read the configured roster and timetable files; a missing timetable is fatal."""
    warnings: list[str] = []
    try:
        roster_rows = load_roster_file(settings.roster_path)
    except UnicodeDecodeError:
        roster_rows = None
        message = f"Substitute roster file is not valid UTF-8 text and was ignored: {settings.roster_path}"
    else:
        message = f"Substitute roster file not found: {settings.roster_path}" if roster_rows is None else ""
    if message:
        logger.warning(message)
        warnings.append(message)

    timetable_rows = load_timetable_file(
        settings.timetable_path,
        expected_columns=expected_column_count(settings.class_names),
        warnings=warnings,
    )
    directory = build_teacher_directory(
        timetable_rows,
        roster_rows,
        class_names=settings.class_names,
        thresholds=settings.name_match_thresholds(),
        default_grade_level=settings.default_grade_level,
    )
    directory.warnings[:0] = warnings
    return directory
