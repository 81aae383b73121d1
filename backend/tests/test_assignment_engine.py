from datetime import date, datetime, timedelta, timezone
import shutil

import pytest

from subcover.core.config import Settings
from subcover.core.exceptions import SourceFileMissingError
from subcover.schemas.assignment import AbsenceRecord, SubstituteAssignment
from subcover.services.assignment_engine import AssignmentEngine, class_grade, weekday_name

WAQAR = ("Sir Waqar Ali", "+923113588606", "10")
FAHAD = ("Sir Fahad Malik", "+923156103995", "10")
SANA = ("Miss Sana Tariq", "+923001112233", "8")

BAKIR_MONDAY = [
    ("Monday", 1, {"10A": "Sir Bakir Shah"}),
    ("Monday", 2, {"9B": "Sir Bakir Shah"}),
    ("Monday", 3, {"8A": "Sir Bakir Shah"}),
]


def next_weekday(start: date, weekday: int) -> date:
    return start + timedelta(days=(weekday - start.weekday()) % 7)


RUN_DATE = next_weekday(date(2026, 1, 1), 0)


@pytest.fixture()
def write_sources(write_timetable, write_roster):
    def _write(entries=BAKIR_MONDAY, roster=(WAQAR, FAHAD)):
        write_timetable(entries)
        write_roster(roster, header=("Name", "Phone", "Grade"))

    return _write


def engine_with(data_dir, **overrides):
    return AssignmentEngine(Settings(_env_file=None, data_dir=data_dir, **overrides))


def covers(result):
    return [(item.original_teacher, item.period, item.class_name, item.substitute) for item in result.assignments]


def test_class_grade_and_weekday_helpers():
    assert class_grade("10A") == 10
    assert class_grade("8C") == 8
    assert class_grade("Library") == 0
    assert weekday_name(RUN_DATE) == "monday"


def test_lightest_workload_wins_and_ties_follow_roster_order(engine, write_sources):
    write_sources()

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert not result.fatal
    assert result.day == "monday"
    assert covers(result) == [
        ("Sir Bakir Shah", 1, "10A", "Sir Waqar Ali"),
        ("Sir Bakir Shah", 2, "9B", "Sir Fahad Malik"),
        ("Sir Bakir Shah", 3, "8A", "Sir Waqar Ali"),
    ]
    assert result.assignments[0].substitute_phone == "+923113588606"
    assert result.warnings == []
    assert all(report.passed for report in result.verification)


def test_absent_teachers_never_substitute(engine, write_sources):
    write_sources(BAKIR_MONDAY + [("Monday", 4, {"10B": "Waqar Ali"})])

    result = engine.run(RUN_DATE, ["Sir Bakir Shah", "sir waqar ali"])

    assert len(result.assignments) == 4
    assert {item.substitute for item in result.assignments} == {"Sir Fahad Malik"}
    assert ("Sir Waqar Ali", 4, "10B", "Sir Fahad Malik") in covers(result)


def test_substitute_never_holds_a_period_twice(engine, write_sources):
    write_sources([("Monday", 1, {"10A": "Sir Bakir Shah", "10B": "Madam Hina Javed"})])

    result = engine.run(RUN_DATE, ["Sir Bakir Shah", "Madam Hina Javed"])

    assert covers(result) == [
        ("Sir Bakir Shah", 1, "10A", "Sir Waqar Ali"),
        ("Madam Hina Javed", 1, "10B", "Sir Fahad Malik"),
    ]


def test_daily_cap_leaves_periods_uncovered(data_dir, write_sources):
    write_sources(roster=[WAQAR])

    result = engine_with(data_dir, max_daily_workload=2).run(RUN_DATE, ["Sir Bakir Shah"])

    assert [item.period for item in result.assignments] == [1, 2]
    assert result.warnings == [
        "No substitute found for Sir Bakir Shah period 3 (8A)",
        "1 affected period(s) could not be covered",
    ]


def test_busy_substitute_is_skipped(engine, write_sources):
    write_sources([("Monday", 1, {"10A": "Sir Bakir Shah", "10B": "waqar ali"})])

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert covers(result) == [("Sir Bakir Shah", 1, "10A", "Sir Fahad Malik")]


def test_lower_grade_substitute_cannot_cover_senior_class(engine, write_sources):
    write_sources([("Monday", 1, {"10A": "Sir Bakir Shah"})], roster=[("Sir Fahad Malik", "+923156103995", "8")])

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert result.assignments == []
    assert "No substitute found for Sir Bakir Shah period 1 (10A)" in result.warnings


def test_senior_teacher_is_fallback_for_junior_class_when_reserved(data_dir, write_sources):
    write_sources([("Monday", 1, {"8A": "Sir Bakir Shah"})], roster=[WAQAR, ("Sir Fahad Malik", "+923156103995", "7")])

    result = engine_with(data_dir, reserve_senior_for_fallback=True).run(RUN_DATE, ["Sir Bakir Shah"])

    assert covers(result) == [("Sir Bakir Shah", 1, "8A", "Sir Waqar Ali")]
    assert result.warnings == ["Grade fallback: Sir Waqar Ali (grade 10) assigned to cover 8A (grade 8)"]


def test_matching_grade_is_preferred_over_fallback(data_dir, write_sources):
    write_sources([("Monday", 1, {"8A": "Sir Bakir Shah"})], roster=[WAQAR, SANA])

    result = engine_with(data_dir, reserve_senior_for_fallback=True).run(RUN_DATE, ["Sir Bakir Shah"])

    assert covers(result) == [("Sir Bakir Shah", 1, "8A", "Miss Sana Tariq")]
    assert result.warnings == []


def test_unknown_and_idle_absentees_become_warnings(engine, write_sources):
    write_sources()

    result = engine.run(RUN_DATE, ["Sir Bakir Shah", "Mr Nobody Here", "Sir Fahad Malik", "bakir shah"])

    assert "Absent teacher not found in timetable or roster: Mr Nobody Here" in result.warnings
    assert "No classes scheduled for Sir Fahad Malik on monday" in result.warnings
    assert {item.substitute for item in result.assignments} == {"Sir Waqar Ali"}
    assert len(result.assignments) == 3


def test_missing_timetable_returns_fatal_result(engine, data_dir, store):
    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert result.fatal
    assert result.assignments == []
    assert result.warnings == [f"FATAL: Timetable file not found: {data_dir / 'timetable_file.csv'}"]
    assert result.logs[-1].status == "error"
    assert not store.assignments_path(RUN_DATE).exists()
    assert len(store.load_history(RUN_DATE)) == 1


def test_run_strict_raises_fatal_errors(engine):
    with pytest.raises(SourceFileMissingError):
        engine.run_strict(RUN_DATE, ["Sir Bakir Shah"])


def test_missing_roster_is_a_warning(engine, write_timetable):
    write_timetable(BAKIR_MONDAY)

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert not result.fatal
    assert result.warnings[0].startswith("Substitute roster file not found")
    assert "3 affected period(s) could not be covered" in result.warnings


def test_absentees_come_from_snapshot_for_the_date(engine, store, write_sources):
    write_sources()
    store.save_absentees(
        [
            AbsenceRecord(name="Sir Bakir Shah", timestamp=datetime(2026, 1, 5, 7, 0, tzinfo=timezone.utc)),
            AbsenceRecord(name="Sir Waqar Ali", timestamp=datetime(2026, 1, 4, 7, 0, tzinfo=timezone.utc)),
        ]
    )

    result = engine.run(RUN_DATE)

    assert len(result.assignments) == 3
    assert {item.substitute for item in result.assignments} == {"Sir Waqar Ali", "Sir Fahad Malik"}


def test_empty_snapshot_is_reported(engine, write_sources):
    write_sources()

    result = engine.run(RUN_DATE)

    assert result.assignments == []
    assert result.warnings == ["No absent teachers recorded for 2026-01-05"]


@pytest.mark.parametrize("content", [b"{broken", b"\xff\xfe\x00garbage"])
def test_corrupt_snapshot_is_fatal(engine, store, write_sources, content):
    write_sources()
    store.absentees_path.write_bytes(content)

    result = engine.run(RUN_DATE)

    assert result.fatal
    assert result.assignments == []
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("FATAL: Absentee snapshot could not be parsed")


def test_undecodable_prior_assignments_are_reset(engine, store, write_sources):
    write_sources()
    path = store.assignments_path(RUN_DATE)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\xff\xfe\x00garbage")

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert not result.fatal
    assert len(result.assignments) == 3
    assert result.warnings == ["Stored assignments for 2026-01-05 were unreadable; starting from an empty list"]


def test_undecodable_timetable_is_fatal(engine, data_dir, write_roster):
    write_roster([WAQAR, FAHAD])
    (data_dir / "timetable_file.csv").write_bytes(b"Day,Period\n\xff\xfe\x00Monday,1\n")

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert result.fatal
    assert result.warnings == ["FATAL: Timetable file is not valid UTF-8 text"]


def test_out_of_range_timetable_rows_do_not_stop_the_run(engine, write_sources):
    write_sources(
        [
            ("Monday", -1, {"10A": "Sir Bakir Shah"}),
            ("Monday", 2, {"9B": "Sir Bakir Shah", "9C": "Sir " + "x" * 250}),
        ]
    )

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert not result.fatal
    assert covers(result) == [("Sir Bakir Shah", 2, "9B", "Sir Waqar Ali")]
    assert result.warnings == [
        "Timetable row 2: invalid period '-1', row skipped",
        "Timetable row 3: unusable teacher name (254 characters) for 9C",
    ]


def prior_cover(substitute, phone, period=5, class_name="7A", original="Madam Hina Javed"):
    return SubstituteAssignment(
        original_teacher=original,
        period=period,
        class_name=class_name,
        substitute=substitute,
        substitute_phone=phone,
        day="monday",
    )


def test_prior_substitutes_are_not_reused(engine, store, write_sources):
    write_sources(BAKIR_MONDAY + [("Monday", 5, {"7A": "Madam Hina Javed"})])
    store.save_assignments(RUN_DATE, [prior_cover(*WAQAR[:2])], [], [])

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert {item.substitute for item in result.assignments} == {"Sir Fahad Malik"}
    stored = store.load_assignments(RUN_DATE)
    assert len(stored) == 4
    assert stored[0].original_teacher == "Madam Hina Javed"


def test_rerun_for_same_absentees_adds_nothing(engine, store, write_sources):
    write_sources()

    first = engine.run(RUN_DATE, ["Sir Bakir Shah"])
    second = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert len(first.assignments) == 3
    assert second.assignments == []
    assert second.warnings == []
    assert store.load_assignments(RUN_DATE) == first.assignments


def test_absent_prior_substitute_is_flagged(engine, store, write_sources):
    write_sources()
    store.save_assignments(
        RUN_DATE,
        [prior_cover(*WAQAR[:2], period=1, class_name="10A", original="Sir Bakir Shah")],
        [],
        [],
    )

    result = engine.run(RUN_DATE, ["Sir Waqar Ali"])

    assert (
        "Conflict: Sir Waqar Ali is marked absent but already covers period 1 (10A) for Sir Bakir Shah"
        in result.warnings
    )


def test_existing_overload_is_reported(data_dir, store, write_sources):
    write_sources()
    store.save_assignments(
        RUN_DATE,
        [prior_cover(*WAQAR[:2], period=period) for period in (5, 6, 7)],
        [],
        [],
    )

    result = engine_with(data_dir, max_daily_workload=2).run(RUN_DATE, [])

    assert result.assignments == []
    assert result.warnings == [
        "Verification failed - Substitute Assignment Limits: "
        "1 substitutes exceeded max assignments (2): Sir Waqar Ali (3)"
    ]


def test_runs_are_deterministic(tmp_path, data_dir, write_sources):
    write_sources(roster=[WAQAR])
    results = []
    for name in ("first", "second"):
        directory = tmp_path / name
        directory.mkdir()
        for source in ("timetable_file.csv", "Substitude_file.csv"):
            shutil.copy(data_dir / source, directory / source)
        engine = engine_with(directory, max_daily_workload=2)
        results.append(engine.run(RUN_DATE, ["Sir Bakir Shah", "Mr Nobody Here"]))

    first, second = results
    assert covers(first) == covers(second)
    assert first.warnings == second.warnings
    assert first.warnings == [
        "Absent teacher not found in timetable or roster: Mr Nobody Here",
        "No substitute found for Sir Bakir Shah period 3 (8A)",
        "1 affected period(s) could not be covered",
    ]


def test_run_persists_result_and_history(engine, store, write_sources):
    write_sources()

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert store.load_assignments(RUN_DATE) == result.assignments
    history = store.load_history(RUN_DATE)
    assert len(history) == 1
    assert history[0]["assignmentCount"] == 3
    assert [entry.action for entry in result.logs] == [
        "load_sources",
        "resolve_absentees",
        "build_candidate_pool",
        "assign_substitutes",
        "verify_assignments",
        "save_results",
    ]


def test_malformed_timetable_is_repaired(engine, data_dir, write_roster):
    write_roster([WAQAR, FAHAD])
    (data_dir / "timetable_file.csv").write_text(
        "Day,Period,10A,10B\nMonday,1,Sir Bakir Shah\n",
        encoding="utf-8",
    )

    result = engine.run(RUN_DATE, ["Sir Bakir Shah"])

    assert result.warnings == ["Timetable CSV was repaired to 17 columns per row"]
    assert covers(result) == [("Sir Bakir Shah", 1, "10A", "Sir Waqar Ali")]
