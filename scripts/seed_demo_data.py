"""Write a small demo timetable, substitute roster and absentee snapshot into the data directory.

Run:
  PYTHONPATH=backend python scripts/seed_demo_data.py
"""

from __future__ import annotations

import csv
from datetime import datetime, timezone

from subcover.core.config import get_settings
from subcover.schemas.assignment import AbsenceRecord
from subcover.services.assignment_store import AssignmentStore

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

# Regular teachers and the class columns they own.
TIMETABLE_TEACHERS = {
    "Sir Bakir Shah": ["10A", "9B", "8A"],
    "Madam Hina Javed": ["10B", "7A"],
    "Miss Ayesha Khan": ["9A", "6C"],
    "Sir Imran Qureshi": ["10C", "8B"],
    "Sir Waqar Ali": ["7C"],
}

SUBSTITUTE_ROSTER = [
    ("Sir Waqar Ali", "+92 311 3588606", "10"),
    ("Sir Fahad Malik", "+92 315 6103995", "10"),
    ("Miss Sana Tariq", "+92 300 1112233", "8"),
    ("Sir Usman Ghani", "+92 321 4455667", "9"),
]

PERIODS = range(1, 9)


def build_timetable_rows(class_names: list[str]) -> list[list[str]]:
    rows = [["Day", "Period", *class_names]]
    for day in WEEKDAYS:
        for period in PERIODS:
            cells = {class_name: "empty" for class_name in class_names}
            # One class per teacher per period, rotating; every fourth period is free.
            if period % 4:
                for name, classes in TIMETABLE_TEACHERS.items():
                    class_name = classes[period % len(classes)]
                    if class_name in cells:
                        cells[class_name] = name
            rows.append([day, str(period), *cells.values()])
    return rows


def main() -> None:
    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    with settings.timetable_path.open("w", newline="", encoding="utf-8") as handle:
        csv.writer(handle).writerows(build_timetable_rows(settings.class_names))

    with settings.roster_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(["Name", "Phone", "Grade"])
        writer.writerows(SUBSTITUTE_ROSTER)

    store = AssignmentStore(settings.data_dir, absentees_filename=settings.absentees_filename)
    store.save_absentees(
        [
            AbsenceRecord(name="Sir Bakir Shah", timestamp=datetime.now(timezone.utc)),
            AbsenceRecord(name="madam hina javed", timestamp=datetime.now(timezone.utc)),
        ]
    )

    print(f"Timetable: {settings.timetable_path}")
    print(f"Roster: {settings.roster_path}")
    print(f"Absentees: {settings.absentees_path}")


if __name__ == "__main__":
    main()
