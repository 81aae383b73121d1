import csv

import pytest

from subcover.core.config import DEFAULT_CLASS_NAMES, Settings
from subcover.services.assignment_engine import AssignmentEngine
from subcover.services.assignment_store import AssignmentStore
from subcover.services.name_resolver import NameResolver
from subcover.services.registry import TeacherRegistry

TIMETABLE_HEADER = ["Day", "Period", *DEFAULT_CLASS_NAMES]


def timetable_row(day, period, teachers_by_class=None):
    teachers_by_class = teachers_by_class or {}
    return [day, str(period), *[teachers_by_class.get(name, "empty") for name in DEFAULT_CLASS_NAMES]]


def timetable_rows(entries):
    """entries: iterable of (day, period, {class_name: teacher})."""
    return [TIMETABLE_HEADER, *[timetable_row(day, period, teachers) for day, period, teachers in entries]]


@pytest.fixture()
def data_dir(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    return directory


@pytest.fixture()
def write_timetable(data_dir):
    def _write(entries, filename="timetable_file.csv"):
        path = data_dir / filename
        with path.open("w", newline="", encoding="utf-8") as handle:
            csv.writer(handle).writerows(timetable_rows(entries))
        return path

    return _write


@pytest.fixture()
def write_roster(data_dir):
    def _write(rows, filename="Substitude_file.csv", header=("Name", "Phone")):
        path = data_dir / filename
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            if header:
                writer.writerow(header)
            writer.writerows(rows)
        return path

    return _write


@pytest.fixture()
def settings(data_dir):
    return Settings(_env_file=None, data_dir=data_dir)


@pytest.fixture()
def store(settings):
    return AssignmentStore(settings.data_dir, absentees_filename=settings.absentees_filename)


@pytest.fixture()
def engine(settings, store):
    return AssignmentEngine(settings, store=store)


@pytest.fixture()
def resolver():
    return NameResolver(TeacherRegistry())
