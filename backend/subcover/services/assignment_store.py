from __future__ import annotations

from datetime import date, datetime, timezone
import json
import logging
import os
from pathlib import Path
import tempfile
from threading import Lock

from pydantic import TypeAdapter, ValidationError

from subcover.core.exceptions import AbsenteeSourceError
from subcover.schemas.assignment import AbsenceRecord, SubstituteAssignment
from subcover.schemas.process_log import ProcessLogEntry

logger = logging.getLogger(__name__)

_ASSIGNMENT_LIST = TypeAdapter(list[SubstituteAssignment])
_ABSENCE_LIST = TypeAdapter(list[AbsenceRecord])

_date_locks: dict[tuple[str, str], Lock] = {}
_date_locks_guard = Lock()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _write_atomic(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        with handle:
            json.dump(payload, handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


class AssignmentStore:
    """File-backed store for one school's absentees, assignment results and run history.

    ``assignments/<date>.json`` holds the current result for a date and is
    replaced atomically on every save. ``history/<date>.jsonl`` gets one line
    per run and is never rewritten.
    """

    def __init__(self, data_dir: Path, *, absentees_filename: str = "absent_teachers.json") -> None:
        self.data_dir = Path(data_dir)
        self.absentees_path = self.data_dir / absentees_filename

    def assignments_path(self, target_date: date) -> Path:
        return self.data_dir / "assignments" / f"{target_date.isoformat()}.json"

    def history_path(self, target_date: date) -> Path:
        return self.data_dir / "history" / f"{target_date.isoformat()}.jsonl"

    def lock_for(self, target_date: date) -> Lock:
        key = (str(self.data_dir.resolve()), target_date.isoformat())
        with _date_locks_guard:
            lock = _date_locks.get(key)
            if lock is None:
                lock = Lock()
                _date_locks[key] = lock
            return lock

    def load_assignments(self, target_date: date, warnings: list[str] | None = None) -> list[SubstituteAssignment]:
        path = self.assignments_path(target_date)
        if not path.exists():
            logger.warning("No stored assignments for %s at %s; starting empty", target_date, path)
            return []

        def reset(reason: str) -> list[SubstituteAssignment]:
            message = f"Stored assignments for {target_date.isoformat()} were {reason}; starting from an empty list"
            logger.warning(message)
            if warnings is not None:
                warnings.append(message)
            return []

        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return reset("unreadable")
        if not raw.strip():
            return reset("empty")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return reset("unreadable")

        if isinstance(payload, dict) and "assignments" in payload:
            items = payload["assignments"]
        elif isinstance(payload, list):
            items = payload
        else:
            return reset("in an unknown format")

        try:
            return _ASSIGNMENT_LIST.validate_python(items)
        except ValidationError:
            return reset("invalid")

    def save_assignments(
        self,
        target_date: date,
        assignments: list[SubstituteAssignment],
        warnings: list[str],
        logs: list[ProcessLogEntry],
    ) -> None:
        saved_at = _utc_now().isoformat()
        serialized_assignments = [item.model_dump(mode="json", by_alias=True) for item in assignments]
        serialized_logs = [entry.model_dump(mode="json", by_alias=True) for entry in logs]

        _write_atomic(
            self.assignments_path(target_date),
            {
                "date": target_date.isoformat(),
                "updatedAt": saved_at,
                "assignments": serialized_assignments,
                "warnings": list(warnings),
                "logs": serialized_logs,
            },
        )

        self.append_history(target_date, warnings, logs, assignment_count=len(assignments))
        logger.info("Saved %d assignments for %s", len(assignments), target_date)

    def append_history(
        self,
        target_date: date,
        warnings: list[str],
        logs: list[ProcessLogEntry],
        *,
        assignment_count: int = 0,
    ) -> None:
        history_path = self.history_path(target_date)
        history_path.parent.mkdir(parents=True, exist_ok=True)
        record = {
            "savedAt": _utc_now().isoformat(),
            "assignmentCount": assignment_count,
            "warnings": list(warnings),
            "logs": [entry.model_dump(mode="json", by_alias=True) for entry in logs],
        }
        with history_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def load_history(self, target_date: date) -> list[dict]:
        path = self.history_path(target_date)
        if not path.exists():
            return []
        records: list[dict] = []
        for line_number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping unreadable history line %d in %s", line_number, path)
        return records

    def load_absentees(self, target_date: date) -> list[AbsenceRecord]:
        if not self.absentees_path.exists():
            logger.warning("Absentee snapshot not found: %s", self.absentees_path)
            return []
        try:
            payload = json.loads(self.absentees_path.read_text(encoding="utf-8") or "[]")
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise AbsenteeSourceError(
                "Absentee snapshot could not be parsed",
                details={"path": str(self.absentees_path), "error": str(exc)},
            ) from exc

        if isinstance(payload, dict):
            payload = payload.get("absent_teachers", [])
        try:
            records = _ABSENCE_LIST.validate_python(payload)
        except ValidationError as exc:
            raise AbsenteeSourceError(
                "Absentee snapshot has invalid records",
                details={"path": str(self.absentees_path), "errors": exc.error_count()},
            ) from exc
        return [record for record in records if record.applies_to(target_date)]

    def save_absentees(self, records: list[AbsenceRecord]) -> None:
        _write_atomic(
            self.absentees_path,
            [record.model_dump(mode="json", by_alias=True, exclude_none=True) for record in records],
        )
