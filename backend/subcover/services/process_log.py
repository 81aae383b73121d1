from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
import time
from typing import Iterator, Literal

from subcover.schemas.process_log import ProcessLogEntry

LogStatus = Literal["info", "warning", "error"]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessLog:
    def __init__(self) -> None:
        self.entries: list[ProcessLogEntry] = []

    def add(self, action: str, details: str = "", *, status: LogStatus = "info", duration_ms: float = 0.0) -> ProcessLogEntry:
        entry = ProcessLogEntry(
            timestamp=_utc_now(),
            action=action,
            details=details,
            status=status,
            duration_ms=round(max(duration_ms, 0.0), 3),
        )
        self.entries.append(entry)
        return entry

    def info(self, action: str, details: str = "") -> ProcessLogEntry:
        return self.add(action, details, status="info")

    def warning(self, action: str, details: str = "") -> ProcessLogEntry:
        return self.add(action, details, status="warning")

    def error(self, action: str, details: str = "") -> ProcessLogEntry:
        return self.add(action, details, status="error")

    @contextmanager
    def step(self, action: str, details: str = "") -> Iterator[dict]:
        """Time a block and record it; the yielded dict may override details and status."""
        outcome: dict = {"details": details, "status": "info"}
        started = time.perf_counter()
        try:
            yield outcome
        except Exception as exc:
            elapsed = (time.perf_counter() - started) * 1000
            self.add(action, str(exc) or exc.__class__.__name__, status="error", duration_ms=elapsed)
            raise
        elapsed = (time.perf_counter() - started) * 1000
        self.add(action, outcome["details"], status=outcome["status"], duration_ms=elapsed)
