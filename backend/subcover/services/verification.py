from __future__ import annotations

from collections import Counter, defaultdict
from typing import Iterable

from subcover.core.config import AssignmentPolicy
from subcover.schemas.assignment import SubstituteAssignment
from subcover.schemas.teacher import Teacher
from subcover.schemas.verification import AssignmentStatistics, VerificationReport
from subcover.services.registry import TeacherRegistry
from subcover.services.timetable_parser import ScheduleGrid


def _substitute_key(assignment: SubstituteAssignment) -> str:
    return assignment.substitute_phone or assignment.substitute


def _report(check: str, failures: list[str], *, failure_summary: str, success: str) -> VerificationReport:
    if not failures:
        return VerificationReport(check=check, status="PASS", details=success)
    return VerificationReport(check=check, status="FAIL", details=f"{failure_summary}: {', '.join(failures)}")


class VerificationService:
    """Read-only audit of an assignment set. Reports never change the assignments."""

    def __init__(self, policy: AssignmentPolicy | None = None) -> None:
        self.policy = policy or AssignmentPolicy()

    def verify(
        self,
        assignments: list[SubstituteAssignment],
        *,
        grid: ScheduleGrid,
        registry: TeacherRegistry | None = None,
        day: str | None = None,
    ) -> list[VerificationReport]:
        return [
            self.check_workload_limits(assignments),
            self.check_availability(assignments, grid=grid, day=day),
            self.check_double_booking(assignments),
            self.check_workload_distribution(assignments, registry=registry),
        ]

    def _loads(self, assignments: Iterable[SubstituteAssignment]) -> tuple[Counter, dict[str, str]]:
        loads: Counter = Counter()
        names: dict[str, str] = {}
        for assignment in assignments:
            key = _substitute_key(assignment)
            loads[key] += 1
            names.setdefault(key, assignment.substitute)
        return loads, names

    def check_workload_limits(self, assignments: list[SubstituteAssignment]) -> VerificationReport:
        cap = self.policy.max_daily_workload
        loads, names = self._loads(assignments)
        failures = [f"{names[key]} ({count})" for key, count in loads.items() if count > cap]
        return _report(
            "Substitute Assignment Limits",
            failures,
            failure_summary=f"{len(failures)} substitutes exceeded max assignments ({cap})",
            success="All within limits",
        )

    def check_availability(
        self,
        assignments: list[SubstituteAssignment],
        *,
        grid: ScheduleGrid,
        day: str | None = None,
    ) -> VerificationReport:
        conflicts: list[str] = []
        for assignment in assignments:
            assignment_day = assignment.day or day
            if assignment_day is None:
                continue
            teaching = grid.get(assignment_day, {}).get(assignment.period, [])
            if assignment.substitute in teaching:
                conflicts.append(f"{assignment.substitute} period {assignment.period} ({assignment.class_name})")
        return _report(
            "Availability Validation",
            conflicts,
            failure_summary=f"{len(conflicts)} scheduling conflicts found",
            success="No conflicts",
        )

    def check_double_booking(self, assignments: list[SubstituteAssignment]) -> VerificationReport:
        periods: dict[str, Counter] = defaultdict(Counter)
        names: dict[str, str] = {}
        for assignment in assignments:
            key = _substitute_key(assignment)
            periods[key][assignment.period] += 1
            names.setdefault(key, assignment.substitute)

        failures = [
            f"{names[key]} period {period}"
            for key, counter in periods.items()
            for period, count in sorted(counter.items())
            if count > 1
        ]
        return _report(
            "Period Double-Booking",
            failures,
            failure_summary=f"{len(failures)} double-booked periods",
            success="No substitute holds a period twice",
        )

    def _teacher_for(self, registry: TeacherRegistry | None, key: str, name: str) -> Teacher | None:
        if registry is None:
            return None
        return registry.find_by_phone(key) or registry.find_by_name(name)

    def check_workload_distribution(
        self,
        assignments: list[SubstituteAssignment],
        *,
        registry: TeacherRegistry | None = None,
    ) -> VerificationReport:
        loads, names = self._loads(assignments)
        overloaded: list[str] = []
        for key, count in loads.items():
            teacher = self._teacher_for(registry, key, names[key])
            is_substitute = teacher.is_substitute if teacher is not None else True
            cap = self.policy.role_cap(is_substitute=is_substitute)
            if count > cap:
                overloaded.append(f"{names[key]} ({count}/{cap})")
        return _report(
            "Workload Distribution",
            overloaded,
            failure_summary=f"{len(overloaded)} teachers overloaded",
            success="Fair distribution",
        )

    def summarize(
        self,
        assignments: list[SubstituteAssignment],
        *,
        registry: TeacherRegistry | None = None,
    ) -> AssignmentStatistics:
        loads, names = self._loads(assignments)
        regulars = 0
        for key in loads:
            teacher = self._teacher_for(registry, key, names[key])
            if teacher is not None and not teacher.is_substitute:
                regulars += 1
        return AssignmentStatistics(
            total_assignments=len(assignments),
            substitutes_used=len(loads),
            regular_teachers_used=regulars,
        )
