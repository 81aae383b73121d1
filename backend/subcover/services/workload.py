from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from subcover.schemas.assignment import SubstituteAssignment


@dataclass
class WorkloadState:
    workload_by_phone: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    assigned_periods_by_phone: dict[str, set[int]] = field(default_factory=lambda: defaultdict(set))

    @classmethod
    def seeded_from(cls, assignments: Iterable[SubstituteAssignment]) -> "WorkloadState":
        state = cls()
        for assignment in assignments:
            state.record(assignment.substitute_phone, assignment.period)
        return state

    def workload(self, phone: str) -> int:
        return self.workload_by_phone.get(phone, 0)

    def holds_period(self, phone: str, period: int) -> bool:
        return period in self.assigned_periods_by_phone.get(phone, set())

    def has_capacity(self, phone: str, limit: int) -> bool:
        return self.workload(phone) < limit

    def record(self, phone: str, period: int) -> None:
        self.workload_by_phone[phone] += 1
        self.assigned_periods_by_phone[phone].add(period)
