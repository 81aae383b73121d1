from typing import Literal

from pydantic import BaseModel


class VerificationReport(BaseModel):
    check: str
    status: Literal["PASS", "FAIL"]
    details: str

    @property
    def passed(self) -> bool:
        return self.status == "PASS"


class AssignmentStatistics(BaseModel):
    total_assignments: int
    substitutes_used: int
    regular_teachers_used: int
