from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from subcover.schemas.process_log import ProcessLogEntry
from subcover.schemas.verification import VerificationReport


class AbsenceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=200)
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    timestamp: datetime | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Absentee name cannot be blank")
        return trimmed

    def applies_to(self, target_date: date) -> bool:
        if self.timestamp is None:
            return True
        return self.timestamp.date() == target_date


class SubstituteAssignment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    original_teacher: str = Field(alias="originalTeacher", min_length=1)
    period: int = Field(ge=0)
    class_name: str = Field(alias="className", min_length=1)
    substitute: str = Field(min_length=1)
    substitute_phone: str = Field(default="", alias="substitutePhone")
    day: str | None = None

    def slot_key(self) -> tuple[str, int, str]:
        return self.original_teacher, self.period, self.class_name


class AssignmentRunResult(BaseModel):
    target_date: date
    day: str | None = None
    assignments: list[SubstituteAssignment] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    logs: list[ProcessLogEntry] = Field(default_factory=list)
    verification: list[VerificationReport] = Field(default_factory=list)
    fatal: bool = False
