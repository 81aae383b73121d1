from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DAY_ORDER = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class Teacher(BaseModel):
    canonical_id: str = Field(min_length=1, max_length=36)
    canonical_name: str = Field(min_length=1, max_length=200)
    variations: set[str] = Field(default_factory=set)
    phone: str = ""
    is_substitute: bool = False
    grade_level: int = Field(default=10, ge=0, le=20)
    is_regular: bool = False
    name_key: str = ""
    generation: Literal["", "junior", "senior"] = ""

    @field_validator("phone", mode="before")
    @classmethod
    def normalize_phone(cls, value: str | None) -> str:
        if value is None:
            return ""
        return "".join(str(value).split())

    def model_post_init(self, __context) -> None:
        self.variations.add(self.canonical_name)

    @property
    def can_substitute(self) -> bool:
        return bool(self.phone)

    def add_variation(self, raw_name: str) -> None:
        cleaned = raw_name.strip()
        if cleaned:
            self.variations.add(cleaned)

    def fill_phone(self, phone: str | None) -> bool:
        cleaned = "".join((phone or "").split())
        if cleaned and not self.phone:
            self.phone = cleaned
            return True
        return False


class ScheduleSlot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    day: str
    period: int = Field(ge=0)
    class_name: str = Field(alias="className", min_length=1, max_length=20)

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        day = value.strip().lower()
        if day not in DAY_ORDER:
            raise ValueError("Invalid day value")
        return day

    def sort_key(self) -> tuple[int, int]:
        return DAY_ORDER.index(self.day), self.period
