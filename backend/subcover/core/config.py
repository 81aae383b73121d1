from functools import lru_cache
import json
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_CLASS_NAMES = [
    "10A", "10B", "10C",
    "9A", "9B", "9C",
    "8A", "8B", "8C",
    "7A", "7B", "7C",
    "6A", "6B", "6C",
]


class NameMatchThresholds(BaseModel):
    merge_threshold: float = Field(default=0.92, gt=0.0, le=1.0)
    substring_score: float = Field(default=0.95, ge=0.0, le=1.0)
    token_overlap_base: float = Field(default=0.85, ge=0.0, le=1.0)
    token_overlap_step: float = Field(default=0.1, ge=0.0, le=1.0)
    max_token_count_gap: int = Field(default=1, ge=0)
    generation_suffix_score: float = Field(default=0.9, ge=0.0, le=1.0)
    phonetic_key_length: int = Field(default=8, ge=1)


class AssignmentPolicy(BaseModel):
    """Limits shared by the assignment engine and the verification checks."""

    max_daily_workload: int = Field(default=6, ge=1)
    max_substitute_assignments: int = Field(default=3, ge=1)
    max_regular_assignments: int = Field(default=2, ge=1)
    junior_grade_ceiling: int = Field(default=8, ge=0)
    reserve_senior_for_fallback: bool = False
    default_grade_level: int = Field(default=10, ge=0)

    @property
    def senior_grade_floor(self) -> int:
        return self.junior_grade_ceiling + 1

    def role_cap(self, *, is_substitute: bool) -> int:
        if is_substitute:
            return self.max_substitute_assignments
        return self.max_regular_assignments


class Settings(BaseSettings):
    # Resolve to backend/.env so scripts work from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8", extra="ignore")

    project_name: str = "SubCover"

    data_dir: Path = Path("data")
    timetable_filename: str = "timetable_file.csv"
    roster_filename: str = "Substitude_file.csv"
    absentees_filename: str = "absent_teachers.json"

    class_names: list[str] = list(DEFAULT_CLASS_NAMES)

    max_daily_workload: int = 6
    max_substitute_assignments: int = 3
    max_regular_assignments: int = 2
    junior_grade_ceiling: int = 8
    reserve_senior_for_fallback: bool = False
    default_grade_level: int = 10

    name_merge_threshold: float = 0.92
    name_substring_score: float = 0.95
    name_token_overlap_base: float = 0.85
    name_token_overlap_step: float = 0.1
    name_generation_suffix_score: float = 0.9

    @field_validator("class_names", mode="before")
    @classmethod
    def split_class_names(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def timetable_path(self) -> Path:
        return self.data_dir / self.timetable_filename

    @property
    def roster_path(self) -> Path:
        return self.data_dir / self.roster_filename

    @property
    def absentees_path(self) -> Path:
        return self.data_dir / self.absentees_filename

    def assignment_policy(self) -> AssignmentPolicy:
        return AssignmentPolicy(
            max_daily_workload=self.max_daily_workload,
            max_substitute_assignments=self.max_substitute_assignments,
            max_regular_assignments=self.max_regular_assignments,
            junior_grade_ceiling=self.junior_grade_ceiling,
            reserve_senior_for_fallback=self.reserve_senior_for_fallback,
            default_grade_level=self.default_grade_level,
        )

    def name_match_thresholds(self) -> NameMatchThresholds:
        return NameMatchThresholds(
            merge_threshold=self.name_merge_threshold,
            substring_score=self.name_substring_score,
            token_overlap_base=self.name_token_overlap_base,
            token_overlap_step=self.name_token_overlap_step,
            generation_suffix_score=self.name_generation_suffix_score,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
