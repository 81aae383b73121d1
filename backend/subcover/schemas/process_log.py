from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ProcessLogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    action: str = Field(min_length=1, max_length=100)
    details: str = ""
    status: Literal["info", "warning", "error"] = "info"
    duration_ms: float = Field(default=0.0, alias="durationMs", ge=0.0)
