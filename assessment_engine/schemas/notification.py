from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from assessment_engine.core.clock import as_utc


class AssessmentStartingSoonPayload(BaseModel):
    type: Literal["assessment_starting_soon"] = "assessment_starting_soon"
    assessment_id: int
    assessment_title: str
    scheduled_at: datetime
    url: str

    @field_validator("scheduled_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class AssessmentGradedPayload(BaseModel):
    type: Literal["assessment_graded"] = "assessment_graded"
    assessment_id: int
    assessment_title: str
    assignment_id: int
    score: Optional[float] = None
    url: str
