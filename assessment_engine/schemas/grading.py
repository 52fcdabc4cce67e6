from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from assessment_engine.models.enums import AssignmentStatus


class QuestionScore(BaseModel):
    question_id: int
    score: Decimal = Field(ge=0)
    feedback: Optional[str] = None


class CorrectionsPayload(BaseModel):
    scores: list[QuestionScore]
    teacher_notes: Optional[str] = None


class GradeZeroPayload(BaseModel):
    teacher_notes: Optional[str] = None


class GradingResultRead(BaseModel):
    assignment_id: int
    updated_count: int
    total_score: Decimal
    status: AssignmentStatus
