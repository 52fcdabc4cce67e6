from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from assessment_engine.models.enums import AssignmentStatus, UnavailableReason

AnswerValue = Union[list[int], int, str, None]


class AnswerRead(BaseModel):
    id: int
    question_id: int
    choice_id: Optional[int] = None
    answer_text: Optional[str] = None
    file_name: Optional[str] = None
    score: Optional[Decimal] = None
    feedback: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AssignmentRead(BaseModel):
    id: int
    assessment_id: int
    enrollment_id: int
    status: AssignmentStatus
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None
    score: Optional[Decimal] = None
    auto_score: Optional[Decimal] = None
    teacher_notes: Optional[str] = None
    forced_submission: bool = False
    security_violation: Optional[str] = None
    answers: list[AnswerRead] = []

    model_config = ConfigDict(from_attributes=True)


class AvailabilityRead(BaseModel):
    assessment_id: int
    available: bool
    reason: Optional[UnavailableReason] = None
    status: AssignmentStatus
    remaining_seconds: Optional[int] = None


class StartRequest(BaseModel):
    enrollment_id: int


class AnswersPayload(BaseModel):
    # question_id -> choice id, list of choice ids, or free text
    answers: dict[int, AnswerValue] = {}


class SecurityViolationReport(BaseModel):
    violation_type: str
    violation_details: Optional[str] = None
    answers: Optional[dict[int, AnswerValue]] = None
