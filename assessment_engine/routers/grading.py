from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from assessment_engine.core.clock import Clock
from assessment_engine.core.deps import get_clock, get_db, get_notification_channel
from assessment_engine.models.assignment import Assignment
from assessment_engine.repositories.assignments import AssignmentStore
from assessment_engine.schemas.grading import CorrectionsPayload, GradeZeroPayload, GradingResultRead
from assessment_engine.services.notifications import NotificationChannel
from assessment_engine.services.scoring import (
    GradingResult,
    QuestionCorrection,
    grade_as_zero,
    recompute_assignment_score,
    save_teacher_corrections,
)

router = APIRouter(tags=["grading"])


def _ensure_assignment_exists(db: Session, assignment_id: int) -> Assignment:
    assignment = AssignmentStore(db).get(assignment_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


def _to_read(assignment_id: int, result: GradingResult) -> GradingResultRead:
    return GradingResultRead(
        assignment_id=assignment_id,
        updated_count=result.updated_count,
        total_score=result.total_score,
        status=result.status,
    )


@router.post("/assignments/{assignment_id}/corrections", response_model=GradingResultRead)
def save_corrections(
    assignment_id: int,
    payload: CorrectionsPayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    channel: NotificationChannel = Depends(get_notification_channel),
):
    assignment = _ensure_assignment_exists(db, assignment_id)
    corrections = {
        s.question_id: QuestionCorrection(score=s.score, feedback=s.feedback)
        for s in payload.scores
    }
    result = save_teacher_corrections(
        db,
        assignment,
        corrections,
        clock(),
        teacher_notes=payload.teacher_notes,
        channel=channel,
    )
    return _to_read(assignment_id, result)


@router.post("/assignments/{assignment_id}/recompute", response_model=GradingResultRead)
def recompute(
    assignment_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    assignment = _ensure_assignment_exists(db, assignment_id)
    return _to_read(assignment_id, recompute_assignment_score(db, assignment, clock()))


@router.post("/assignments/{assignment_id}/grade-zero", response_model=GradingResultRead)
def grade_zero(
    assignment_id: int,
    payload: GradeZeroPayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    channel: NotificationChannel = Depends(get_notification_channel),
):
    assignment = _ensure_assignment_exists(db, assignment_id)
    result = grade_as_zero(db, assignment, clock(), teacher_notes=payload.teacher_notes, channel=channel)
    return _to_read(assignment_id, result)
