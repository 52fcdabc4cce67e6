from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from assessment_engine.core.clock import Clock
from assessment_engine.core.deps import get_clock, get_db
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.assignment import Assignment
from assessment_engine.models.enums import AssignmentStatus
from assessment_engine.repositories.assignments import AssignmentStore
from assessment_engine.repositories.enrollments import EnrollmentDirectory
from assessment_engine.schemas.assignment import (
    AnswersPayload,
    AssignmentRead,
    AvailabilityRead,
    SecurityViolationReport,
    StartRequest,
)
from assessment_engine.services.availability import evaluate, remaining_seconds
from assessment_engine.services.lifecycle import report_violation, save_answers, start_assignment, submit_assignment

router = APIRouter()


def _ensure_assessment_exists(db: Session, assessment_id: int) -> Assessment:
    assessment = db.get(Assessment, assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return assessment


def _ensure_assignment_exists(db: Session, assignment_id: int) -> Assignment:
    assignment = AssignmentStore(db).get(assignment_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


@router.get("/assessments/{assessment_id}/availability", response_model=AvailabilityRead)
def get_availability(
    assessment_id: int,
    enrollment_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    assessment = _ensure_assessment_exists(db, assessment_id)
    assignment = AssignmentStore(db).find(assessment_id, enrollment_id)
    now = clock()

    availability = evaluate(assessment, assignment, now)
    return AvailabilityRead(
        assessment_id=assessment_id,
        available=availability.available,
        reason=availability.reason,
        status=assignment.status if assignment else AssignmentStatus.NOT_STARTED,
        remaining_seconds=remaining_seconds(assessment, assignment, now),
    )


@router.post("/assessments/{assessment_id}/start", response_model=AssignmentRead)
def start(
    assessment_id: int,
    payload: StartRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    assessment = _ensure_assessment_exists(db, assessment_id)
    enrollment = EnrollmentDirectory(db).get(payload.enrollment_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")

    return start_assignment(db, assessment, enrollment, clock())


@router.put("/assignments/{assignment_id}/answers", response_model=AssignmentRead)
def autosave_answers(
    assignment_id: int,
    payload: AnswersPayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    assignment = _ensure_assignment_exists(db, assignment_id)
    return save_answers(db, assignment, payload.answers, clock())


@router.post("/assignments/{assignment_id}/submit", response_model=AssignmentRead)
def submit(
    assignment_id: int,
    payload: AnswersPayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    assignment = _ensure_assignment_exists(db, assignment_id)
    return submit_assignment(db, assignment, payload.answers, clock())


@router.post(
    "/assignments/{assignment_id}/security-violation",
    response_model=AssignmentRead,
    status_code=status.HTTP_200_OK,
)
def security_violation(
    assignment_id: int,
    payload: SecurityViolationReport,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    assignment = _ensure_assignment_exists(db, assignment_id)
    return report_violation(
        db,
        assignment,
        payload.violation_type,
        clock(),
        answers=payload.answers,
        details=payload.violation_details,
    )
