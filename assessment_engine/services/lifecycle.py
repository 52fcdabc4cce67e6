"""Assignment lifecycle: not_started -> in_progress -> submitted -> graded.

Student actions are guarded by :func:`assessment_engine.services.availability.evaluate`.
Every policy-triggered submission (time expiry, security violation) goes
through :func:`force_submit`.
"""

import logging
from datetime import datetime, timedelta
from typing import Mapping, Optional, Union

from sqlalchemy.orm import Session

from assessment_engine.core.config import SAVE_GRACE_PERIOD_SECONDS, TIME_EXPIRED_VIOLATION
from assessment_engine.core.errors import (
    AssignmentAlreadySubmitted,
    AssignmentStateError,
    ConcurrencyConflict,
    EnrollmentMismatch,
    InvalidAnswer,
    PolicyViolation,
)
from assessment_engine.models.answer import Answer
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.assignment import Assignment
from assessment_engine.models.enrollment import Enrollment
from assessment_engine.models.enums import AssignmentStatus, QuestionType, UnavailableReason
from assessment_engine.repositories.assignments import AssignmentStore
from assessment_engine.services.availability import evaluate, is_time_expired
from assessment_engine.services.scoring import apply_submission_scoring

logger = logging.getLogger(__name__)

AnswerValue = Union[int, list[int], str, None]

_CHOICE_TYPES = (QuestionType.ONE_CHOICE, QuestionType.BOOLEAN, QuestionType.MULTIPLE)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _ensure_not_submitted(assignment: Assignment) -> None:
    if assignment.status in (AssignmentStatus.SUBMITTED, AssignmentStatus.GRADED):
        raise AssignmentAlreadySubmitted(assignment.id)


def _ensure_available(assessment: Assessment, assignment: Assignment, now: datetime) -> None:
    availability = evaluate(assessment, assignment, now)
    if not availability.available:
        raise PolicyViolation(availability.reason)


def _ensure_started(assessment: Assessment, assignment: Assignment, now: datetime) -> None:
    if assignment.started_at is not None:
        return
    if assessment.is_homework:
        # homework has no explicit start
        assignment.started_at = now
        return
    raise AssignmentStateError(f"Assignment {assignment.id} has not been started")


def force_submit(db: Session, assignment: Assignment, violation: str, now: datetime) -> None:
    """Submit on the student's behalf and score what is there.

    Shared by the expiry job and real-time security violations. Raises
    :class:`ConcurrencyConflict` when the assignment was submitted by someone
    else first.
    """
    store = AssignmentStore(db)
    won = store.compare_and_set_submitted(
        assignment.id,
        submitted_at=now,
        forced_submission=True,
        security_violation=violation,
    )
    if not won:
        db.rollback()
        raise ConcurrencyConflict(f"Assignment {assignment.id} was already submitted")

    apply_submission_scoring(assignment, now)
    _commit(db)
    logger.warning(
        "assignment %s force-submitted (%s), auto_score=%s",
        assignment.id,
        violation,
        assignment.auto_score,
    )


def _expire(db: Session, assignment: Assignment, now: datetime) -> PolicyViolation:
    try:
        force_submit(db, assignment, TIME_EXPIRED_VIOLATION, now)
    except ConcurrencyConflict:
        logger.info("assignment %s already submitted while expiring", assignment.id)
    return PolicyViolation(UnavailableReason.ASSESSMENT_TIME_EXPIRED)


def _replace_answers(
    db: Session,
    assignment: Assignment,
    answers: Mapping[int, AnswerValue],
    strict: bool = True,
) -> None:
    """Replace the stored answers of every question in ``answers``.

    With ``strict=False`` entries that cannot be stored are logged and dropped
    instead of raising :class:`InvalidAnswer`.
    """
    questions = {q.id: q for q in assignment.assessment.questions}

    for question_id, value in answers.items():
        question = questions.get(question_id)
        if question is None:
            if not strict:
                logger.warning("assignment %s: dropping answer for unknown question %s", assignment.id, question_id)
                continue
            raise InvalidAnswer(f"Question {question_id} is not part of assessment {assignment.assessment_id}")

        if question.type in _CHOICE_TYPES:
            choice_ids = value if isinstance(value, list) else [value]
            if not strict and value is not None:
                valid = {c.id for c in question.choices}
                kept = [c for c in choice_ids if c in valid]
                if len(kept) != len(choice_ids):
                    logger.warning(
                        "assignment %s: dropping invalid choices for question %s", assignment.id, question_id
                    )
                if question.type != QuestionType.MULTIPLE:
                    kept = kept[:1]
                value = kept

        for existing in [a for a in assignment.answers if a.question_id == question_id]:
            assignment.answers.remove(existing)

        if value is None or value == [] or value == "":
            continue

        if question.type in _CHOICE_TYPES:
            choice_ids = value if isinstance(value, list) else [value]
            if not all(isinstance(c, int) for c in choice_ids):
                raise InvalidAnswer(f"Question {question_id} expects choice ids")
            if question.type != QuestionType.MULTIPLE and len(choice_ids) > 1:
                raise InvalidAnswer(f"Question {question_id} accepts a single choice")
            valid = {c.id for c in question.choices}
            for choice_id in dict.fromkeys(choice_ids):
                if choice_id not in valid:
                    raise InvalidAnswer(f"Choice {choice_id} does not belong to question {question_id}")
                assignment.answers.append(Answer(question_id=question_id, choice_id=choice_id))
        else:
            assignment.answers.append(Answer(question_id=question_id, answer_text=str(value)))


def start_assignment(db: Session, assessment: Assessment, enrollment: Enrollment, now: datetime) -> Assignment:
    if enrollment.class_id != assessment.class_id or not enrollment.is_active:
        raise EnrollmentMismatch(
            f"Enrollment {enrollment.id} cannot access assessment {assessment.id}"
        )

    assignment = AssignmentStore(db).get_or_create(assessment.id, enrollment.id)
    _ensure_not_submitted(assignment)

    if is_time_expired(assessment, assignment, now):
        raise _expire(db, assignment, now)

    _ensure_available(assessment, assignment, now)

    if assignment.started_at is None:
        assignment.started_at = now
        _commit(db)
        db.refresh(assignment)
        logger.info("assignment %s started", assignment.id)

    return assignment


def save_answers(
    db: Session,
    assignment: Assignment,
    answers: Mapping[int, AnswerValue],
    now: datetime,
) -> Assignment:
    """Auto-save. Answers replace earlier ones for the same question."""
    assessment = assignment.assessment
    _ensure_not_submitted(assignment)

    if is_time_expired(assessment, assignment, now, grace=timedelta(seconds=SAVE_GRACE_PERIOD_SECONDS)):
        raise _expire(db, assignment, now)

    availability = evaluate(assessment, assignment, now)
    # inside the grace period the personal deadline has passed but saving is still accepted
    if not availability.available and availability.reason != UnavailableReason.ASSESSMENT_TIME_EXPIRED:
        raise PolicyViolation(availability.reason)

    _ensure_started(assessment, assignment, now)
    _replace_answers(db, assignment, answers)
    _commit(db)
    db.refresh(assignment)
    return assignment


def submit_assignment(
    db: Session,
    assignment: Assignment,
    answers: Mapping[int, AnswerValue],
    now: datetime,
) -> Assignment:
    """Voluntary submission; scored immediately, graded when nothing needs a teacher."""
    assessment = assignment.assessment
    _ensure_not_submitted(assignment)

    if is_time_expired(assessment, assignment, now):
        raise _expire(db, assignment, now)

    _ensure_available(assessment, assignment, now)
    _ensure_started(assessment, assignment, now)
    _replace_answers(db, assignment, answers)

    if not AssignmentStore(db).compare_and_set_submitted(assignment.id, submitted_at=now):
        db.rollback()
        raise AssignmentAlreadySubmitted(assignment.id)

    apply_submission_scoring(assignment, now)
    _commit(db)
    db.refresh(assignment)
    logger.info("assignment %s submitted, status=%s", assignment.id, assignment.status.value)
    return assignment


def report_violation(
    db: Session,
    assignment: Assignment,
    violation_type: str,
    now: datetime,
    answers: Optional[Mapping[int, AnswerValue]] = None,
    details: Optional[str] = None,
) -> Assignment:
    """Terminate a supervised assignment after e.g. a tab switch or fullscreen exit."""
    assessment = assignment.assessment
    if not assessment.is_supervised:
        raise PolicyViolation(UnavailableReason.SECURITY_VIOLATIONS_NOT_APPLICABLE)

    _ensure_not_submitted(assignment)
    # not-started work is rejected, never created and terminated on the spot
    if assignment.started_at is None:
        raise AssignmentStateError(f"Assignment {assignment.id} has not been started")

    logger.warning(
        "security violation on assignment %s: %s %s",
        assignment.id,
        violation_type,
        details or "",
    )

    if answers:
        _replace_answers(db, assignment, answers, strict=False)

    force_submit(db, assignment, violation_type, now)
    db.refresh(assignment)
    return assignment
