"""Scoring engine.

Auto-gradable questions (one_choice, boolean, multiple) are scored by
comparing the selected choices with the correct ones. Text and file questions
contribute nothing automatically and carry a teacher-entered score on their
answer rows. All rows belonging to one question share the same score, so a
question's score is read from any of its rows.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from assessment_engine.core.errors import AssignmentStateError, DeliveryError, InvalidScore
from assessment_engine.models.answer import Answer
from assessment_engine.models.assignment import Assignment
from assessment_engine.models.enums import AssignmentStatus, QuestionType
from assessment_engine.models.question import Question
from assessment_engine.services.notifications import NotificationChannel, assessment_graded_payload

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")


def to_score(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _score_single_choice(question: Question, answers: list[Answer]) -> Decimal:
    selected = [a.choice_id for a in answers if a.choice_id is not None]
    if len(selected) != 1:
        return ZERO
    choice = next((c for c in question.choices if c.id == selected[0]), None)
    if choice is not None and choice.is_correct:
        return to_score(question.points)
    return ZERO


def _score_multiple_choice(question: Question, answers: list[Answer]) -> Decimal:
    # all or nothing: the selection must be exactly the correct set
    selected = {a.choice_id for a in answers if a.choice_id is not None}
    if selected and selected == question.correct_choice_ids:
        return to_score(question.points)
    return ZERO


def _score_manual(question: Question, answers: list[Answer]) -> Decimal:
    return ZERO


_SCORERS: dict[QuestionType, Callable[[Question, list[Answer]], Decimal]] = {
    QuestionType.ONE_CHOICE: _score_single_choice,
    QuestionType.BOOLEAN: _score_single_choice,
    QuestionType.MULTIPLE: _score_multiple_choice,
    QuestionType.TEXT: _score_manual,
    QuestionType.FILE: _score_manual,
}


def calculate_question_score(question: Question, answers: Iterable[Answer]) -> Decimal:
    answers = list(answers)
    if not answers:
        return ZERO
    return _SCORERS[question.type](question, answers)


def answers_by_question(assignment: Assignment) -> dict[int, list[Answer]]:
    grouped: dict[int, list[Answer]] = defaultdict(list)
    for answer in assignment.answers:
        grouped[answer.question_id].append(answer)
    return grouped


def calculate_auto_correctable_score(assignment: Assignment) -> Decimal:
    grouped = answers_by_question(assignment)
    total = ZERO
    for question in assignment.assessment.questions:
        if question.type.is_auto_gradable:
            total += calculate_question_score(question, grouped.get(question.id, []))
    return to_score(total)


def stored_question_score(answers: Iterable[Answer]) -> Decimal:
    for answer in answers:
        if answer.score is not None:
            return to_score(answer.score)
    return ZERO


def calculate_total_score(assignment: Assignment) -> Decimal:
    """Sum of the per-question scores stored on the answer rows."""
    grouped = answers_by_question(assignment)
    total = ZERO
    for question in assignment.assessment.questions:
        total += stored_question_score(grouped.get(question.id, []))
    return to_score(total)


def _write_auto_scores(assignment: Assignment) -> Decimal:
    grouped = answers_by_question(assignment)
    total = ZERO
    for question in assignment.assessment.questions:
        if not question.type.is_auto_gradable:
            continue
        rows = grouped.get(question.id, [])
        score = calculate_question_score(question, rows)
        for row in rows:
            row.score = score
        total += score
    return to_score(total)


def apply_submission_scoring(assignment: Assignment, now: datetime) -> None:
    """Score a freshly submitted assignment. Does not commit.

    Without any text/file question the assignment is graded straight away;
    otherwise it stays submitted until a teacher saves corrections.
    """
    assignment.auto_score = _write_auto_scores(assignment)

    if not assignment.assessment.has_manual_questions:
        assignment.score = assignment.auto_score
        assignment.graded_at = now


@dataclass(frozen=True)
class QuestionCorrection:
    score: Decimal
    feedback: Optional[str] = None


@dataclass(frozen=True)
class GradingResult:
    updated_count: int
    total_score: Decimal
    status: AssignmentStatus


def _ensure_gradable(assignment: Assignment) -> None:
    if assignment.status not in (AssignmentStatus.SUBMITTED, AssignmentStatus.GRADED):
        raise AssignmentStateError(
            f"Assignment {assignment.id} is {assignment.status.value}, only submitted work can be graded"
        )


def _notify_graded(channel: Optional[NotificationChannel], assignment: Assignment) -> None:
    student_id = assignment.student_id
    if channel is None or student_id is None:
        return
    try:
        channel.notify(student_id, assessment_graded_payload(assignment))
    except DeliveryError as exc:
        logger.warning("graded notification for assignment %s not delivered: %s", assignment.id, exc)


def save_teacher_corrections(
    db: Session,
    assignment: Assignment,
    corrections: Mapping[int, QuestionCorrection],
    now: datetime,
    teacher_notes: Optional[str] = None,
    channel: Optional[NotificationChannel] = None,
) -> GradingResult:
    """Store manual scores per question and recompute the assignment total.

    Every answer row of a corrected question receives the same score and
    feedback. Reads, per-answer writes and the new total are committed
    together.
    """
    _ensure_gradable(assignment)

    questions = {q.id: q for q in assignment.assessment.questions}
    for question_id, correction in corrections.items():
        question = questions.get(question_id)
        if question is None:
            raise InvalidScore(f"Question {question_id} is not part of assessment {assignment.assessment_id}")
        if to_score(correction.score) < 0 or to_score(correction.score) > to_score(question.points):
            raise InvalidScore(f"score must be between 0 and {question.points} for question {question_id}")

    grouped = answers_by_question(assignment)
    updated_count = 0
    for question_id, correction in corrections.items():
        rows = grouped.get(question_id, [])
        if not rows:
            continue
        for row in rows:
            row.score = to_score(correction.score)
            row.feedback = correction.feedback
        updated_count += 1

    assignment.score = calculate_total_score(assignment)
    assignment.teacher_notes = teacher_notes
    assignment.graded_at = now

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    logger.info("assignment %s graded, total=%s", assignment.id, assignment.score)
    _notify_graded(channel, assignment)

    return GradingResult(
        updated_count=updated_count,
        total_score=to_score(assignment.score),
        status=assignment.status,
    )


def recompute_assignment_score(db: Session, assignment: Assignment, now: datetime) -> GradingResult:
    """Re-run auto scoring, e.g. after a teacher fixed a correct choice.

    Manual scores are left untouched.
    """
    _ensure_gradable(assignment)

    assignment.auto_score = _write_auto_scores(assignment)

    if assignment.status == AssignmentStatus.GRADED:
        assignment.score = calculate_total_score(assignment)
    elif not assignment.assessment.has_manual_questions:
        assignment.score = assignment.auto_score
        assignment.graded_at = now

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    return GradingResult(
        updated_count=0,
        total_score=to_score(assignment.score if assignment.score is not None else assignment.auto_score),
        status=assignment.status,
    )


def grade_as_zero(
    db: Session,
    assignment: Assignment,
    now: datetime,
    teacher_notes: Optional[str] = None,
    channel: Optional[NotificationChannel] = None,
) -> GradingResult:
    """Close an assignment that has no answers with a score of 0."""
    if assignment.answers:
        raise AssignmentStateError(f"Assignment {assignment.id} has answers, grade them instead")
    if assignment.status == AssignmentStatus.IN_PROGRESS or (
        assignment.status == AssignmentStatus.NOT_STARTED and not assignment.assessment.has_ended(now)
    ):
        raise AssignmentStateError(f"Assignment {assignment.id} can still be worked on")

    assignment.score = ZERO
    assignment.teacher_notes = teacher_notes
    assignment.graded_at = now

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    _notify_graded(channel, assignment)
    return GradingResult(updated_count=0, total_score=ZERO, status=assignment.status)
