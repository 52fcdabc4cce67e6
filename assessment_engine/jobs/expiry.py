"""Force-submit supervised assignments whose time is up.

An assignment is expired when the student's own ``started_at + duration`` has
passed, or when the announced session window has closed, whichever comes
first. A student who started late therefore loses the remainder of their
personal time once the session ends.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from assessment_engine.core.config import TIME_EXPIRED_VIOLATION
from assessment_engine.core.errors import ConcurrencyConflict, DataIntegrityError
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.assignment import Assignment
from assessment_engine.models.enums import DeliveryMode
from assessment_engine.services.availability import is_time_expired
from assessment_engine.services.lifecycle import force_submit

logger = logging.getLogger(__name__)


@dataclass
class ExpiryResult:
    submitted: int = 0
    skipped: int = 0
    dry_run: bool = False


def in_progress_supervised_assignments(db: Session) -> list[Assignment]:
    return (
        db.query(Assignment)
        .join(Assessment, Assignment.assessment_id == Assessment.id)
        .filter(
            Assignment.started_at.isnot(None),
            Assignment.submitted_at.is_(None),
            Assessment.is_published.is_(True),
            Assessment.delivery_mode == DeliveryMode.SUPERVISED,
        )
        .order_by(Assignment.id)
        .all()
    )


def should_force_submit(assessment: Assessment, assignment: Assignment, now: datetime) -> bool:
    return is_time_expired(assessment, assignment, now) or assessment.has_ended(now)


def _check_integrity(assignment: Assignment) -> None:
    if assignment.enrollment is None:
        raise DataIntegrityError(
            f"Assignment {assignment.id} references missing enrollment {assignment.enrollment_id}"
        )


def auto_submit_expired(db: Session, now: datetime, dry_run: bool = False) -> ExpiryResult:
    result = ExpiryResult(dry_run=dry_run)

    for assignment in in_progress_supervised_assignments(db):
        assignment_id = assignment.id
        if not should_force_submit(assignment.assessment, assignment, now):
            continue

        try:
            _check_integrity(assignment)
        except DataIntegrityError as exc:
            logger.error("skipping assignment %s: %s", assignment_id, exc)
            result.skipped += 1
            continue

        if dry_run:
            result.submitted += 1
            continue

        try:
            force_submit(db, assignment, TIME_EXPIRED_VIOLATION, now)
        except ConcurrencyConflict:
            logger.info("assignment %s submitted concurrently, skipping", assignment_id)
            continue

        result.submitted += 1

    logger.info(
        "auto-submit-expired%s: submitted=%s skipped=%s",
        " (dry run)" if dry_run else "",
        result.submitted,
        result.skipped,
    )
    return result
