"""Create the missing assignment rows once an assessment has ended.

Rows are only ever inserted, never updated or deleted, so the job can run on
every scheduler tick and overlap with itself or with students starting work.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from assessment_engine.core.errors import DataIntegrityError
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.enums import DeliveryMode
from assessment_engine.repositories.assignments import AssignmentStore
from assessment_engine.repositories.enrollments import EnrollmentDirectory

logger = logging.getLogger(__name__)


@dataclass
class MaterializeResult:
    created: int = 0
    skipped: int = 0
    dry_run: bool = False


def ended_assessments(db: Session, now: datetime) -> list[Assessment]:
    candidates = (
        db.query(Assessment)
        .filter(
            Assessment.is_published.is_(True),
            or_(
                and_(
                    Assessment.delivery_mode == DeliveryMode.HOMEWORK,
                    Assessment.due_date.isnot(None),
                ),
                and_(
                    Assessment.delivery_mode == DeliveryMode.SUPERVISED,
                    Assessment.scheduled_at.isnot(None),
                ),
            ),
        )
        .order_by(Assessment.id)
        .all()
    )
    return [a for a in candidates if a.has_ended(now)]


def materialise_assignments(db: Session, now: datetime, dry_run: bool = False) -> MaterializeResult:
    result = MaterializeResult(dry_run=dry_run)
    store = AssignmentStore(db)
    directory = EnrollmentDirectory(db)

    for assessment in ended_assessments(db, now):
        assessment_id = assessment.id
        try:
            enrollment_ids = [e.id for e in directory.active_enrollments_for_assessment(assessment)]
        except DataIntegrityError as exc:
            logger.error("skipping assessment %s: %s", assessment_id, exc)
            result.skipped += 1
            continue

        for enrollment_id in enrollment_ids:
            if dry_run:
                if not store.exists(assessment_id, enrollment_id):
                    result.created += 1
                continue

            if store.create_if_absent(assessment_id, enrollment_id) is not None:
                result.created += 1

    logger.info(
        "materialise-assignments%s: created=%s skipped=%s",
        " (dry run)" if dry_run else "",
        result.created,
        result.skipped,
    )
    return result
