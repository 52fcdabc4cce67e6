"""Remind students shortly before a supervised assessment starts."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from assessment_engine.core.config import REMINDER_LOOKAHEAD_MINUTES
from assessment_engine.core.errors import DataIntegrityError, DeliveryError
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.enums import DeliveryMode
from assessment_engine.repositories.enrollments import EnrollmentDirectory
from assessment_engine.services.notifications import NotificationChannel, assessment_starting_soon_payload

logger = logging.getLogger(__name__)


@dataclass
class ReminderResult:
    assessments: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


def assessments_due_for_reminder(db: Session, now: datetime, lookahead: timedelta) -> list[Assessment]:
    return (
        db.query(Assessment)
        .filter(
            Assessment.is_published.is_(True),
            Assessment.delivery_mode == DeliveryMode.SUPERVISED,
            Assessment.reminder_sent_at.is_(None),
            Assessment.scheduled_at.isnot(None),
            Assessment.scheduled_at >= now,
            Assessment.scheduled_at <= now + lookahead,
        )
        .order_by(Assessment.scheduled_at)
        .all()
    )


def _claim(db: Session, assessment_id: int, now: datetime) -> bool:
    """Mark the reminder as sent before sending, so overlapping runs skip it."""
    result = db.execute(
        update(Assessment)
        .where(Assessment.id == assessment_id, Assessment.reminder_sent_at.is_(None))
        .values(reminder_sent_at=now)
    )
    claimed = result.rowcount == 1
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return claimed


def send_reminders(
    db: Session,
    channel: NotificationChannel,
    now: datetime,
    lookahead_minutes: int = REMINDER_LOOKAHEAD_MINUTES,
) -> ReminderResult:
    result = ReminderResult()
    directory = EnrollmentDirectory(db)

    for assessment in assessments_due_for_reminder(db, now, timedelta(minutes=lookahead_minutes)):
        assessment_id = assessment.id
        if not _claim(db, assessment_id, now):
            continue

        try:
            enrollments = directory.active_enrollments_for_assessment(assessment)
        except DataIntegrityError as exc:
            logger.error("reminder for assessment %s not sent: %s", assessment_id, exc)
            result.skipped += 1
            continue
        result.assessments += 1

        payload = assessment_starting_soon_payload(assessment)
        for enrollment in enrollments:
            try:
                channel.notify(enrollment.student_id, payload)
            except DeliveryError as exc:
                logger.warning(
                    "reminder for assessment %s to student %s failed: %s",
                    assessment_id,
                    enrollment.student_id,
                    exc,
                )
                result.failed += 1
                continue
            result.sent += 1

    logger.info(
        "send-reminders: assessments=%s sent=%s failed=%s skipped=%s",
        result.assessments,
        result.sent,
        result.failed,
        result.skipped,
    )
    return result
