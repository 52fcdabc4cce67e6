"""Notification channel used by the reminder job and grading.

Delivery happens through its own session so a failing send never touches the
caller's transaction.
"""

import logging
from typing import Any, Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessment_engine.core.config import APP_BASE_URL
from assessment_engine.core.errors import DeliveryError
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.assignment import Assignment
from assessment_engine.models.notification import Notification
from assessment_engine.schemas.notification import AssessmentGradedPayload, AssessmentStartingSoonPayload

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    def notify(self, student_id: int, payload: dict[str, Any]) -> None:
        """Deliver ``payload`` or raise :class:`DeliveryError`."""


class DatabaseNotificationChannel:
    """Stores notifications in the ``notifications`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def notify(self, student_id: int, payload: dict[str, Any]) -> None:
        db = self.session_factory()
        try:
            db.add(Notification(user_id=student_id, type=payload["type"], data=payload))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DeliveryError(f"could not store notification for user {student_id}") from exc
        finally:
            db.close()


def assessment_url(assessment_id: int) -> str:
    return f"{APP_BASE_URL}/student/assessments/{assessment_id}"


def assessment_starting_soon_payload(assessment: Assessment) -> dict[str, Any]:
    return AssessmentStartingSoonPayload(
        assessment_id=assessment.id,
        assessment_title=assessment.title,
        scheduled_at=assessment.scheduled_at,
        url=assessment_url(assessment.id),
    ).model_dump(mode="json")


def assessment_graded_payload(assignment: Assignment) -> dict[str, Any]:
    return AssessmentGradedPayload(
        assessment_id=assignment.assessment_id,
        assessment_title=assignment.assessment.title,
        assignment_id=assignment.id,
        score=assignment.score,
        url=assessment_url(assignment.assessment_id),
    ).model_dump(mode="json")
