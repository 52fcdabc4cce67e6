"""Whether a student may currently work on an assessment.

This is the only implementation of the availability rules. Request handlers,
the lifecycle service and the batch jobs all call :func:`evaluate`, so it must
stay free of side effects.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from assessment_engine.core.clock import as_utc
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.assignment import Assignment
from assessment_engine.models.enums import UnavailableReason


@dataclass(frozen=True)
class Availability:
    available: bool
    reason: Optional[UnavailableReason] = None


AVAILABLE = Availability(available=True)


def personal_deadline(assessment: Assessment, assignment: Optional[Assignment]) -> Optional[datetime]:
    """``started_at + duration`` for a started supervised assignment, else None."""
    if assignment is None or not assessment.is_supervised or not assessment.duration_minutes:
        return None
    started_at = as_utc(assignment.started_at)
    if started_at is None:
        return None
    return started_at + timedelta(minutes=assessment.duration_minutes)


def is_time_expired(
    assessment: Assessment,
    assignment: Optional[Assignment],
    now: datetime,
    grace: timedelta = timedelta(0),
) -> bool:
    deadline = personal_deadline(assessment, assignment)
    return deadline is not None and now > deadline + grace


def evaluate(assessment: Assessment, assignment: Optional[Assignment], now: datetime) -> Availability:
    if not assessment.is_published:
        return Availability(False, UnavailableReason.ASSESSMENT_NOT_PUBLISHED)

    if assessment.is_homework:
        due = as_utc(assessment.due_date)
        if due is not None and now > due and not assessment.allow_late_submission:
            return Availability(False, UnavailableReason.ASSESSMENT_DUE_DATE_PASSED)
        return AVAILABLE

    scheduled = as_utc(assessment.scheduled_at)
    if scheduled is None:
        return AVAILABLE

    if now < scheduled:
        return Availability(False, UnavailableReason.ASSESSMENT_NOT_STARTED)

    deadline = personal_deadline(assessment, assignment)
    if deadline is None:
        # never started: the session window decides
        ends_at = assessment.ends_at
        if ends_at is not None and now >= ends_at:
            return Availability(False, UnavailableReason.ASSESSMENT_ENDED)
        return AVAILABLE

    # started students keep their full duration, even past the session window
    if now >= deadline:
        return Availability(False, UnavailableReason.ASSESSMENT_TIME_EXPIRED)
    return AVAILABLE


def remaining_seconds(assessment: Assessment, assignment: Optional[Assignment], now: datetime) -> Optional[int]:
    """Countdown for the supervised timer; None when no timer applies."""
    deadline = personal_deadline(assessment, assignment)
    if deadline is None:
        return None
    return max(0, int((deadline - now).total_seconds()))
