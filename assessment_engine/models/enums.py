import enum
from datetime import datetime
from typing import Optional


class DeliveryMode(str, enum.Enum):
    SUPERVISED = "supervised"  # fixed session window, proctored
    HOMEWORK = "homework"  # due-date based, flexible start


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "active"
    TRANSFERRED = "transferred"
    WITHDRAWN = "withdrawn"


class QuestionType(str, enum.Enum):
    TEXT = "text"
    ONE_CHOICE = "one_choice"
    MULTIPLE = "multiple"
    BOOLEAN = "boolean"
    FILE = "file"

    @property
    def requires_manual_grading(self) -> bool:
        return self in (QuestionType.TEXT, QuestionType.FILE)

    @property
    def is_auto_gradable(self) -> bool:
        return not self.requires_manual_grading


class AssignmentStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"


class UnavailableReason(str, enum.Enum):
    ASSESSMENT_NOT_PUBLISHED = "assessment_not_published"
    ASSESSMENT_DUE_DATE_PASSED = "assessment_due_date_passed"
    ASSESSMENT_NOT_STARTED = "assessment_not_started"
    ASSESSMENT_ENDED = "assessment_ended"
    ASSESSMENT_TIME_EXPIRED = "assessment_time_expired"
    SECURITY_VIOLATIONS_NOT_APPLICABLE = "security_violations_not_applicable"


def assignment_status(
    started_at: Optional[datetime],
    submitted_at: Optional[datetime],
    graded_at: Optional[datetime],
) -> AssignmentStatus:
    """Single mapping from the timestamp triple to the lifecycle state.

    Every call site goes through here instead of inspecting the timestamps
    itself.
    """
    if graded_at is not None:
        return AssignmentStatus.GRADED
    if submitted_at is not None:
        return AssignmentStatus.SUBMITTED
    if started_at is not None:
        return AssignmentStatus.IN_PROGRESS
    return AssignmentStatus.NOT_STARTED
