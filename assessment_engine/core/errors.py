"""Error taxonomy shared by the services, batch jobs and HTTP layer.

* ``PolicyViolation`` - a student action rejected by the availability rules.
* ``ConcurrencyConflict`` - a write lost a race; jobs treat it as a no-op.
* ``DeliveryError`` - a single notification could not be delivered.
* ``DataIntegrityError`` - a row references a missing enrollment/assessment;
  jobs skip the row and keep going.
"""

from typing import Optional

from assessment_engine.models.enums import UnavailableReason


class AssessmentEngineError(Exception):
    pass


class PolicyViolation(AssessmentEngineError):
    def __init__(self, reason: UnavailableReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason.value)


class AssignmentAlreadySubmitted(AssessmentEngineError):
    def __init__(self, assignment_id: int):
        self.assignment_id = assignment_id
        super().__init__(f"Assignment {assignment_id} has already been submitted")


class AssignmentStateError(AssessmentEngineError):
    """The assignment is not in a state that allows the requested transition."""


class InvalidScore(AssessmentEngineError, ValueError):
    pass


class ConcurrencyConflict(AssessmentEngineError):
    pass


class DeliveryError(AssessmentEngineError):
    pass


class DataIntegrityError(AssessmentEngineError):
    pass


class InvalidAnswer(AssessmentEngineError, ValueError):
    pass


class EnrollmentMismatch(AssessmentEngineError):
    """The enrollment cannot take this assessment (other class or no longer active)."""
