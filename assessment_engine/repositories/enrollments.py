from sqlalchemy.orm import Session

from assessment_engine.core.errors import DataIntegrityError
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.enrollment import Enrollment
from assessment_engine.models.enums import EnrollmentStatus


class EnrollmentDirectory:
    """Read-only view over enrollments."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, enrollment_id: int) -> Enrollment | None:
        return self.db.get(Enrollment, enrollment_id)

    def active_enrollments_for_class(self, class_id: int) -> list[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(
                Enrollment.class_id == class_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
            .order_by(Enrollment.id)
            .all()
        )

    def active_enrollments_for_assessment(self, assessment: Assessment) -> list[Enrollment]:
        if assessment.class_subject is None:
            raise DataIntegrityError(
                f"Assessment {assessment.id} references missing class subject {assessment.class_subject_id}"
            )
        return self.active_enrollments_for_class(assessment.class_subject.class_id)
