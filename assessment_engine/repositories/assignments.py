import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assessment_engine.models.assignment import Assignment

logger = logging.getLogger(__name__)


class AssignmentStore:
    """Assignment persistence guarded by the (assessment, enrollment) uniqueness constraint."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, assignment_id: int) -> Assignment | None:
        return self.db.get(Assignment, assignment_id)

    def find(self, assessment_id: int, enrollment_id: int) -> Assignment | None:
        return (
            self.db.query(Assignment)
            .filter(
                Assignment.assessment_id == assessment_id,
                Assignment.enrollment_id == enrollment_id,
            )
            .first()
        )

    def exists(self, assessment_id: int, enrollment_id: int) -> bool:
        return self.find(assessment_id, enrollment_id) is not None

    def create_if_absent(self, assessment_id: int, enrollment_id: int) -> Assignment | None:
        """Insert an empty assignment and commit it.

        Returns ``None`` when the row already exists, including when a
        concurrent writer inserts it between our check and our insert.
        """
        if self.exists(assessment_id, enrollment_id):
            return None

        assignment = Assignment(assessment_id=assessment_id, enrollment_id=enrollment_id)
        self.db.add(assignment)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(
                "assignment for assessment=%s enrollment=%s created concurrently, skipping",
                assessment_id,
                enrollment_id,
            )
            return None

        self.db.refresh(assignment)
        return assignment

    def get_or_create(self, assessment_id: int, enrollment_id: int) -> Assignment:
        existing = self.find(assessment_id, enrollment_id)
        if existing:
            return existing

        created = self.create_if_absent(assessment_id, enrollment_id)
        if created:
            return created

        # lost the race, the other writer's row is there now
        return self.find(assessment_id, enrollment_id)

    def compare_and_set_submitted(self, assignment_id: int, **fields) -> bool:
        """Apply ``fields`` only while ``submitted_at`` is still null.

        Does not commit; the caller finishes the transition (scoring) in the
        same transaction.
        """
        self.db.flush()
        result = self.db.execute(
            update(Assignment)
            .where(Assignment.id == assignment_id, Assignment.submitted_at.is_(None))
            .values(**fields)
        )
        return result.rowcount == 1
