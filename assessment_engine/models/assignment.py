from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from assessment_engine.db.base_class import Base
from assessment_engine.models.enums import AssignmentStatus, assignment_status


class Assignment(Base):
    """Per-student instance of an assessment.

    The lifecycle state is derived from the ``started_at`` / ``submitted_at`` /
    ``graded_at`` triple, see :func:`assessment_engine.models.enums.assignment_status`.
    """

    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)

    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    # Grading fields (nullable until scored)
    score = Column(Numeric(8, 2), nullable=True)
    auto_score = Column(Numeric(8, 2), nullable=True)
    teacher_notes = Column(Text, nullable=True)

    # set only when the system submits on the student's behalf
    forced_submission = Column(Boolean, nullable=False, default=False)
    security_violation = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("assessment_id", "enrollment_id", name="uq_assignment_assessment_enrollment"),
    )

    assessment = relationship("Assessment", back_populates="assignments")
    enrollment = relationship("Enrollment", back_populates="assignments")
    answers = relationship(
        "Answer",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="Answer.id",
    )

    @property
    def status(self) -> AssignmentStatus:
        return assignment_status(self.started_at, self.submitted_at, self.graded_at)

    @property
    def student_id(self) -> int | None:
        return self.enrollment.student_id if self.enrollment is not None else None
