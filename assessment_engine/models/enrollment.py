from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.orm import relationship

from assessment_engine.db.base_class import Base
from assessment_engine.models.enums import EnrollmentStatus


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_id = Column(
        Integer,
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(
        Enum(
            EnrollmentStatus,
            name="enrollment_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=EnrollmentStatus.ACTIVE,
        index=True,
    )
    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    # only field that still changes once an enrollment is withdrawn
    left_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "student_id", "class_id", name="uq_enrollments_student_class"
        ),
    )

    student = relationship("User", back_populates="enrollments")
    school_class = relationship("SchoolClass", back_populates="enrollments")
    assignments = relationship("Assignment", back_populates="enrollment")

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE
