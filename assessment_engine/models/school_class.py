from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_engine.db.base_class import Base


class SchoolClass(Base):
    __tablename__ = "classes"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    enrollments = relationship("Enrollment", back_populates="school_class")
    class_subjects = relationship(
        "ClassSubject", back_populates="school_class", cascade="all, delete-orphan"
    )


class ClassSubject(Base):
    __tablename__ = "class_subjects"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)

    __table_args__ = (
        UniqueConstraint("class_id", "subject", name="uq_class_subjects_class_subject"),
    )

    school_class = relationship("SchoolClass", back_populates="class_subjects")
    assessments = relationship("Assessment", back_populates="class_subject")
