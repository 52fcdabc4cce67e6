from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from assessment_engine.core.clock import as_utc
from assessment_engine.db.base_class import Base
from assessment_engine.models.enums import DeliveryMode


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    class_subject_id = Column(
        Integer, ForeignKey("class_subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    delivery_mode = Column(
        Enum(
            DeliveryMode,
            name="delivery_mode",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=DeliveryMode.SUPERVISED,
    )

    # supervised only
    scheduled_at = Column(DateTime(timezone=True), nullable=True, index=True)
    duration_minutes = Column(Integer, nullable=True)
    # homework only
    due_date = Column(DateTime(timezone=True), nullable=True)

    is_published = Column(Boolean, nullable=False, default=False)
    allow_late_submission = Column(Boolean, nullable=False, default=False)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    class_subject = relationship("ClassSubject", back_populates="assessments")
    questions = relationship(
        "Question",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )
    assignments = relationship("Assignment", back_populates="assessment", cascade="all, delete-orphan")

    @property
    def is_supervised(self) -> bool:
        return self.delivery_mode == DeliveryMode.SUPERVISED

    @property
    def is_homework(self) -> bool:
        return self.delivery_mode == DeliveryMode.HOMEWORK

    @property
    def class_id(self) -> int | None:
        return self.class_subject.class_id if self.class_subject is not None else None

    @property
    def ends_at(self) -> datetime | None:
        """End of the announced supervised session."""
        scheduled = as_utc(self.scheduled_at)
        if scheduled is None:
            return None
        if not self.duration_minutes:
            return scheduled
        return scheduled + timedelta(minutes=self.duration_minutes)

    def has_ended(self, now: datetime) -> bool:
        if self.is_homework:
            due = as_utc(self.due_date)
            return due is not None and now > due
        ends_at = self.ends_at
        return ends_at is not None and now > ends_at

    @property
    def has_manual_questions(self) -> bool:
        return any(q.type.requires_manual_grading for q in self.questions)

    @property
    def total_points(self) -> Decimal:
        return sum((Decimal(str(q.points)) for q in self.questions), Decimal("0"))
