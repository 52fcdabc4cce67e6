from sqlalchemy import Boolean, CheckConstraint, Column, Enum, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from assessment_engine.db.base_class import Base
from assessment_engine.models.enums import QuestionType


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(
        Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(
        Enum(
            QuestionType,
            name="question_type",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    content = Column(Text, nullable=True)
    # max contribution of this question to the assignment total
    points = Column(Numeric(8, 2), nullable=False)
    order_index = Column(Integer, nullable=False, default=0)

    __table_args__ = (CheckConstraint("points > 0", name="ck_questions_points_positive"),)

    assessment = relationship("Assessment", back_populates="questions")
    choices = relationship(
        "Choice",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Choice.order_index",
    )

    @property
    def correct_choice_ids(self) -> set[int]:
        return {c.id for c in self.choices if c.is_correct}


class Choice(Base):
    __tablename__ = "choices"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # "true" / "false" for boolean questions
    content = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="choices")
