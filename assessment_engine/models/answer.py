from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from assessment_engine.db.base_class import Base


class Answer(Base):
    """One row per selected choice for ``multiple`` questions, one row otherwise."""

    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    choice_id = Column(Integer, ForeignKey("choices.id", ondelete="SET NULL"), nullable=True)
    answer_text = Column(Text, nullable=True)

    file_name = Column(String(255), nullable=True)
    file_path = Column(String(1024), nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(255), nullable=True)

    # Grading fields (nullable until scored)
    score = Column(Numeric(8, 2), nullable=True)
    feedback = Column(Text, nullable=True)

    assignment = relationship("Assignment", back_populates="answers")
    question = relationship("Question")
    choice = relationship("Choice")
