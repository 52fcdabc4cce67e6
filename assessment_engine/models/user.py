from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_engine.db.base_class import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    full_name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="student")

    enrollments = relationship("Enrollment", back_populates="student")
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )
