from sqlalchemy.engine import Engine

from assessment_engine.db.base_class import Base
from assessment_engine.db.session import engine as default_engine

# import models so SQLAlchemy registers them
from assessment_engine.models import (  # noqa: F401
    answer,
    assessment,
    assignment,
    enrollment,
    notification,
    question,
    school_class,
    user,
)


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or default_engine)
