import os

TEST_DB_FILE = "test_assessment_engine.db"
# must be set before the engine in assessment_engine.db.session is created
os.environ["ASSESSMENT_ENGINE_DATABASE_URL"] = f"sqlite:///./{TEST_DB_FILE}"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from assessment_engine.core.deps import get_clock, get_db, get_notification_channel  # noqa: E402
from assessment_engine.db.base_class import Base  # noqa: E402
from assessment_engine.db.init_db import init_db  # noqa: E402
from assessment_engine.db.session import SessionLocal, engine  # noqa: E402
from assessment_engine.main import app  # noqa: E402
from tests.factories import NOW, FakeChannel  # noqa: E402

TestingSessionLocal = SessionLocal


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    init_db(engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def clean_tables():
    """Every test starts from empty tables (child -> parent)."""
    db = TestingSessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def channel():
    return FakeChannel()


@pytest.fixture()
def client(channel):
    """Test client with a frozen clock and a recording notification channel."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    app.dependency_overrides[get_notification_channel] = lambda: channel
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
