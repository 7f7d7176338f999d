import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  register models with Base.metadata
from app.core.database import Base, enable_sqlite_foreign_keys, get_db
from app.main import app as fastapi_app

# In-memory SQLite for tests, no PostgreSQL needed
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Provide a test database session."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    """TestClient with overridden DB dependency."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_payload():
    """Factory for submission bodies with ``count`` text responses numbered from 1."""

    def _make(patient_id="P1", study_id="S1", count=20, completed_at=None, **overrides):
        payload = {
            "patientId": patient_id,
            "studyId": study_id,
            "responses": [
                {
                    "questionId": i,
                    "question": f"Question {i}",
                    "answer": f"Answer {i}",
                    "responseType": "text",
                }
                for i in range(1, count + 1)
            ],
        }
        if completed_at is not None:
            payload["metadata"] = {"completedAt": completed_at}
        payload.update(overrides)
        return payload

    return _make
