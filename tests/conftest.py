"""
Pytest configuration and fixtures
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import lams.models  # noqa: F401 - registers every table on Base.metadata
from lams.core.config import Settings
from lams.core.database import Base, build_engine
from lams.core.events import EventBus
from lams.core.permissions import Actor, Role, load_permission_table
from lams.core.workflow_engine import WorkflowEngine

NOW = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture(scope="function")
def db_engine():
    """In-memory SQLite shared by every connection of one test"""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine) -> Session:
    """Create a database session for testing"""
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://")


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(max_attempts=3, base_delay=0.0)


@pytest.fixture
def engine(db: Session, settings: Settings, event_bus: EventBus) -> WorkflowEngine:
    """Workflow engine over the test session with the built-in role table"""
    return WorkflowEngine(db, permissions=load_permission_table(None), event_bus=event_bus, settings=settings)


@pytest.fixture
def admin() -> Actor:
    return Actor(role=Role.ADMIN, user_id="admin-1")


@pytest.fixture
def officer() -> Actor:
    return Actor(role=Role.CASE_OFFICER, user_id="officer-1")


@pytest.fixture
def legal() -> Actor:
    return Actor(role=Role.LEGAL_OFFICER, user_id="legal-1")


@pytest.fixture
def finance() -> Actor:
    return Actor(role=Role.FINANCE_OFFICER, user_id="finance-1")


@pytest.fixture
def citizen() -> Actor:
    return Actor(role=Role.CITIZEN, user_id="citizen-1")


@pytest.fixture
def auditor() -> Actor:
    return Actor(role=Role.AUDITOR, user_id="auditor-1")


@pytest.fixture
def make_parcel(engine: WorkflowEngine, officer: Actor, now: datetime):
    """Register parcels with sensible defaults"""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "parcel_no": f"P-{counter['n']:03d}",
            "village": "Wagholi",
            "taluka": "Haveli",
            "district": "Pune",
            "area_sq_m": 100,
        }
        fields.update(overrides)
        return engine.register_parcel(officer, now, **fields)

    return _make


@pytest.fixture
def client(db: Session, now: datetime):
    """Create test client with database and clock overrides"""
    from fastapi.testclient import TestClient

    from lams.api.deps import get_now
    from lams.core.database import get_db
    from lams.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: now
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
