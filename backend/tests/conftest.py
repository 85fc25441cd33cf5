"""
Shared test fixtures for shop floor tests

Provides database setup, client creation, and user fixtures
"""
import os

# Point the app's own engine at SQLite before settings are loaded
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.main import app  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.api.v1.endpoints.dashboard import dashboard_cache  # noqa: E402

from tests.factories import create_test_user, reset_sequences  # noqa: E402


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite defers BEGIN on its own; let SQLAlchemy emit it so savepoints nest
@event.listens_for(engine, "connect")
def _disable_pysqlite_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    """Create all tables for testing using SQLAlchemy metadata"""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine):
    """Drop all tables after testing"""
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Create a fresh database session for each test"""
    create_tables(engine)
    reset_sequences()

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables(engine)


@pytest.fixture
def db(db_session):
    """Short alias used by the API tests"""
    return db_session


@pytest.fixture(autouse=True)
def fresh_dashboard_cache():
    """The dashboard cache outlives a test's database; start every test cold."""
    dashboard_cache.invalidate()
    yield
    dashboard_cache.invalidate()


@pytest.fixture
def client(db_session):
    """Create a test client with database override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db_session):
    """Create an admin user for testing"""
    user = create_test_user(db_session, email="admin@test.com", role="admin", full_name="Admin User")
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def compliance_user(db_session):
    """Create a compliance reviewer"""
    user = create_test_user(db_session, email="compliance@test.com", role="compliance")
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def operator_user(db_session):
    """Create a machine operator (no sign-off rights)"""
    user = create_test_user(db_session, email="operator@test.com", role="operator")
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_headers(admin_user):
    """Return identity headers for admin user"""
    return {"X-User-Id": str(admin_user.id)}


@pytest.fixture
def operator_headers(operator_user):
    """Return identity headers for operator user"""
    return {"X-User-Id": str(operator_user.id)}
