"""Test configuration and fixtures."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dairyfarm.db import Base, get_db
from dairyfarm.main import app

from .utils import PASSWORD, auth_header, create_farm, create_user, login

# In-memory SQLite unless a real database is supplied
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


def _make_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        return create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(TEST_DATABASE_URL)


@pytest.fixture(scope="function")
def test_db():
    """Create a test database session factory."""
    engine = _make_engine()
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )
    Base.metadata.create_all(bind=engine)

    # Seed the two farms most tests work against
    create_farm(TestingSessionLocal, "nakuru", "Nakuru Dairy")
    create_farm(TestingSessionLocal, "kisii", "Kisii Farm")

    yield TestingSessionLocal

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def client(test_db):
    """Create a test client with test database."""
    def override_get_db():
        try:
            db = test_db()
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(test_db):
    return create_user(test_db, "admin@farm.test", "admin")


@pytest.fixture
def farmer_user(test_db):
    return create_user(test_db, "farmer@farm.test", "farmer", assigned_farm="nakuru")


@pytest.fixture
def kisii_farmer_user(test_db):
    return create_user(test_db, "kisii@farm.test", "farmer", assigned_farm="kisii")


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_header(login(client, admin_user["email"], PASSWORD))


@pytest.fixture
def farmer_headers(client, farmer_user):
    return auth_header(login(client, farmer_user["email"], PASSWORD))


@pytest.fixture
def kisii_farmer_headers(client, kisii_farmer_user):
    return auth_header(login(client, kisii_farmer_user["email"], PASSWORD))
