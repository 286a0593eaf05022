"""
Shared fixtures: in-memory database, API client, users and a sample group.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import groupledger.models  # noqa: F401
from groupledger.core.security import create_access_token
from groupledger.db.base import Base
from groupledger.db.session import get_db
from groupledger.main import app
from groupledger.models.user import User
from groupledger.schemas.group import GroupCreate
from groupledger.services import group_service

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """API client bound to the test session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory for user directory entries."""
    def _make_user(name: str, email: str = None) -> User:
        user = User(name=name, email=email or f"{name.lower()}@example.com", is_active=True)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("Alice")


@pytest.fixture
def bob(make_user):
    return make_user("Bob")


@pytest.fixture
def carol(make_user):
    return make_user("Carol")


@pytest.fixture
def outsider(make_user):
    return make_user("Mallory")


@pytest.fixture
def group(db, alice, bob, carol):
    """Alice owns a group with Bob and Carol as members, in that order."""
    created, _ = group_service.create_group(
        alice,
        GroupCreate(name="Flat 4B", group_type="Roommates", member_emails=[bob.email, carol.email]),
        db
    )
    return created


@pytest.fixture
def auth_headers():
    """Factory for bearer headers."""
    def _auth_headers(user: User) -> dict:
        token = create_access_token(data={"user_id": user.id})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
