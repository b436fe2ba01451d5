"""
Shared fixtures: in-memory SQLite database, API client, principals and tasks.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("OUTBOX_ENABLED", "false")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models.task import Task, TaskPriority, TaskStatus
from app.models.user import User, UserRole
from app.schemas.identity import Identity
from app.utils.security import create_access_token

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """API client sharing the test session (lifespan and worker not started)"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(name, role, department=None, is_active=True):
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            role=role.value,
            department=department,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def director(make_user):
    return make_user("Dana Director", UserRole.DIRECTOR, "Management")


@pytest.fixture
def hod_it(make_user):
    return make_user("Hadi Head", UserRole.HOD, "IT")


@pytest.fixture
def hod_hr(make_user):
    return make_user("Huda Head", UserRole.HOD, "HR")


@pytest.fixture
def employee(make_user):
    return make_user("Eli Employee", UserRole.EMPLOYEE, "IT")


@pytest.fixture
def coworker(make_user):
    return make_user("Cara Coworker", UserRole.EMPLOYEE, "IT")


@pytest.fixture
def hr_employee(make_user):
    return make_user("Omar Other", UserRole.EMPLOYEE, "HR")


@pytest.fixture
def make_task(db):
    def _make_task(assigned_to, assigned_by, department=None, **fields):
        values = dict(
            title="Prepare quarterly report",
            assigned_to_id=assigned_to.id,
            assigned_by_id=assigned_by.id,
            department=department or assigned_to.department,
            status=TaskStatus.PENDING.value,
            priority=TaskPriority.MEDIUM.value,
            start_date=datetime.utcnow(),
            due_date=datetime.utcnow() + timedelta(days=7),
        )
        values.update(fields)
        task = Task(**values)
        db.add(task)
        db.commit()
        db.refresh(task)
        return task
    return _make_task


def identity(user) -> Identity:
    return Identity.from_user(user)


def auth_headers(user) -> dict:
    token = create_access_token({"sub": user.id})
    return {"Authorization": f"Bearer {token}"}
