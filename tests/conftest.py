"""
PeopleOS Test Configuration

Shared fixtures for all tests. The app runs against an in-memory sqlite
database; MongoDB, the LLM, SMTP and outbound HTTP are patched per test.
"""
import os

# Must be set before anything from peopleos is imported (settings are cached)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SMTP_HOST"] = ""
os.environ["DEEPSEEK_API_KEY"] = ""
os.environ["APP_BASE_URL"] = "https://people.example.com"
os.environ["ORGANIZATION_SLUG"] = "acme"

from datetime import timedelta
from typing import Dict

import pytest
from fastapi.testclient import TestClient

from peopleos.core.auth import create_access_token, hash_password
from peopleos.db.postgres import engine, get_db_session
from peopleos.main import app
from peopleos.models import Base, Employee, Job, JobCandidate, User, utcnow
from peopleos.models.enums import CandidateStage, EmployeeStatus, JobStatus, UserRole

PASSWORD = "correct-horse-battery"


# =============================================================================
# FIXTURES: Database / Client
# =============================================================================

@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Test client without the startup hooks (tables come from the database fixture)."""
    return TestClient(app)


# =============================================================================
# FIXTURES: Users and tokens
# =============================================================================

def create_user(email: str, role: UserRole, employee_id: int = None, is_active: bool = True) -> int:
    with get_db_session() as db:
        user = User(
            email=email,
            password_hash=hash_password(PASSWORD),
            full_name=email.split("@")[0].title(),
            role=role,
            employee_id=employee_id,
            is_active=is_active,
        )
        db.add(user)
        db.flush()
        return user.id


def auth_headers(user_id: int) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest.fixture
def super_admin_headers():
    return auth_headers(create_user("root@example.com", UserRole.SUPER_ADMIN))


@pytest.fixture
def hr_headers():
    return auth_headers(create_user("hr@example.com", UserRole.HR_ADMIN))


@pytest.fixture
def it_headers():
    return auth_headers(create_user("it@example.com", UserRole.IT_ADMIN))


@pytest.fixture
def employee_headers():
    return auth_headers(create_user("staff@example.com", UserRole.EMPLOYEE))


# =============================================================================
# FIXTURES: Sample records
# =============================================================================

def create_employee(**fields) -> int:
    values = {
        "full_name": "Ada Lovelace",
        "personal_email": "ada@example.com",
        "status": EmployeeStatus.CANDIDATE,
    }
    values.update(fields)
    with get_db_session() as db:
        employee = Employee(**values)
        db.add(employee)
        db.flush()
        return employee.id


def create_job(**fields) -> int:
    values = {"title": "Backend Engineer", "status": JobStatus.ACTIVE}
    values.update(fields)
    with get_db_session() as db:
        job = Job(**values)
        db.add(job)
        db.flush()
        return job.id


def create_candidate(job_id: int, **fields) -> int:
    values = {
        "job_id": job_id,
        "name": "Grace Hopper",
        "email": "grace@example.com",
        "stage": CandidateStage.APPLIED,
        "applied_at": utcnow() - timedelta(days=3),
    }
    values.update(fields)
    with get_db_session() as db:
        candidate = JobCandidate(**values)
        db.add(candidate)
        db.flush()
        return candidate.id


@pytest.fixture
def employee_id():
    return create_employee()


@pytest.fixture
def job_id():
    return create_job()
