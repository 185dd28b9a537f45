"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("LOG_LEVEL", "INFO")

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.main import create_app
from api.services.auth import AuthService
from api.services.jobs import JobService
from core.config import Settings, get_settings
from core.security import TokenService, hash_password
from database.engine import Database
from database.models import (
    Company,
    CompanyMember,
    CompanyMemberRole,
    EmploymentType,
    Job,
    JobCategory,
    JobStatus,
    RemoteType,
    User,
    UserRole,
)

TEST_PASSWORD = "SecurePass123!"

# bcrypt is slow on purpose; hash once for every seeded user
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@dataclass
class Seed:
    """Ids of the rows created by ``seed_database``."""

    acme_id: int
    globex_id: int
    software_category_id: int
    design_category_id: int
    employer_id: int
    recruiter_id: int
    member_id: int
    globex_employer_id: int
    unaffiliated_employer_id: int
    seeker_id: int
    inactive_employer_id: int


async def seed_database(db: Database) -> Seed:
    """
    Create two companies, two categories and one user per access scenario.

    - employer: acme admin
    - recruiter: acme recruiter
    - member: employer with a plain acme membership (cannot post)
    - globex_employer: globex admin
    - unaffiliated_employer: employer without any company
    - seeker: job seeker
    - inactive_employer: disabled acme admin
    """
    async with db.session() as session:
        acme = Company(name="Acme Corp", slug="acme", location="Berlin", is_verified=True)
        globex = Company(name="Globex", slug="globex", location="Springfield")
        software = JobCategory(name="Software Development", slug="software-development")
        design = JobCategory(name="Design", slug="design")
        session.add_all([acme, globex, software, design])
        await session.flush()

        def make_user(email: str, role: UserRole, **kwargs) -> User:
            first, _, last = email.split("@")[0].partition(".")
            return User(
                email=email,
                password_hash=TEST_PASSWORD_HASH,
                first_name=first.title(),
                last_name=(last or "Tester").title(),
                role=role,
                **kwargs,
            )

        employer = make_user("erin.admin@acme.com", UserRole.EMPLOYER)
        recruiter = make_user("rita.recruiter@acme.com", UserRole.EMPLOYER)
        member = make_user("mo.member@acme.com", UserRole.EMPLOYER)
        globex_employer = make_user("gus.boss@globex.com", UserRole.EMPLOYER)
        unaffiliated = make_user("sol.solo@nowhere.com", UserRole.EMPLOYER)
        seeker = make_user("sam.seeker@example.com", UserRole.JOB_SEEKER)
        inactive = make_user("ivy.inactive@acme.com", UserRole.EMPLOYER, is_active=False)
        session.add_all([employer, recruiter, member, globex_employer, unaffiliated, seeker, inactive])
        await session.flush()

        session.add_all(
            [
                CompanyMember(company_id=acme.id, user_id=employer.id, role=CompanyMemberRole.ADMIN),
                CompanyMember(company_id=acme.id, user_id=recruiter.id, role=CompanyMemberRole.RECRUITER),
                CompanyMember(company_id=acme.id, user_id=member.id, role=CompanyMemberRole.MEMBER),
                CompanyMember(company_id=globex.id, user_id=globex_employer.id, role=CompanyMemberRole.ADMIN),
                CompanyMember(company_id=acme.id, user_id=inactive.id, role=CompanyMemberRole.ADMIN),
            ]
        )
        await session.commit()

        return Seed(
            acme_id=acme.id,
            globex_id=globex.id,
            software_category_id=software.id,
            design_category_id=design.id,
            employer_id=employer.id,
            recruiter_id=recruiter.id,
            member_id=member.id,
            globex_employer_id=globex_employer.id,
            unaffiliated_employer_id=unaffiliated.id,
            seeker_id=seeker.id,
            inactive_employer_id=inactive.id,
        )


async def insert_job(db: Database, company_id: int, posted_by: int, **overrides: Any) -> int:
    """Insert a job row directly, bypassing the service."""
    values = {
        "title": "Backend Engineer",
        "slug": "backend-engineer",
        "description": "Build and run APIs.",
        "employment_type": EmploymentType.FULL_TIME,
        "remote_type": RemoteType.REMOTE,
        "status": JobStatus.ACTIVE,
    }
    values.update(overrides)
    async with db.session() as session:
        job = Job(company_id=company_id, posted_by=posted_by, **values)
        session.add(job)
        await session.commit()
        return job.id


# ==================== Settings and tokens ==================== #

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return get_settings().model_copy(
        update={
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'jobboard.db'}",
            "database_auto_create": True,
            "debug": False,
        }
    )


@pytest.fixture
def token_service(test_settings) -> TokenService:
    return TokenService.from_settings(test_settings)


@pytest.fixture
def auth_headers(token_service) -> Callable[..., dict]:
    """Build an Authorization header for a user id."""

    def _headers(user_id: int, email: str = "user@example.com", role: str = "employer") -> dict:
        token = token_service.create_access_token(user_id, email, role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ==================== Async database fixtures ==================== #

@pytest_asyncio.fixture
async def database(test_settings):
    """Fresh schema in a temp-file SQLite database."""
    db = Database(test_settings.database_url)
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def seed(database) -> Seed:
    return await seed_database(database)


@pytest.fixture
def make_job(database) -> Callable[..., Any]:
    """Insert a job into the async test database."""

    async def _make(company_id: int, posted_by: int, **overrides: Any) -> int:
        return await insert_job(database, company_id, posted_by, **overrides)

    return _make


@pytest.fixture
def job_service(database) -> JobService:
    return JobService(database)


@pytest.fixture
def auth_service(database, token_service) -> AuthService:
    return AuthService(database, token_service)


# ==================== HTTP fixtures ==================== #

@pytest.fixture
def api_database(test_settings):
    """
    Seeded database for synchronous API tests.

    Built outside pytest-asyncio because TestClient runs the app on its
    own event loop.
    """
    db = Database(test_settings.database_url)
    asyncio.run(db.create_all())
    seed_ids = asyncio.run(seed_database(db))
    yield db, seed_ids
    asyncio.run(db.close())


@pytest.fixture
def api_seed(api_database) -> Seed:
    return api_database[1]


@pytest.fixture
def client(api_database, test_settings):
    """Test client for an app bound to the seeded database."""
    db, _ = api_database
    app = create_app(test_settings, database=db)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def api_insert_job(api_database) -> Callable[..., int]:
    """Synchronously insert a job into the API test database."""
    db, _ = api_database

    def _insert(company_id: int, posted_by: int, **overrides: Any) -> int:
        return asyncio.run(insert_job(db, company_id, posted_by, **overrides))

    return _insert
