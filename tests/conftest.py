"""Shared fixtures and utilities for tests."""

import os

# Settings are read once at import time, so the environment goes first
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-min-32-chars-long-for-security"
os.environ["EMAIL_BACKEND"] = "console"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_PUBLIC_BASE_URL"] = "http://testserver/files"
os.environ["JSON_LOGS"] = "false"
os.environ.pop("REDIS_URL", None)

import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
import pytest

import database.policies  # noqa: F401  registers the flush-time row policies
from core.authorization import Actor
from core.identity import IdentityResolver, PrincipalChangeNotifier
from core.integrations.email import EmailService
from core.security import hash_password
from core.sessions import InMemorySessionStore
from core.storage.local import LocalBlobStorage
from database.engine import build_engine, build_session_factory, init_db
from database.models.candidates import CandidateProfile
from database.models.employers import EmployerProfile
from database.models.jobs import Job, JobType
from database.models.users import Principal, Profile, UserRole

DEFAULT_PASSWORD = "Passw0rd-123"
_DEFAULT_PASSWORD_HASH = hash_password(DEFAULT_PASSWORD)
RESUME_URL = "http://testserver/files/resumes/existing/resume.pdf"


@dataclass
class SeededUser:
    """A provisioned principal created directly in the database."""

    actor: Actor
    email: str
    password: str = DEFAULT_PASSWORD

    @property
    def id(self) -> str:
        return self.actor.principal_id


# ==================== Storage ==================== #

@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so constraints, cascades and locking behave for real."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ==================== Collaborators ==================== #

@pytest.fixture
def notifier():
    return PrincipalChangeNotifier()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def blob_storage(tmp_path):
    return LocalBlobStorage(str(tmp_path / "blobs"), "resumes", "http://testserver/files")


@pytest.fixture
def email_service():
    return EmailService(backend="console")


@pytest.fixture
async def resolver(session_factory, notifier):
    resolver = IdentityResolver(session_factory, notifier)
    await resolver.start()
    yield resolver
    await resolver.close()


# ==================== App ==================== #

@pytest.fixture
async def app(session_factory, session_store, blob_storage, email_service):
    from api.main import app as fastapi_app, shutdown, startup

    await startup(
        fastapi_app,
        session_factory,
        session_store=session_store,
        blob_storage=blob_storage,
        email_service=email_service,
    )
    yield fastapi_app
    await shutdown(fastapi_app)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def login(client):
    """Sign in through the API and return bearer headers."""

    async def _login(user: SeededUser) -> dict[str, str]:
        response = await client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": user.password}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


# ==================== Factories ==================== #

@pytest.fixture
def make_user(session_factory):
    """Create a verified principal with its profile and role profile."""

    async def _make(
        role: UserRole = UserRole.CANDIDATE,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        resume_url: Optional[str] = RESUME_URL,
        company_name: str = "Acme Corp",
        location: str = "Remote",
    ) -> SeededUser:
        principal_id = str(uuid.uuid4())
        email = email or f"{role.value}-{principal_id[:8]}@example.com"

        candidate_id = employer_id = None
        async with session_factory() as session:
            session.add(
                Principal(
                    id=principal_id,
                    email=email,
                    hashed_password=_DEFAULT_PASSWORD_HASH,
                    email_verified=True,
                )
            )
            session.add(
                Profile(
                    id=principal_id,
                    full_name=full_name or f"Test {role.value.title()}",
                    email=email,
                    role=role,
                )
            )
            await session.flush()

            if role == UserRole.CANDIDATE:
                candidate = CandidateProfile(user_id=principal_id, resume_url=resume_url)
                session.add(candidate)
                await session.flush()
                candidate_id = candidate.id
            elif role == UserRole.EMPLOYER:
                employer = EmployerProfile(
                    user_id=principal_id, company_name=company_name, location=location
                )
                session.add(employer)
                await session.flush()
                employer_id = employer.id
            await session.commit()

        actor = Actor(
            principal_id=principal_id,
            role=role,
            candidate_id=candidate_id,
            employer_id=employer_id,
        )
        return SeededUser(actor=actor, email=email)

    return _make


@pytest.fixture
def make_job(session_factory):
    """Insert a job for an employer and return its id."""

    async def _make(
        employer: SeededUser,
        title: str = "Backend Engineer",
        is_active: bool = True,
        **fields,
    ) -> int:
        values = {
            "description": "Build and run APIs.",
            "location": "Remote",
            "job_type": JobType.FULL_TIME,
            "skills_required": ["Python"],
            "work_authorization": [],
        }
        values.update(fields)
        async with session_factory() as session:
            job = Job(
                employer_id=employer.actor.employer_id,
                title=title,
                is_active=is_active,
                **values,
            )
            session.add(job)
            await session.commit()
            return job.id

    return _make
