"""
Tests for admin user moderation.
"""

import pytest
from datetime import datetime, timedelta, timezone

from api.services.applications import apply_to_job
from api.services.users import delete_user, get_overview, get_user, list_users, update_user
from core.exceptions import NotAuthorized, NotFound, ValidationFailed
from core.identity import PrincipalChangeKind
from core.sessions import SessionBackup
from database.models.applications import Application
from database.models.candidates import CandidateProfile
from database.models.jobs import Job
from database.models.users import Principal, Profile, UserRole


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, full_name="Ada Admin")


@pytest.fixture
async def candidate(make_user):
    return await make_user(UserRole.CANDIDATE, full_name="Casey Candidate")


@pytest.fixture
async def employer(make_user):
    return await make_user(UserRole.EMPLOYER, full_name="Erin Employer")


@pytest.fixture
def events(notifier):
    seen = []
    notifier.subscribe(seen.append)
    return seen


class TestOverview:

    async def test_counts(self, db, admin, candidate, employer, make_job):
        job_id = await make_job(employer)
        await make_job(employer, is_active=False)
        await apply_to_job(db, candidate.actor, job_id)

        overview = await get_overview(db, admin.actor)

        assert overview["users"]["by_role"] == {"candidate": 1, "employer": 1, "admin": 1}
        assert overview["jobs"] == {"total": 2, "active": 1, "inactive": 1}
        assert overview["applications"]["by_status"]["pending"] == 1

    async def test_requires_admin(self, db, employer):
        with pytest.raises(NotAuthorized):
            await get_overview(db, employer.actor)


class TestListUsers:

    async def test_search_by_name_or_email(self, db, admin, candidate, employer):
        by_name = await list_users(db, admin.actor, search="casey")
        by_email = await list_users(db, admin.actor, search=employer.email.upper())

        assert [u["id"] for u in by_name["items"]] == [candidate.id]
        assert [u["id"] for u in by_email["items"]] == [employer.id]

    async def test_filter_by_role(self, db, admin, candidate, employer):
        page = await list_users(db, admin.actor, role="employer")

        assert page["total"] == 1
        assert page["items"][0]["employer_profile"]["company_name"] == "Acme Corp"

    async def test_unknown_role(self, db, admin):
        with pytest.raises(ValidationFailed):
            await list_users(db, admin.actor, role="wizard")

    async def test_get_user(self, db, admin, candidate):
        user = await get_user(db, admin.actor, candidate.id)
        assert user["candidate_profile"] is not None

    async def test_get_missing_user(self, db, admin):
        with pytest.raises(NotFound):
            await get_user(db, admin.actor, "missing")


class TestUpdateUser:

    async def test_edit_name(self, db, admin, candidate, notifier, events):
        user = await update_user(db, admin.actor, candidate.id, {"full_name": "Casey Renamed"}, notifier)

        assert user["full_name"] == "Casey Renamed"
        assert events == []

    async def test_switch_to_candidate_creates_profile(self, db, admin, employer, notifier, events):
        user = await update_user(db, admin.actor, employer.id, {"role": "candidate"}, notifier)

        assert user["role"] == "candidate"
        assert user["candidate_profile"] is not None
        assert [(e.principal_id, e.kind) for e in events] == [
            (employer.id, PrincipalChangeKind.PROFILE_CHANGED)
        ]

    async def test_switch_to_employer_requires_company(self, db, admin, candidate):
        with pytest.raises(ValidationFailed):
            await update_user(db, admin.actor, candidate.id, {"role": "employer"})

    async def test_switch_to_employer(self, db, admin, candidate):
        user = await update_user(
            db,
            admin.actor,
            candidate.id,
            {"role": "employer", "company_name": "Initech", "location": "Austin"},
        )

        assert user["employer_profile"]["company_name"] == "Initech"
        assert user["candidate_profile"] is not None

    async def test_admin_cannot_change_own_role(self, db, admin):
        with pytest.raises(NotAuthorized):
            await update_user(db, admin.actor, admin.id, {"role": "candidate"})

    async def test_unknown_fields(self, db, admin, candidate):
        with pytest.raises(ValidationFailed):
            await update_user(db, admin.actor, candidate.id, {"email": "x@example.com"})

    async def test_requires_admin(self, db, candidate, employer):
        with pytest.raises(NotAuthorized):
            await update_user(db, employer.actor, candidate.id, {"full_name": "Nope"})


class TestDeleteUser:

    async def _backup_session(self, session_store, principal_id, session_id):
        now = datetime.now(timezone.utc)
        await session_store.backup(
            SessionBackup(session_id, principal_id, "hash", now, now + timedelta(hours=1))
        )

    async def test_delete_employer_cascades(
        self, db, session_factory, admin, employer, candidate, make_job, session_store, notifier, events
    ):
        job_id = await make_job(employer)
        await make_job(employer, is_active=False)
        await apply_to_job(db, candidate.actor, job_id)
        await self._backup_session(session_store, employer.id, "sid-emp")

        outcome = await delete_user(db, admin.actor, employer.id, session_store, notifier)

        assert outcome == {"user_id": employer.id, "jobs": 2, "applications": 1}
        async with session_factory() as check:
            assert await check.get(Principal, employer.id) is None
            assert await check.get(Profile, employer.id) is None
            assert await check.get(Job, job_id) is None
        assert await session_store.restore("sid-emp") is None
        assert events[-1].kind == PrincipalChangeKind.DELETED

    async def test_delete_candidate_removes_applications_and_resume(
        self, db, session_factory, admin, make_user, employer, make_job, session_store, notifier,
        blob_storage,
    ):
        path = await blob_storage.upload("someone/resume_1.pdf", b"cv")
        candidate = await make_user(UserRole.CANDIDATE, resume_url=blob_storage.public_url(path))
        job_id = await make_job(employer)
        application = await apply_to_job(db, candidate.actor, job_id)

        outcome = await delete_user(
            db, admin.actor, candidate.id, session_store, notifier, blob_storage
        )

        assert outcome["applications"] == 1
        async with session_factory() as check:
            assert await check.get(Application, application["id"]) is None
            assert await check.get(CandidateProfile, candidate.actor.candidate_id) is None
        with pytest.raises(FileNotFoundError):
            blob_storage.read(path)

    async def test_admins_cannot_be_deleted(self, db, admin, make_user, session_store, notifier):
        other_admin = await make_user(UserRole.ADMIN)

        with pytest.raises(NotAuthorized):
            await delete_user(db, admin.actor, other_admin.id, session_store, notifier)

    async def test_missing_user(self, db, admin, session_store, notifier):
        with pytest.raises(NotFound):
            await delete_user(db, admin.actor, "missing", session_store, notifier)

    async def test_requires_admin(self, db, employer, candidate, session_store, notifier):
        with pytest.raises(NotAuthorized):
            await delete_user(db, employer.actor, candidate.id, session_store, notifier)
