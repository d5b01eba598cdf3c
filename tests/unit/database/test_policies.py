"""
Tests for flush-time row policies.

Writes are attempted straight through the ORM with an actor bound to the
session, bypassing the service layer.
"""

import pytest
from datetime import datetime, timezone

from core.authorization import Actor
from core.exceptions import NotAuthorized
from database.models.applications import Application, ApplicationStatus
from database.models.content import SiteContent
from database.models.jobs import Job, JobType
from database.models.users import Profile, UserRole
from database.policies import bind_actor, bound_actor


@pytest.fixture
async def employer(make_user):
    return await make_user(UserRole.EMPLOYER)


@pytest.fixture
async def candidate(make_user):
    return await make_user(UserRole.CANDIDATE)


@pytest.fixture
async def application_id(session_factory, employer, candidate, make_job):
    job_id = await make_job(employer)
    async with session_factory() as session:
        application = Application(job_id=job_id, candidate_id=candidate.actor.candidate_id)
        session.add(application)
        await session.commit()
        return application.id


class TestBinding:

    async def test_bind_and_unbind(self, db, candidate):
        bind_actor(db, candidate.actor)
        assert bound_actor(db.sync_session) == candidate.actor

        bind_actor(db, None)
        assert bound_actor(db.sync_session) is None

    async def test_unbound_session_is_trusted(self, db, employer, make_job):
        job_id = await make_job(employer)

        job = await db.get(Job, job_id)
        job.title = "Maintenance rename"
        await db.commit()

        await db.refresh(job)
        assert job.title == "Maintenance rename"


class TestJobPolicies:

    async def test_owner_may_update(self, db, employer, make_job):
        job_id = await make_job(employer)
        bind_actor(db, employer.actor)

        job = await db.get(Job, job_id)
        job.title = "Senior Backend Engineer"
        await db.commit()

    async def test_other_employer_may_not_update(self, db, employer, make_user, make_job):
        job_id = await make_job(employer)
        intruder = await make_user(UserRole.EMPLOYER)
        bind_actor(db, intruder.actor)

        job = await db.get(Job, job_id)
        job.title = "Hijacked"
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    async def test_other_employer_may_not_toggle(self, db, employer, make_user, make_job):
        job_id = await make_job(employer)
        intruder = await make_user(UserRole.EMPLOYER)
        bind_actor(db, intruder.actor)

        job = await db.get(Job, job_id)
        job.is_active = False
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    async def test_candidate_may_not_insert_job(self, db, candidate, employer):
        bind_actor(db, candidate.actor)
        db.add(
            Job(
                employer_id=employer.actor.employer_id,
                title="Fake",
                description="Fake",
                location="Remote",
                job_type=JobType.CONTRACT,
            )
        )
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    async def test_employer_may_not_post_for_another_employer(self, db, employer, make_user):
        other = await make_user(UserRole.EMPLOYER)
        bind_actor(db, employer.actor)
        db.add(
            Job(
                employer_id=other.actor.employer_id,
                title="Impersonated",
                description="Nope",
                location="Remote",
            )
        )
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    async def test_admin_may_delete_any_job(self, db, employer, make_user, make_job):
        job_id = await make_job(employer)
        admin = await make_user(UserRole.ADMIN)
        bind_actor(db, admin.actor)

        await db.delete(await db.get(Job, job_id))
        await db.commit()

        assert await db.get(Job, job_id) is None


class TestApplicationPolicies:

    async def test_owner_may_change_status(self, db, employer, application_id):
        bind_actor(db, employer.actor)

        application = await db.get(Application, application_id)
        application.status = ApplicationStatus.ACCEPTED
        await db.commit()

    async def test_candidate_may_not_change_status(self, db, candidate, application_id):
        bind_actor(db, candidate.actor)

        application = await db.get(Application, application_id)
        application.status = ApplicationStatus.ACCEPTED
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    @pytest.mark.parametrize("column", ["applied_at", "candidate_id"])
    async def test_immutable_columns(self, db, employer, application_id, column):
        bind_actor(db, employer.actor)

        application = await db.get(Application, application_id)
        if column == "applied_at":
            application.applied_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
        else:
            application.candidate_id = application.candidate_id + 1000
        with pytest.raises(NotAuthorized) as exc_info:
            await db.flush()
        await db.rollback()

        assert exc_info.value.details == {"columns": [column]}

    async def test_candidate_may_not_apply_as_someone_else(
        self, db, candidate, make_user, employer, make_job
    ):
        job_id = await make_job(employer)
        other = await make_user(UserRole.CANDIDATE)
        bind_actor(db, candidate.actor)

        db.add(Application(job_id=job_id, candidate_id=other.actor.candidate_id))
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()


class TestProfilePolicies:

    async def test_user_may_edit_own_profile(self, db, candidate):
        bind_actor(db, candidate.actor)

        profile = await db.get(Profile, candidate.id)
        profile.full_name = "Renamed"
        await db.commit()

    async def test_user_may_not_change_own_role(self, db, candidate):
        bind_actor(db, candidate.actor)

        profile = await db.get(Profile, candidate.id)
        profile.role = UserRole.ADMIN
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    async def test_user_may_not_edit_someone_else(self, db, candidate, make_user):
        other = await make_user(UserRole.CANDIDATE)
        bind_actor(db, candidate.actor)

        profile = await db.get(Profile, other.id)
        profile.full_name = "Vandalized"
        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    async def test_admin_may_change_roles(self, db, candidate, make_user):
        admin = await make_user(UserRole.ADMIN)
        bind_actor(db, admin.actor)

        profile = await db.get(Profile, candidate.id)
        profile.role = UserRole.EMPLOYER
        await db.commit()


class TestContentPolicies:

    async def test_non_admin_may_not_write_content(self, db, employer):
        bind_actor(db, employer.actor)
        db.add(SiteContent(section_key="about_page", content={"hero_title": "Hi"}))

        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()

    async def test_unprovisioned_actor_may_not_write(self, db):
        bind_actor(db, Actor(principal_id="fresh-1"))
        db.add(SiteContent(section_key="about_page", content={}))

        with pytest.raises(NotAuthorized):
            await db.flush()
        await db.rollback()
