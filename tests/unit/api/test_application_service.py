"""
Tests for application service functions.

Tests:
- Applying: resume requirement, closed jobs, duplicates
- Status changes in every direction by owner or admin
- Candidate and per-job listings
"""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from api.services.applications import (
    apply_to_job,
    get_application,
    has_applied,
    is_duplicate_application,
    list_candidate_applications,
    list_job_applications,
    update_application_status,
)
from api.services.jobs import toggle_job
from core.exceptions import (
    AlreadyApplied,
    NotAuthenticated,
    NotAuthorized,
    NotFound,
    ResumeRequired,
    ValidationFailed,
)
from database.models.applications import ApplicationStatus
from database.models.users import UserRole


@pytest.fixture
async def employer(make_user):
    return await make_user(UserRole.EMPLOYER, company_name="Acme Corp")


@pytest.fixture
async def candidate(make_user):
    return await make_user(UserRole.CANDIDATE, full_name="Casey Candidate")


@pytest.fixture
async def job_id(employer, make_job):
    return await make_job(employer)


class TestApply:

    async def test_apply(self, db, candidate, job_id):
        application = await apply_to_job(db, candidate.actor, job_id, "  Hire me  ")

        assert application["status"] == "pending"
        assert application["cover_letter"] == "Hire me"
        assert application["candidate_id"] == candidate.actor.candidate_id

    async def test_blank_cover_letter_stored_as_null(self, db, candidate, job_id):
        application = await apply_to_job(db, candidate.actor, job_id, "   ")
        assert application["cover_letter"] is None

    async def test_resume_required(self, db, make_user, job_id):
        no_resume = await make_user(UserRole.CANDIDATE, resume_url=None)

        with pytest.raises(ResumeRequired) as exc_info:
            await apply_to_job(db, no_resume.actor, job_id)

        assert exc_info.value.status_code == 422
        assert (await has_applied(db, no_resume.actor, job_id))["has_applied"] is False

    async def test_blank_resume_url_counts_as_missing(self, db, make_user, job_id):
        blank = await make_user(UserRole.CANDIDATE, resume_url="  ")

        with pytest.raises(ResumeRequired):
            await apply_to_job(db, blank.actor, job_id)

    async def test_duplicate(self, db, candidate, job_id):
        await apply_to_job(db, candidate.actor, job_id)

        with pytest.raises(AlreadyApplied) as exc_info:
            await apply_to_job(db, candidate.actor, job_id)

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "You have already applied to this job."

    async def test_concurrent_duplicates(self, session_factory, candidate, job_id):
        async with session_factory() as first, session_factory() as second:
            results = await asyncio.gather(
                apply_to_job(first, candidate.actor, job_id),
                apply_to_job(second, candidate.actor, job_id),
                return_exceptions=True,
            )

        created = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, AlreadyApplied)]
        assert len(created) == 1
        assert len(rejected) == 1

    async def test_inactive_job(self, db, candidate, employer, job_id):
        await toggle_job(db, employer.actor, job_id)

        with pytest.raises(NotFound):
            await apply_to_job(db, candidate.actor, job_id)

    async def test_missing_job(self, db, candidate):
        with pytest.raises(NotFound):
            await apply_to_job(db, candidate.actor, 31337)

    async def test_employer_cannot_apply(self, db, employer, job_id):
        with pytest.raises(NotAuthorized):
            await apply_to_job(db, employer.actor, job_id)

    async def test_anonymous_cannot_apply(self, db, job_id):
        with pytest.raises(NotAuthenticated):
            await apply_to_job(db, None, job_id)


class TestStatus:

    @pytest.fixture
    async def application_id(self, db, candidate, job_id):
        return (await apply_to_job(db, candidate.actor, job_id))["id"]

    async def test_owner_moves_in_any_direction(self, db, employer, application_id):
        for status in ("accepted", "rejected", "pending", "accepted"):
            application = await update_application_status(db, employer.actor, application_id, status)
            assert application["status"] == status

    async def test_same_status_is_allowed(self, db, employer, application_id):
        application = await update_application_status(
            db, employer.actor, application_id, ApplicationStatus.PENDING
        )
        assert application["status"] == "pending"

    async def test_unknown_status(self, db, employer, application_id):
        with pytest.raises(ValidationFailed) as exc_info:
            await update_application_status(db, employer.actor, application_id, "hired")
        assert exc_info.value.field == "status"

    async def test_other_employer_rejected(self, db, make_user, application_id):
        intruder = await make_user(UserRole.EMPLOYER)

        with pytest.raises(NotAuthorized):
            await update_application_status(db, intruder.actor, application_id, "accepted")

    async def test_candidate_cannot_change_status(self, db, candidate, application_id):
        with pytest.raises(NotAuthorized):
            await update_application_status(db, candidate.actor, application_id, "accepted")

    async def test_admin_may_change_status(self, db, make_user, application_id):
        admin = await make_user(UserRole.ADMIN)

        application = await update_application_status(db, admin.actor, application_id, "rejected")

        assert application["status"] == "rejected"

    async def test_missing_application(self, db, employer):
        with pytest.raises(NotFound):
            await update_application_status(db, employer.actor, 999, "accepted")

    async def test_status_change_keeps_applied_at(self, db, employer, candidate, application_id):
        before = await get_application(db, candidate.actor, application_id)

        after = await update_application_status(db, employer.actor, application_id, "accepted")

        assert after["applied_at"] == before["applied_at"]
        assert after["job_id"] == before["job_id"]


class TestReads:

    async def test_get_application_visibility(self, db, candidate, employer, make_user, job_id):
        application_id = (await apply_to_job(db, candidate.actor, job_id))["id"]
        other_candidate = await make_user(UserRole.CANDIDATE)

        assert (await get_application(db, candidate.actor, application_id))["job"]["id"] == job_id
        assert (await get_application(db, employer.actor, application_id))["id"] == application_id
        with pytest.raises(NotAuthorized):
            await get_application(db, other_candidate.actor, application_id)

    async def test_has_applied(self, db, candidate, job_id):
        assert await has_applied(db, candidate.actor, job_id) == {
            "job_id": job_id,
            "has_applied": False,
            "application_id": None,
            "status": None,
        }

        application = await apply_to_job(db, candidate.actor, job_id)
        result = await has_applied(db, candidate.actor, job_id)

        assert result["has_applied"] is True
        assert result["application_id"] == application["id"]
        assert result["status"] == "pending"

    async def test_candidate_listing(self, db, candidate, employer, make_job, job_id):
        second_job = await make_job(employer, title="Platform Engineer")
        await apply_to_job(db, candidate.actor, job_id)
        await apply_to_job(db, candidate.actor, second_job)

        items = await list_candidate_applications(db, candidate.actor)

        assert [item["job"]["id"] for item in items] == [second_job, job_id]
        assert items[0]["job"]["company_name"] == "Acme Corp"

    async def test_candidate_listing_shows_inactive_jobs(self, db, candidate, employer, job_id):
        await apply_to_job(db, candidate.actor, job_id)
        await toggle_job(db, employer.actor, job_id)

        items = await list_candidate_applications(db, candidate.actor)

        assert items[0]["job"]["is_active"] is False

    async def test_job_listing_includes_candidate_details(self, db, candidate, employer, job_id):
        await apply_to_job(db, candidate.actor, job_id)

        items = await list_job_applications(db, employer.actor, job_id)

        assert len(items) == 1
        assert items[0]["candidate"]["full_name"] == "Casey Candidate"
        assert items[0]["candidate"]["email"] == candidate.email
        assert items[0]["candidate"]["resume_url"]

    async def test_job_listing_owner_only(self, db, candidate, make_user, job_id):
        intruder = await make_user(UserRole.EMPLOYER)

        with pytest.raises(NotAuthorized):
            await list_job_applications(db, intruder.actor, job_id)
        with pytest.raises(NotAuthorized):
            await list_job_applications(db, candidate.actor, job_id)


class TestDuplicateDetection:

    def _error(self, message):
        return IntegrityError("INSERT INTO applications", {}, Exception(message))

    def test_sqlite_unique_message(self):
        error = self._error(
            "UNIQUE constraint failed: applications.candidate_id, applications.job_id"
        )
        assert is_duplicate_application(error)

    def test_postgres_constraint_name(self):
        error = self._error(
            'duplicate key value violates unique constraint "uq_application_candidate_job"'
        )
        assert is_duplicate_application(error)

    def test_other_integrity_errors(self):
        error = self._error("FOREIGN KEY constraint failed")
        assert not is_duplicate_application(error)
