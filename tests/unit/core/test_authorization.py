"""
Tests for the authorization gate.

Tests:
- Policy table per role, including anonymous visitors
- Ownership and active-job scopes
- authorize() errors and audit logging
- filter_visible() with and without revalidation
"""

import logging

import pytest
from unittest.mock import AsyncMock

from core.authorization import (
    ANONYMOUS_PERMISSIONS,
    ROLE_PERMISSIONS,
    Action,
    Actor,
    Resource,
    Scope,
    authorize,
    filter_visible,
    is_allowed,
)
from core.exceptions import NotAuthenticated, NotAuthorized
from database.models.users import UserRole


CANDIDATE = Actor(principal_id="cand-1", role=UserRole.CANDIDATE, candidate_id=11)
OTHER_CANDIDATE = Actor(principal_id="cand-2", role=UserRole.CANDIDATE, candidate_id=12)
EMPLOYER = Actor(principal_id="emp-1", role=UserRole.EMPLOYER, employer_id=21)
OTHER_EMPLOYER = Actor(principal_id="emp-2", role=UserRole.EMPLOYER, employer_id=22)
ADMIN = Actor(principal_id="admin-1", role=UserRole.ADMIN)
UNPROVISIONED = Actor(principal_id="new-1", role=None)

ACTIVE_JOB = Resource(employer_id=21, is_active=True)
INACTIVE_JOB = Resource(employer_id=21, is_active=False)


class TestPolicyTable:
    """The table itself."""

    def test_anonymous_may_only_read_jobs_and_content(self):
        assert set(ANONYMOUS_PERMISSIONS) == {Action.JOB_READ, Action.CONTENT_READ}
        assert ANONYMOUS_PERMISSIONS[Action.JOB_READ] == Scope.ACTIVE

    def test_only_candidates_apply(self):
        holders = [role for role, table in ROLE_PERMISSIONS.items() if Action.APPLICATION_CREATE in table]
        assert holders == [UserRole.CANDIDATE]

    def test_only_employers_create_jobs(self):
        holders = [role for role, table in ROLE_PERMISSIONS.items() if Action.JOB_CREATE in table]
        assert holders == [UserRole.EMPLOYER]

    def test_only_admins_manage_users_and_content(self):
        for action in (Action.USER_MANAGE, Action.CONTENT_UPDATE):
            holders = [role for role, table in ROLE_PERMISSIONS.items() if action in table]
            assert holders == [UserRole.ADMIN]


class TestIsAllowed:
    """Scope evaluation."""

    @pytest.mark.parametrize("actor", [None, UNPROVISIONED, CANDIDATE, OTHER_EMPLOYER, EMPLOYER, ADMIN])
    def test_everyone_reads_active_jobs(self, actor):
        assert is_allowed(actor, Action.JOB_READ, ACTIVE_JOB)

    @pytest.mark.parametrize(
        "actor,expected",
        [
            (None, False),
            (UNPROVISIONED, False),
            (CANDIDATE, False),
            (OTHER_EMPLOYER, False),
            (EMPLOYER, True),
            (ADMIN, True),
        ],
    )
    def test_inactive_jobs_visible_to_owner_and_admin(self, actor, expected):
        assert is_allowed(actor, Action.JOB_READ, INACTIVE_JOB) is expected

    @pytest.mark.parametrize(
        "action",
        [Action.JOB_UPDATE, Action.JOB_DELETE, Action.JOB_TOGGLE, Action.APPLICATION_UPDATE_STATUS],
    )
    def test_job_mutations_need_ownership(self, action):
        resource = Resource(employer_id=21)
        assert is_allowed(EMPLOYER, action, resource)
        assert is_allowed(ADMIN, action, resource)
        assert not is_allowed(OTHER_EMPLOYER, action, resource)
        assert not is_allowed(CANDIDATE, action, resource)
        assert not is_allowed(None, action, resource)

    def test_candidate_reads_only_own_applications(self):
        own = Resource(employer_id=21, candidate_id=11)
        other = Resource(employer_id=21, candidate_id=12)
        assert is_allowed(CANDIDATE, Action.APPLICATION_READ, own)
        assert not is_allowed(CANDIDATE, Action.APPLICATION_READ, other)

    def test_employer_reads_applications_to_own_jobs(self):
        application = Resource(employer_id=21, candidate_id=11)
        assert is_allowed(EMPLOYER, Action.APPLICATION_READ, application)
        assert not is_allowed(OTHER_EMPLOYER, Action.APPLICATION_READ, application)

    def test_profile_update_is_own_unless_admin(self):
        resource = Resource(principal_id="cand-1")
        assert is_allowed(CANDIDATE, Action.PROFILE_UPDATE, resource)
        assert not is_allowed(OTHER_CANDIDATE, Action.PROFILE_UPDATE, resource)
        assert is_allowed(ADMIN, Action.PROFILE_UPDATE, resource)

    def test_apply_requires_candidate_profile(self):
        assert is_allowed(CANDIDATE, Action.APPLICATION_CREATE, Resource(candidate_id=11))
        no_profile = Actor(principal_id="cand-3", role=UserRole.CANDIDATE)
        assert not is_allowed(no_profile, Action.APPLICATION_CREATE, Resource(candidate_id=None))

    def test_missing_resource_is_not_owned(self):
        assert not is_allowed(EMPLOYER, Action.JOB_UPDATE)


class TestAuthorize:
    """authorize() raises and logs."""

    def test_returns_actor_when_allowed(self):
        assert authorize(EMPLOYER, Action.JOB_UPDATE, Resource(employer_id=21)) is EMPLOYER

    def test_anonymous_allowed_action_returns_none(self):
        assert authorize(None, Action.CONTENT_READ) is None

    def test_anonymous_denied_is_not_authenticated(self):
        with pytest.raises(NotAuthenticated):
            authorize(None, Action.APPLICATION_CREATE)

    def test_wrong_role_is_not_authorized(self):
        with pytest.raises(NotAuthorized) as exc_info:
            authorize(CANDIDATE, Action.APPLICATION_UPDATE_STATUS, Resource(employer_id=21))
        assert exc_info.value.details == {"permission": "application:update_status"}

    def test_unprovisioned_principal_is_not_authorized(self):
        with pytest.raises(NotAuthorized):
            authorize(UNPROVISIONED, Action.PROFILE_UPDATE, Resource(principal_id="new-1"))

    def test_denial_is_audited(self, caplog):
        with caplog.at_level(logging.INFO, logger="security.audit"):
            with pytest.raises(NotAuthorized):
                authorize(OTHER_EMPLOYER, Action.JOB_DELETE, Resource(employer_id=21))
        audit = [r for r in caplog.records if r.name == "security.audit"]
        assert audit
        assert "ACCESS_DENIED" in audit[-1].getMessage()


class TestFilterVisible:
    """Post-read re-checks."""

    async def test_keeps_allowed_rows(self):
        rows = [ACTIVE_JOB, ACTIVE_JOB]
        kept = await filter_visible(None, Action.JOB_READ, rows, lambda r: r)
        assert kept == rows

    async def test_drops_violating_rows(self, caplog):
        rows = [ACTIVE_JOB, INACTIVE_JOB]
        with caplog.at_level(logging.WARNING):
            kept = await filter_visible(CANDIDATE, Action.JOB_READ, rows, lambda r: r)
        assert kept == [ACTIVE_JOB]
        assert any("Dropped 1 row" in r.getMessage() for r in caplog.records)

    async def test_revalidates_before_dropping(self):
        stale = Actor(principal_id="emp-1", role=UserRole.CANDIDATE, candidate_id=99)
        revalidate = AsyncMock(return_value=EMPLOYER)

        kept = await filter_visible(stale, Action.JOB_READ, [INACTIVE_JOB], lambda r: r, revalidate)

        revalidate.assert_awaited_once_with(stale)
        assert kept == [INACTIVE_JOB]

    async def test_no_revalidation_when_nothing_dropped(self):
        revalidate = AsyncMock()
        await filter_visible(EMPLOYER, Action.JOB_READ, [INACTIVE_JOB], lambda r: r, revalidate)
        revalidate.assert_not_awaited()
