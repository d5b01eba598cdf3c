"""
Tests for About page content.
"""

import pytest

from api.services.content import get_about_content, update_about_content, validate_about_content
from core.exceptions import NotAuthenticated, NotAuthorized, ValidationFailed
from database.models.content import ABOUT_PAGE_KEYS
from database.models.users import UserRole


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN)


class TestValidateAboutContent:

    def test_blank_values_become_none(self):
        assert validate_about_content({"hero_title": "  ", "mission_body": None}) == {
            "hero_title": None,
            "mission_body": None,
        }

    def test_unknown_keys(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_about_content({"footer": "x"})
        assert exc_info.value.details == {"keys": ["footer"]}

    def test_social_links_must_be_urls(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_about_content({"social_twitter": "@opentowork"})
        assert exc_info.value.field == "social_twitter"

    def test_contact_email_normalized(self):
        cleaned = validate_about_content({"contact_email": "Hello@OpenToWork.example.com"})
        assert cleaned["contact_email"] == "hello@opentowork.example.com"

    def test_non_string_value(self):
        with pytest.raises(ValidationFailed):
            validate_about_content({"hero_title": 42})


class TestAboutContent:

    async def test_empty_content_has_every_key(self, db):
        about = await get_about_content(db)

        assert set(about["content"]) == set(ABOUT_PAGE_KEYS)
        assert all(value is None for value in about["content"].values())
        assert about["updated_at"] is None

    async def test_admin_upserts(self, db, admin):
        await update_about_content(db, admin.actor, {"hero_title": "Find work", "mission_title": "Why"})
        about = await update_about_content(db, admin.actor, {"hero_title": "Find great work"})

        assert about["content"]["hero_title"] == "Find great work"
        assert about["content"]["mission_title"] == "Why"
        assert about["last_updated_by"] == admin.id
        assert (await get_about_content(db))["content"]["hero_title"] == "Find great work"

    async def test_clearing_a_social_link(self, db, admin):
        await update_about_content(db, admin.actor, {"social_linkedin": "https://linkedin.com/company/otw"})
        about = await update_about_content(db, admin.actor, {"social_linkedin": ""})

        assert about["content"]["social_linkedin"] is None

    async def test_non_admin_rejected(self, db, make_user):
        employer = await make_user(UserRole.EMPLOYER)

        with pytest.raises(NotAuthorized):
            await update_about_content(db, employer.actor, {"hero_title": "Hi"})

    async def test_anonymous_rejected(self, db):
        with pytest.raises(NotAuthenticated):
            await update_about_content(db, None, {"hero_title": "Hi"})
