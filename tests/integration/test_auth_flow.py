"""
Integration tests for complete authentication flows.

Tests end-to-end scenarios:
- Sign-up → emailed code → verify → /auth/me → refresh → logout
- Employer sign-up landing with company details in place
- Re-signing up before verification replaces the pending code
"""

import re

API = "/api/v1"
PASSWORD = "Passw0rd-123"


def code_from(email_service, to: str) -> str:
    message = next(m for m in reversed(email_service.outbox) if m["to"] == to)
    return re.search(r"verification code is (\d{6})", message["body"]).group(1)


async def test_candidate_signup_to_logout(client, email_service):
    signup = await client.post(
        f"{API}/auth/signup",
        json={
            "email": "Seeker@Example.com",
            "password": PASSWORD,
            "full_name": "Sam Seeker",
            "role": "candidate",
        },
    )
    assert signup.status_code == 201

    blocked = await client.post(
        f"{API}/auth/login", json={"email": "seeker@example.com", "password": PASSWORD}
    )
    assert blocked.status_code == 403

    verified = await client.post(
        f"{API}/auth/verify",
        json={"email": "seeker@example.com", "code": code_from(email_service, "seeker@example.com")},
    )
    assert verified.status_code == 200
    tokens = verified.json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    me = await client.get(f"{API}/auth/me", headers=headers)
    assert me.json()["role"] == "candidate"
    assert me.json()["full_name"] == "Sam Seeker"

    profile = await client.get(f"{API}/profiles/me", headers=headers)
    assert profile.json()["candidate_profile"]["resume_url"] is None

    refreshed = await client.post(
        f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert refreshed.status_code == 200
    headers = {"Authorization": f"Bearer {refreshed.json()['access_token']}"}
    assert (await client.get(f"{API}/auth/me", headers=headers)).status_code == 200

    assert (await client.post(f"{API}/auth/logout", headers=headers)).status_code == 200
    assert (await client.get(f"{API}/auth/me", headers=headers)).status_code == 401
    stale = await client.post(
        f"{API}/auth/refresh", json={"refresh_token": refreshed.json()["refresh_token"]}
    )
    assert stale.status_code == 401

    again = await client.post(
        f"{API}/auth/login", json={"email": "seeker@example.com", "password": PASSWORD}
    )
    assert again.status_code == 200


async def test_employer_signup_can_post_jobs(client, email_service):
    await client.post(
        f"{API}/auth/signup",
        json={
            "email": "hiring@example.com",
            "password": PASSWORD,
            "full_name": "Hana Hiring",
            "role": "employer",
            "company": {"company_name": "Globex", "location": "Springfield"},
        },
    )
    verified = await client.post(
        f"{API}/auth/verify",
        json={"email": "hiring@example.com", "code": code_from(email_service, "hiring@example.com")},
    )
    headers = {"Authorization": f"Bearer {verified.json()['access_token']}"}

    profile = await client.get(f"{API}/profiles/me", headers=headers)
    assert profile.json()["employer_profile"]["company_name"] == "Globex"

    posted = await client.post(
        f"{API}/jobs",
        json={
            "title": "Support Lead",
            "description": "Run the help desk.",
            "location": "Springfield",
            "job_type": "Part-time",
        },
        headers=headers,
    )
    assert posted.status_code == 201
    assert posted.json()["work_authorization"] == []


async def test_resignup_replaces_pending_code(client, email_service):
    payload = {
        "email": "twice@example.com",
        "password": PASSWORD,
        "full_name": "Twice",
        "role": "candidate",
    }
    await client.post(f"{API}/auth/signup", json=payload)
    first_code = code_from(email_service, "twice@example.com")
    await client.post(f"{API}/auth/signup", json=payload)
    second_code = code_from(email_service, "twice@example.com")

    if first_code != second_code:
        stale = await client.post(
            f"{API}/auth/verify", json={"email": "twice@example.com", "code": first_code}
        )
        assert stale.status_code == 422

    fresh = await client.post(
        f"{API}/auth/verify", json={"email": "twice@example.com", "code": second_code}
    )
    assert fresh.status_code == 200
