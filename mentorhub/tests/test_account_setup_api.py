"""
Account setup over HTTP.

Requirements:
- Names and password are validated server-side; errors map to fields.
- The password goes to the identity provider only; nothing echoes it back.
- The profile is created (mentee, first onboarding step) only after the
  provider accepted the update.
"""
from __future__ import annotations

import pytest

from mentorhub.identity_access.credentials import CredentialUpdateError
from mentorhub.onboarding.steps import OnboardingStep as S
from mentorhub.tests.utils.app import client, open_session, seed_profile
from mentorhub.web import main

pytestmark = pytest.mark.anyio("asyncio")

VALID = {
    "first_name": " Max ",
    "last_name": "Muster",
    "password": "correct-horse-1",
    "confirm_password": "correct-horse-1",
}


class _FakeCredentials:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple] = []

    def set_password(self, *, user_id: str, password: str) -> None:
        if self.fail:
            raise CredentialUpdateError("password_update_failed")
        self.calls.append(("password", user_id, password))

    def set_names(self, *, user_id: str, first_name: str, last_name: str) -> None:
        self.calls.append(("names", user_id, first_name, last_name))


@pytest.fixture
def creds(monkeypatch: pytest.MonkeyPatch) -> _FakeCredentials:
    fake = _FakeCredentials()
    monkeypatch.setattr(main, "CREDENTIALS", fake)
    return fake


async def test_setup_creates_mentee_profile_at_welcome(creds):
    async with client() as c:
        open_session(c, "new")
        r = await c.post("/api/account-setup", json=VALID)
        me = await c.get("/api/me")
    assert r.status_code == 200
    assert r.json() == {"step": "welcome", "display_name": "Max Muster", "is_onboarding_complete": False}
    assert creds.calls == [
        ("password", "new", "correct-horse-1"),
        ("names", "new", "Max", "Muster"),
    ]
    assert main.PROFILE_STORE.raw("new")["role"] == "mentee"
    assert me.json()["surface"] == "onboarding"


async def test_existing_profile_on_account_setup_moves_to_welcome(creds):
    seed_profile("u1", step=S.ACCOUNT_SETUP)
    async with client() as c:
        open_session(c, "u1")
        r = await c.post("/api/account-setup", json=VALID)
    assert r.status_code == 200 and r.json()["step"] == "welcome"
    assert main.PROFILE_STORE.raw("u1")["display_name"] == "Max Muster"


async def test_mismatched_passwords(creds):
    async with client() as c:
        open_session(c, "new")
        r = await c.post("/api/account-setup", json={**VALID, "confirm_password": "something-else"})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid_input", "fields": {"confirm_password": "Passwords do not match."}}
    assert creds.calls == []
    assert main.PROFILE_STORE.raw("new") is None


async def test_short_password_and_blank_name(creds):
    async with client() as c:
        open_session(c, "new")
        r = await c.post(
            "/api/account-setup",
            json={"first_name": "   ", "last_name": "X", "password": "short", "confirm_password": "short"},
        )
    fields = r.json()["fields"]
    assert r.status_code == 400
    assert set(fields) == {"first_name", "password"}


async def test_provider_rejection_is_502_and_keeps_user_on_setup(monkeypatch):
    monkeypatch.setattr(main, "CREDENTIALS", _FakeCredentials(fail=True))
    async with client() as c:
        open_session(c, "new")
        r = await c.post("/api/account-setup", json=VALID)
        again = await c.get("/dashboard", follow_redirects=False)
    assert r.status_code == 502 and r.json() == {"error": "credentials_update_failed"}
    assert again.headers["location"] == "/account-setup"


async def test_profile_write_failure_is_503(creds):
    main.PROFILE_STORE.fail_writes = True
    async with client() as c:
        open_session(c, "new")
        r = await c.post("/api/account-setup", json=VALID)
    assert r.status_code == 503
    assert r.json() == {"error": "write_failed", "step": "account-setup"}


async def test_form_success_redirects_to_onboarding(creds):
    async with client() as c:
        open_session(c, "new")
        page = await c.get("/account-setup")
        r = await c.post("/account-setup", data=VALID, follow_redirects=False)
    assert page.status_code == 200 and 'name="first_name"' in page.text
    assert r.status_code == 303 and r.headers["location"] == "/onboarding"


async def test_form_errors_rerender_without_password(creds):
    async with client() as c:
        open_session(c, "new")
        r = await c.post(
            "/account-setup",
            data={**VALID, "first_name": "Max", "confirm_password": "nope-nope-nope"},
            follow_redirects=False,
        )
    assert r.status_code == 400
    assert "Passwords do not match." in r.text
    assert 'value="Max"' in r.text
    assert "correct-horse-1" not in r.text


async def test_form_provider_failure_shows_message(monkeypatch):
    monkeypatch.setattr(main, "CREDENTIALS", _FakeCredentials(fail=True))
    async with client() as c:
        open_session(c, "new")
        r = await c.post("/account-setup", data=VALID, follow_redirects=False)
    assert r.status_code == 502
    assert "We could not save your password" in r.text


async def test_completed_member_cannot_reach_account_setup(creds):
    seed_profile("u1", step=S.COMPLETED, complete=True)
    async with client() as c:
        open_session(c, "u1")
        r = await c.post("/api/account-setup", json=VALID)
    assert r.status_code == 404
    assert creds.calls == []
