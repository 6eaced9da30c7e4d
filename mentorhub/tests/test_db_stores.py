"""
Postgres-backed stores against the fake psycopg driver.

Requirements:
- Sessions round-trip through `app_sessions`; expired rows are invisible.
- Profiles: create/get/update with parsed (fail-closed) values.
- Any driver error surfaces as `ProfileStoreError`.
"""
from __future__ import annotations

import pytest

from mentorhub.identity_access import stores_db
from mentorhub.identity_access.domain import Role
from mentorhub.identity_access.stores_db import DBSessionStore
from mentorhub.onboarding.steps import OnboardingStep as S
from mentorhub.profiles import repo_db
from mentorhub.profiles.model import ProfileUpdate, initial_profile
from mentorhub.profiles.repo_db import DBProfileStore
from mentorhub.profiles.store import ProfileNotFound, ProfileStoreError
from mentorhub.tests.utils.app import client
from mentorhub.tests.utils.fake_psycopg import install_fake_psycopg
from mentorhub.web import main

DSN = "postgresql://fake/mentorhub"


class _Clock:
    def __init__(self, start: int = 1_700_000_000) -> None:
        self.t = start

    def __call__(self) -> int:
        return self.t


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> _Clock:
    c = _Clock()
    monkeypatch.setattr(stores_db, "_now", c)
    return c


def test_session_round_trip_and_expiry(monkeypatch, clock):
    db = install_fake_psycopg(monkeypatch, stores_db, now_func=clock)
    store = DBSessionStore(dsn=DSN)
    rec = store.create(sub="kc-1", name="Ada", ttl_seconds=120, id_token="idt")
    got = store.get(rec.session_id)
    assert got.sub == "kc-1" and got.name == "Ada" and got.id_token == "idt"
    assert got.expires_at == clock.t + 120
    assert '"public"."app_sessions"' in db.statements[0]

    clock.t += 121
    assert store.get(rec.session_id) is None


def test_session_delete(monkeypatch, clock):
    install_fake_psycopg(monkeypatch, stores_db, now_func=clock)
    store = DBSessionStore(dsn=DSN)
    rec = store.create(sub="kc-1")
    store.delete(rec.session_id)
    assert store.get(rec.session_id) is None


def test_session_store_rejects_bad_table(monkeypatch):
    install_fake_psycopg(monkeypatch, stores_db)
    with pytest.raises(ValueError):
        DBSessionStore(dsn=DSN, table="app_sessions; drop table x")


def test_session_store_requires_dsn(monkeypatch):
    install_fake_psycopg(monkeypatch, stores_db)
    monkeypatch.delenv("SESSIONS_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        DBSessionStore()


def test_profile_create_get_update(monkeypatch):
    install_fake_psycopg(monkeypatch, repo_db)
    store = DBProfileStore(dsn=DSN)
    created = store.create(initial_profile("kc-1", Role.MENTOR, "Mia"))
    assert created.onboarding_step is S.ACCOUNT_SETUP

    updated = store.update("kc-1", ProfileUpdate.of(onboarding_step=S.WELCOME, group_id="g-7"))
    assert updated.onboarding_step is S.WELCOME
    assert updated.group_id == "g-7"
    assert updated.role is Role.MENTOR

    fetched = store.get("kc-1")
    assert fetched == updated
    assert store.get("missing") is None


def test_profile_details_are_stored_and_parsed(monkeypatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    store = DBProfileStore(dsn=DSN)
    store.create(initial_profile("kc-1", Role.MENTOR))
    updated = store.update(
        "kc-1", ProfileUpdate.of(skills=("Go", "SQL"), experience="10+ years", goals="Share what I know")
    )
    assert db.profiles["kc-1"]["skills"] == ["Go", "SQL"]
    assert updated.skills == ("Go", "SQL")
    assert updated.experience == "10+ years"
    assert store.get("kc-1").goals == "Share what I know"
    assert "expectations" in db.statements[-1]


def test_profile_update_missing_identity(monkeypatch):
    install_fake_psycopg(monkeypatch, repo_db)
    store = DBProfileStore(dsn=DSN)
    with pytest.raises(ProfileNotFound):
        store.update("ghost", ProfileUpdate.of(display_name="x"))


def test_profile_create_duplicate_is_store_error(monkeypatch):
    install_fake_psycopg(monkeypatch, repo_db)
    store = DBProfileStore(dsn=DSN)
    store.create(initial_profile("kc-1", Role.MENTEE))
    with pytest.raises(ProfileStoreError):
        store.create(initial_profile("kc-1", Role.MENTEE))


def test_corrupted_row_fails_closed(monkeypatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    db.profiles["kc-1"] = {
        "role": "root",
        "onboarding_step": "step-42",
        "is_onboarding_complete": True,
        "group_id": None,
        "display_name": None,
    }
    profile = DBProfileStore(dsn=DSN).get("kc-1")
    assert profile.role is Role.MENTEE
    assert profile.onboarding_step is S.WELCOME
    assert profile.is_onboarding_complete is False


def test_unavailable_database_raises_store_error(monkeypatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    db.available = False
    store = DBProfileStore(dsn=DSN)
    with pytest.raises(ProfileStoreError):
        store.get("kc-1")
    with pytest.raises(ProfileStoreError):
        store.update("kc-1", ProfileUpdate.of(display_name="x"))
    with pytest.raises(ProfileStoreError):
        store.create(initial_profile("kc-1", Role.MENTEE))


@pytest.mark.anyio("asyncio")
async def test_unreachable_session_db_offers_sign_in_retry(monkeypatch):
    db = install_fake_psycopg(monkeypatch, stores_db)
    monkeypatch.setattr(main, "SESSION_STORE", DBSessionStore(dsn=DSN))
    db.available = False
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, "fake-1")
        r = await c.get("/dashboard", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/auth/login?retry=1"


@pytest.mark.anyio("asyncio")
async def test_unreachable_profile_db_renders_loading(monkeypatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    monkeypatch.setattr(main, "PROFILE_STORE", DBProfileStore(dsn=DSN))
    db.available = False
    sess = main.SESSION_STORE.create(sub="kc-1")
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, sess.session_id)
        r = await c.get("/api/me")
    assert r.status_code == 503 and r.json() == {"error": "profile_unavailable"}
