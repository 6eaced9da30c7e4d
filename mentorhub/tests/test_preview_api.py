"""
Role preview over HTTP.

- Only real admins may preview; others get 403 and nothing changes.
- Preview changes gating and navigation but never the stored role.
- Sign-out drops the overlay.
"""
from __future__ import annotations

import pytest

from mentorhub.identity_access.domain import Role
from mentorhub.tests.utils.app import client, open_session, seed_member
from mentorhub.web import main

pytestmark = pytest.mark.anyio("asyncio")


async def test_admin_preview_as_mentee_changes_gating_not_role():
    seed_member("adm", Role.ADMIN)
    async with client() as c:
        open_session(c, "adm")
        r = await c.post("/api/preview", json={"role": "mentee"})
        me = await c.get("/api/me")
        groups = await c.get("/groups")
        progress = await c.get("/progress")
        dash = await c.get("/dashboard")
    assert r.status_code == 200
    assert r.json() == {"preview_role": "mentee", "is_preview_mode": True, "effective_role": "mentee"}
    assert me.json()["role"] == "admin"
    assert me.json()["effective_role"] == "mentee"
    assert me.json()["preview_role"] == "mentee"
    assert groups.status_code == 404
    assert progress.status_code == 200
    assert "Previewing as:" in dash.text and "Exit Preview" in dash.text
    assert main.PROFILE_STORE.raw("adm")["role"] == "admin"


async def test_exit_preview_restores_admin_routes():
    seed_member("adm", Role.ADMIN)
    async with client() as c:
        open_session(c, "adm")
        await c.post("/api/preview", json={"role": "mentor"})
        r = await c.delete("/api/preview")
        groups = await c.get("/groups")
    assert r.json()["is_preview_mode"] is False
    assert groups.status_code == 200


async def test_unknown_preview_role_is_ignored():
    seed_member("adm", Role.ADMIN)
    async with client() as c:
        open_session(c, "adm")
        await c.post("/api/preview", json={"role": "mentor"})
        r = await c.post("/api/preview", json={"role": "owner"})
    assert r.status_code == 200
    assert r.json()["preview_role"] == "mentor"


async def test_non_admin_cannot_preview():
    seed_member("m1", Role.MENTOR)
    async with client() as c:
        open_session(c, "m1")
        api = await c.post("/api/preview", json={"role": "mentee"})
        form = await c.post("/preview", data={"role": "mentee", "next": "/dashboard"}, follow_redirects=False)
        me = await c.get("/api/me")
    assert api.status_code == 403 and api.json() == {"error": "forbidden"}
    assert form.status_code == 403
    assert me.json()["effective_role"] == "mentor"
    assert len(main.PREVIEWS) == 0


async def test_preview_is_scoped_to_the_session():
    seed_member("adm", Role.ADMIN)
    async with client() as first, client() as second:
        open_session(first, "adm")
        open_session(second, "adm")
        await first.post("/api/preview", json={"role": "mentee"})
        other = await second.get("/api/me")
    assert other.json()["effective_role"] == "admin"


async def test_switcher_form_returns_to_visible_page():
    seed_member("adm", Role.ADMIN)
    async with client() as c:
        open_session(c, "adm")
        hidden = await c.post("/preview", data={"role": "mentor", "next": "/users"}, follow_redirects=False)
        visible = await c.post("/preview", data={"role": "mentor", "next": "/resources"}, follow_redirects=False)
        external = await c.post("/preview", data={"role": "mentee", "next": "//evil.example"}, follow_redirects=False)
        exit_ = await c.post("/preview/exit", follow_redirects=False)
        me = await c.get("/api/me")
    assert hidden.status_code == 303 and hidden.headers["location"] == "/dashboard"
    assert visible.headers["location"] == "/resources"
    assert external.headers["location"] == "/dashboard"
    assert exit_.status_code == 303
    assert me.json()["effective_role"] == "admin"


async def test_logout_clears_preview():
    seed_member("adm", Role.ADMIN)
    async with client() as c:
        sid = open_session(c, "adm")
        await c.post("/api/preview", json={"role": "mentee"})
        assert main.PREVIEWS.peek(sid).is_preview_mode
        r = await c.get("/auth/logout", follow_redirects=False)
    assert r.status_code == 302
    assert len(main.PREVIEWS) == 0
    assert main.SESSION_STORE.get(sid) is None


async def test_admin_preview_as_mentor_sees_mentor_routes_only():
    seed_member("adm", Role.ADMIN)
    async with client() as c:
        open_session(c, "adm")
        r = await c.post("/api/preview", json={"role": "mentor"})
        kit = await c.get("/mentor-kit")
        users = await c.get("/users")
    assert r.json()["effective_role"] == "mentor"
    assert kit.status_code == 200
    assert users.status_code == 404


async def test_preview_is_not_persisted():
    from mentorhub.access.preview import PreviewRegistry

    seed_member("adm", Role.ADMIN)
    async with client() as c:
        sid = open_session(c, "adm")
        await c.post("/api/preview", json={"role": "mentee"})
    stored = main.PROFILE_STORE.get("adm")
    assert main.PROFILE_STORE.raw("adm")["role"] == "admin"
    assert "preview_role" not in main.PROFILE_STORE.raw("adm")
    fresh = PreviewRegistry().peek(sid)
    assert not fresh.is_preview_mode
    assert fresh.effective_role(stored.role) is Role.ADMIN


async def test_demoted_admin_loses_preview_controls():
    seed_member("adm", Role.ADMIN)
    async with client() as c:
        open_session(c, "adm")
        await c.post("/api/preview", json={"role": "mentee"})
        raw = main.PROFILE_STORE.raw("adm")
        main.PROFILE_STORE.put_raw("adm", {**raw, "role": "mentor"})
        again = await c.post("/api/preview", json={"role": "mentee"})
        me = await c.get("/api/me")
    assert again.status_code == 403
    assert me.json()["effective_role"] == "mentor"
