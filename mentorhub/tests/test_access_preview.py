"""
Role preview overlay.

- Only a real admin can enter preview; for anyone else every call is a no-op.
- Preview never changes the stored role; it only changes the effective role.
- The registry isolates sessions from each other and forgets on clear.
"""
from __future__ import annotations

from mentorhub.access.preview import PreviewRegistry, RolePreviewState
from mentorhub.identity_access.domain import Role


def test_admin_can_preview_mentor_and_exit():
    state = RolePreviewState()
    assert state.set_preview(Role.ADMIN, "mentor") is True
    assert state.is_preview_mode
    assert state.effective_role(Role.ADMIN) is Role.MENTOR
    assert state.exit_preview() is True
    assert state.effective_role(Role.ADMIN) is Role.ADMIN


def test_non_admin_cannot_preview():
    state = RolePreviewState()
    for real in (Role.MENTOR, Role.MENTEE, None):
        assert state.set_preview(real, "mentor") is False
        assert not state.is_preview_mode


def test_preview_never_elevates_a_non_admin():
    state = RolePreviewState()
    state.set_preview(Role.ADMIN, "mentor")
    # The same overlay applied to a mentee's real role must not leak.
    assert state.effective_role(Role.MENTEE) is Role.MENTEE


def test_unknown_role_is_ignored_and_admin_or_none_clears():
    state = RolePreviewState()
    state.set_preview(Role.ADMIN, "mentee")
    assert state.set_preview(Role.ADMIN, "superuser") is False
    assert state.preview_role is Role.MENTEE
    assert state.set_preview(Role.ADMIN, "admin") is True
    assert not state.is_preview_mode
    state.set_preview(Role.ADMIN, "mentor")
    assert state.set_preview(Role.ADMIN, None) is True
    assert not state.is_preview_mode


def test_setting_same_role_reports_no_change():
    state = RolePreviewState()
    state.set_preview(Role.ADMIN, "mentor")
    assert state.set_preview(Role.ADMIN, Role.MENTOR) is False


def test_effective_role_without_profile_is_fallback():
    assert RolePreviewState().effective_role(None) is Role.MENTEE


def test_registry_isolates_sessions_and_clears():
    reg = PreviewRegistry()
    reg.state_for("s1").set_preview(Role.ADMIN, "mentee")
    assert reg.peek("s2").preview_role is None
    assert reg.peek("s1").preview_role is Role.MENTEE
    reg.clear("s1")
    assert reg.peek("s1").preview_role is None
    assert len(reg) == 0


def test_peek_does_not_register_sessions():
    reg = PreviewRegistry()
    reg.peek("s1")
    reg.peek(None)
    assert len(reg) == 0
    reg.state_for(None).set_preview(Role.ADMIN, "mentor")
    assert len(reg) == 0
