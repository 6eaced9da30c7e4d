"""
Server-rendered components: sidebar per effective role, preview controls,
onboarding card and account setup form.
"""
from __future__ import annotations

from mentorhub.identity_access.domain import Role
from mentorhub.onboarding.steps import OnboardingStep as S
from mentorhub.web.components import AccountSetupForm, Layout, Navigation, OnboardingPage


def _user(real: Role, effective: Role | None = None, name: str = "Ada") -> dict:
    effective = effective or real
    return {
        "sub": "u1",
        "name": name,
        "real_role": real,
        "effective_role": effective,
        "preview_mode": real is Role.ADMIN and effective is not Role.ADMIN,
    }


def test_mentor_sidebar_lists_mentor_entries_only():
    html = Navigation(_user(Role.MENTOR), "/dashboard").render()
    assert "Mentor Kit" in html and "Feedback" in html
    assert 'href="/groups"' not in html
    assert "Preview as:" not in html


def test_admin_sidebar_has_preview_switcher():
    html = Navigation(_user(Role.ADMIN), "/users").render()
    assert "Preview as:" in html
    assert 'action="/preview"' in html
    assert 'name="next" value="/users"' in html


def test_admin_previewing_sees_mentee_sidebar_and_keeps_switcher():
    html = Navigation(_user(Role.ADMIN, Role.MENTEE), "/goals").render()
    assert "My Goals" in html
    assert 'href="/users"' not in html
    assert "Preview as:" in html


def test_active_link_prefers_longest_prefix():
    html = Navigation(_user(Role.MENTEE), "/group-chat/5").render_aside()
    chat = html.split('href="/group-chat"', 1)[1].split("</a>", 1)[0]
    group = html.split('href="/group"', 1)[1].split("</a>", 1)[0]
    assert 'aria-current="page"' in chat
    assert 'aria-current="page"' not in group


def test_oob_aside_for_htmx():
    assert 'hx-swap-oob="true"' in Navigation(_user(Role.MENTEE)).render_aside(oob=True)


def test_layout_shows_preview_banner_only_in_preview_mode():
    preview = Layout("Dashboard", "<p>x</p>", user=_user(Role.ADMIN, Role.MENTOR)).render()
    assert "Previewing as:" in preview and "Mentor" in preview and "Exit Preview" in preview
    normal = Layout("Dashboard", "<p>x</p>", user=_user(Role.ADMIN)).render()
    assert "Previewing as:" not in normal


def test_layout_escapes_user_name_and_title():
    html = Layout("<b>t</b>", "", user=_user(Role.MENTEE, name="<script>x</script>")).render()
    assert "<script>x</script>" not in html
    assert "&lt;b&gt;t&lt;/b&gt;" in html


def test_layout_refresh_meta_for_loading_page():
    assert 'http-equiv="refresh" content="2"' in Layout("Loading", "", refresh_seconds=2).render()


def test_onboarding_welcome_has_no_back_button():
    html = OnboardingPage(S.WELCOME, Role.MENTOR, "Mia").render()
    assert "Step 1 of 6" in html
    assert "/onboarding/retreat" not in html
    assert "Welcome, Mia!" in html
    assert "volunteering to mentor" in html
    assert 'name="from_step" value="welcome"' in html


def test_onboarding_readiness_check_offers_complete_setup():
    html = OnboardingPage(S.READINESS_CHECK).render()
    assert "Step 6 of 6" in html
    assert "Complete Setup" in html and "/onboarding/complete" in html
    assert "/onboarding/advance" not in html
    assert "/onboarding/retreat" in html


def test_onboarding_error_message_is_rendered():
    html = OnboardingPage(S.GOAL_SETTING, error="Could not save").render()
    assert 'role="alert"' in html and "Could not save" in html


def test_onboarding_progress_uses_progress_element_without_inline_style():
    for step in (S.WELCOME, S.PROFILE_SETUP, S.GOAL_SETTING, S.TOOL_SETUP, S.GROUP_ASSIGNMENT, S.COMPLETED):
        html = OnboardingPage(step, Role.MENTEE, details={"bio": "x"}, field_errors={"bio": "Too long"}).render()
        assert "style=" not in html
    assert '<progress class="progress-bar" max="6" value="6">' in OnboardingPage(S.COMPLETED).render()


def test_onboarding_profile_setup_renders_prefilled_inputs():
    html = OnboardingPage(
        S.PROFILE_SETUP,
        details={"bio": "Likes <tea>", "skills": ("Go", "SQL"), "experience": "5+ years"},
    ).render()
    assert 'name="bio"' in html and "Likes &lt;tea&gt;" in html
    assert 'value="Go, SQL"' in html
    assert '<option value="5+ years" selected>' in html
    for name in ("linkedin_url", "github_url", "discord_username"):
        assert f'name="{name}"' in html
    advance_form = html.split('action="/onboarding/advance"', 1)[1]
    assert 'name="skills"' in advance_form


def test_onboarding_goal_copy_depends_on_role():
    mentor = OnboardingPage(S.GOAL_SETTING, Role.MENTOR).render()
    mentee = OnboardingPage(S.GOAL_SETTING, Role.MENTEE).render()
    assert "Mentoring Objectives" in mentor and "How do you want to help mentees grow?" in mentor
    assert "Learning Goals" in mentee and 'name="expectations"' in mentee


def test_onboarding_tool_setup_offers_video_tools():
    html = OnboardingPage(S.TOOL_SETUP, details={"preferred_video_tool": "Discord Voice"}).render()
    assert '<option value="Discord Voice" selected>' in html
    assert '<option value="Microsoft Teams">' in html


def test_onboarding_field_error_marks_input():
    html = OnboardingPage(S.PROFILE_SETUP, field_errors={"github_url": "Bad link"}).render()
    assert 'aria-invalid="true"' in html and 'id="github_url-error"' in html


def test_account_setup_form_never_echoes_password():
    html = AccountSetupForm(first_name="Max", errors={"password": "Too short"}).render()
    assert 'value="Max"' in html
    assert "Too short" in html
    assert 'type="password"' in html
    password_input = html.split('id="password"', 1)[1].split(">", 1)[0]
    assert "value=" not in password_input
