"""
Pytest configuration for MentorHub tests.

Why: Force AnyIO to use the asyncio backend, and give every test fresh
in-memory stores so sessions, profiles and preview overlays never leak
between cases.
"""
import os

import pytest

from mentorhub.access.preview import PreviewRegistry
from mentorhub.identity_access.oidc import OIDCClient
from mentorhub.identity_access.stores import SessionStore, StateStore
from mentorhub.onboarding import telemetry
from mentorhub.onboarding.progress import OnboardingProgress
from mentorhub.profiles.store import InMemoryProfileStore
from mentorhub.web import main


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Default dev environment; tests opt into prod or strict CSRF explicitly."""
    for var in (
        "MENTORHUB_ENV",
        "MENTORHUB_TRUST_PROXY",
        "MENTORHUB_STRICT_CSRF",
        "PROFILES_BACKEND",
        "SESSIONS_BACKEND",
    ):
        monkeypatch.delenv(var, raising=False)
    if not os.getenv("KC_ADMIN_CLIENT_SECRET"):
        monkeypatch.setenv("KC_ADMIN_CLIENT_SECRET", "TEST_ONLY_NOT_USED")
    yield


@pytest.fixture(autouse=True)
def _reset_app_state(monkeypatch: pytest.MonkeyPatch):
    """Fresh stores, progression service and preview registry per test.

    Tests may monkeypatch these again afterwards (e.g. a failing store).
    """
    profiles = InMemoryProfileStore()
    monkeypatch.setattr(main, "SESSION_STORE", SessionStore())
    monkeypatch.setattr(main, "STATE_STORE", StateStore())
    monkeypatch.setattr(main, "PROFILE_STORE", profiles)
    monkeypatch.setattr(main, "PROGRESS", OnboardingProgress(profiles))
    monkeypatch.setattr(main, "PREVIEWS", PreviewRegistry())
    cfg = main.load_oidc_config()
    monkeypatch.setattr(main, "OIDC_CFG", cfg)
    monkeypatch.setattr(main, "OIDC", OIDCClient(cfg))
    main.SETTINGS.override_environment(None)
    telemetry.reset_for_tests()
    yield
    main.SETTINGS.override_environment(None)
