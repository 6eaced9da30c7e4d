"""
Access Resolver: one surface per (session, profile, preview) triple.

Intent:
    Decide which top-level view a request may see, without I/O. The web
    middleware gathers the inputs, calls `resolve_access`, then `gate` maps the
    decision and the requested path to allow/redirect/404/loading.

Order (first match wins):
    1. session still loading              -> loading
    2. no identity                        -> unauthenticated
    3. profile not loaded yet             -> loading (retry)
    4. no profile                         -> account-setup
    5. non-admin, onboarding incomplete   -> account-setup or onboarding
    6. otherwise                          -> main-app with the effective role

Admins never see onboarding, even when their record claims to be incomplete.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from mentorhub.identity_access.domain import Role
from mentorhub.onboarding.steps import OnboardingStep
from mentorhub.profiles.model import Profile

from .preview import RolePreviewState
from .routes import ROUTE_FAMILIES, route_family, routes_for


class Surface(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    ACCOUNT_SETUP = "account-setup"
    ONBOARDING = "onboarding"
    MAIN_APP = "main-app"


@dataclass(frozen=True)
class SessionState:
    is_loading: bool = False
    identity: Optional[str] = None
    error: bool = False


@dataclass(frozen=True)
class ProfileState:
    """`loaded=True, profile=None` means "looked up, none exists", not "unknown"."""

    loaded: bool = False
    profile: Optional[Profile] = None


@dataclass(frozen=True)
class AccessDecision:
    surface: Surface
    retry: bool = False
    step: Optional[OnboardingStep] = None
    real_role: Optional[Role] = None
    effective_role: Optional[Role] = None
    routes: frozenset[str] = field(default_factory=frozenset)
    preview_mode: bool = False


def resolve_access(
    session: SessionState,
    profile_state: ProfileState,
    preview: Optional[RolePreviewState] = None,
) -> AccessDecision:
    if session.is_loading:
        return AccessDecision(Surface.LOADING)
    if not session.identity:
        return AccessDecision(Surface.UNAUTHENTICATED, retry=session.error)
    if not profile_state.loaded:
        return AccessDecision(Surface.LOADING, retry=True)
    profile = profile_state.profile
    if profile is None:
        return AccessDecision(Surface.ACCOUNT_SETUP, step=OnboardingStep.ACCOUNT_SETUP)
    if profile.role is not Role.ADMIN and not profile.is_onboarding_complete:
        if profile.onboarding_step is OnboardingStep.ACCOUNT_SETUP:
            return AccessDecision(Surface.ACCOUNT_SETUP, step=profile.onboarding_step, real_role=profile.role)
        return AccessDecision(Surface.ONBOARDING, step=profile.onboarding_step, real_role=profile.role)
    overlay = preview or RolePreviewState()
    effective = overlay.effective_role(profile.role)
    return AccessDecision(
        Surface.MAIN_APP,
        real_role=profile.role,
        effective_role=effective,
        routes=routes_for(effective),
        preview_mode=profile.role is Role.ADMIN and overlay.is_preview_mode,
    )


class GateKind(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    NOT_FOUND = "not_found"
    LOADING = "loading"


@dataclass(frozen=True)
class GateOutcome:
    kind: GateKind
    location: Optional[str] = None


LOGIN_PATH = "/auth/login"
ACCOUNT_SETUP_PATH = "/account-setup"
ONBOARDING_PATH = "/onboarding"
HOME_PATH = "/dashboard"

_ALLOW = GateOutcome(GateKind.ALLOW)
_NOT_FOUND = GateOutcome(GateKind.NOT_FOUND)


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def _allowed_on_gating_surface(path: str, home: str) -> bool:
    return _under(path, home) or _under(path, "/api" + home) or path == "/api/me"


def gate(decision: AccessDecision, path: str) -> GateOutcome:
    """Map a decision plus the requested path to what the server should do."""
    surface = decision.surface
    if surface is Surface.LOADING:
        return GateOutcome(GateKind.LOADING)
    if surface is Surface.UNAUTHENTICATED:
        return GateOutcome(GateKind.REDIRECT, LOGIN_PATH)
    if surface is Surface.ACCOUNT_SETUP:
        if _allowed_on_gating_surface(path, ACCOUNT_SETUP_PATH):
            return _ALLOW
        return GateOutcome(GateKind.REDIRECT, ACCOUNT_SETUP_PATH)
    if surface is Surface.ONBOARDING:
        if _allowed_on_gating_surface(path, ONBOARDING_PATH):
            return _ALLOW
        return GateOutcome(GateKind.REDIRECT, ONBOARDING_PATH)

    if path in ("", "/") or _under(path, ONBOARDING_PATH) or _under(path, ACCOUNT_SETUP_PATH):
        return GateOutcome(GateKind.REDIRECT, HOME_PATH)
    if path == "/api/me" or _under(path, "/api/preview") or _under(path, "/preview"):
        return _ALLOW
    family = route_family(path)
    if family in ROUTE_FAMILIES and family in decision.routes:
        return _ALLOW
    return _NOT_FOUND


__all__ = [
    "Surface",
    "SessionState",
    "ProfileState",
    "AccessDecision",
    "resolve_access",
    "GateKind",
    "GateOutcome",
    "gate",
    "LOGIN_PATH",
    "ACCOUNT_SETUP_PATH",
    "ONBOARDING_PATH",
    "HOME_PATH",
]
