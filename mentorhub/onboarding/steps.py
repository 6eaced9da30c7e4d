"""
Onboarding state machine.

Intent:
    Model the fixed setup sequence a mentor or mentee walks through once after
    first sign-in as an explicit, totally ordered enum. Transitions are plain
    functions over that order, so there is no index arithmetic at call sites.

Order:
    account-setup < welcome < profile-setup < goal-setting < tool-setup
    < group-assignment < readiness-check < completed

    `account-setup` only exists for users who still have to choose a password
    and display name. It precedes `welcome` but is not part of back/forward
    navigation: `retreat` never reaches it.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class OnboardingStep(str, Enum):
    ACCOUNT_SETUP = "account-setup"
    WELCOME = "welcome"
    PROFILE_SETUP = "profile-setup"
    GOAL_SETTING = "goal-setting"
    TOOL_SETUP = "tool-setup"
    GROUP_ASSIGNMENT = "group-assignment"
    READINESS_CHECK = "readiness-check"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    # str's comparison operators would order alphabetically; the enum order is
    # the only meaningful one.
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, OnboardingStep):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, OnboardingStep):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, OnboardingStep):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, OnboardingStep):
            return NotImplemented
        return self.rank >= other.rank


_ORDER: tuple[OnboardingStep, ...] = (
    OnboardingStep.ACCOUNT_SETUP,
    OnboardingStep.WELCOME,
    OnboardingStep.PROFILE_SETUP,
    OnboardingStep.GOAL_SETTING,
    OnboardingStep.TOOL_SETUP,
    OnboardingStep.GROUP_ASSIGNMENT,
    OnboardingStep.READINESS_CHECK,
    OnboardingStep.COMPLETED,
)

# Steps shown in the onboarding flow ("Step N of 6").
NAVIGABLE_STEPS: tuple[OnboardingStep, ...] = _ORDER[1:-1]

FIRST_STEP = OnboardingStep.WELCOME
TERMINAL_STEP = OnboardingStep.COMPLETED

# Unknown or corrupted step values resolve here.
FALLBACK_STEP = FIRST_STEP


@dataclass(frozen=True)
class StepInfo:
    title: str
    description: str


STEP_INFO: dict[OnboardingStep, StepInfo] = {
    OnboardingStep.ACCOUNT_SETUP: StepInfo("Account Setup", "Choose your password and display name"),
    OnboardingStep.WELCOME: StepInfo("Welcome", "Get started with the mentorship program"),
    OnboardingStep.PROFILE_SETUP: StepInfo("Profile Setup", "Tell us about yourself"),
    OnboardingStep.GOAL_SETTING: StepInfo("Goal Setting", "Define your learning objectives"),
    OnboardingStep.TOOL_SETUP: StepInfo("Tool Setup", "Connect your communication tools"),
    OnboardingStep.GROUP_ASSIGNMENT: StepInfo("Group Assignment", "Meet your mentorship group"),
    OnboardingStep.READINESS_CHECK: StepInfo("Readiness Check", "Confirm you're ready to begin"),
    OnboardingStep.COMPLETED: StepInfo("All Set", "Finish setup to enter the program"),
}


@dataclass(frozen=True)
class StepUpdate:
    """Fields written back to the profile store for a transition."""

    step: OnboardingStep
    is_onboarding_complete: Optional[bool] = None

    def as_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"onboarding_step": self.step}
        if self.is_onboarding_complete is not None:
            fields["is_onboarding_complete"] = self.is_onboarding_complete
        return fields


def parse_step(raw: Any) -> OnboardingStep:
    """Map any raw value to an `OnboardingStep`, failing closed to `welcome`.

    Never raises; corrupted store data must not grant access nor crash the
    resolver.
    """
    if isinstance(raw, OnboardingStep):
        return raw
    if not isinstance(raw, str):
        return FALLBACK_STEP
    try:
        return OnboardingStep(raw.strip().lower())
    except ValueError:
        return FALLBACK_STEP


def advance(current: OnboardingStep) -> OnboardingStep:
    """Return the step after `current`; `completed` is terminal."""
    if current is OnboardingStep.COMPLETED:
        return current
    return _ORDER[current.rank + 1]


def retreat(current: OnboardingStep) -> OnboardingStep:
    """Return the step before `current`.

    No-op at `welcome` and at `account-setup`; the pre-step is never reachable
    by going back.
    """
    if current in (OnboardingStep.WELCOME, OnboardingStep.ACCOUNT_SETUP):
        return current
    return _ORDER[current.rank - 1]


def complete() -> StepUpdate:
    """Terminal transition.

    The machine does not forbid calling this from any state. Refusing
    out-of-order completion is left to the caller.
    """
    return StepUpdate(step=OnboardingStep.COMPLETED, is_onboarding_complete=True)


def step_position(step: OnboardingStep) -> Optional[int]:
    """1-based position within `NAVIGABLE_STEPS`, or None outside the flow."""
    try:
        return NAVIGABLE_STEPS.index(step) + 1
    except ValueError:
        return None


__all__ = [
    "OnboardingStep",
    "NAVIGABLE_STEPS",
    "FIRST_STEP",
    "TERMINAL_STEP",
    "FALLBACK_STEP",
    "StepInfo",
    "STEP_INFO",
    "StepUpdate",
    "parse_step",
    "advance",
    "retreat",
    "complete",
    "step_position",
]
