"""
Persisted onboarding progression.

Intent:
    Bridge the pure state machine (`steps`) and the Profile Store. The web
    layer calls this service; it never writes onboarding fields itself.

Semantics:
    - Targets are computed from the step the caller says it is on and written
      as absolute values. Retrying the same request writes the same value, so
      a duplicate submit cannot skip a step.
    - A step counts as persisted only once the store returned it. On failure
      `OnboardingWriteError` carries the prior step so the caller can stay
      there and offer a retry.
    - Writes for one identity run one at a time. Each dispatch takes a ticket;
      a queued write whose ticket is no longer the latest when its turn comes
      is dropped with `OnboardingWriteSuperseded` (last dispatched wins).
      Per-identity bookkeeping is dropped once the latest write is done.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Mapping, Tuple

from mentorhub.identity_access.domain import FALLBACK_ROLE, Role
from mentorhub.profiles.model import DETAIL_FIELDS, Profile, ProfileUpdate, initial_profile
from mentorhub.profiles.store import ProfileStore, ProfileStoreError

from . import steps, telemetry
from .steps import OnboardingStep, StepUpdate

logger = logging.getLogger("mentorhub.onboarding")

# Member details each step's form collects; saved before the step advances.
STEP_DETAILS: Dict[OnboardingStep, Tuple[str, ...]] = {
    OnboardingStep.PROFILE_SETUP: (
        "bio",
        "skills",
        "experience",
        "linkedin_url",
        "github_url",
        "discord_username",
    ),
    OnboardingStep.GOAL_SETTING: ("goals", "expectations"),
    OnboardingStep.TOOL_SETUP: ("preferred_video_tool",),
}


class OnboardingWriteError(Exception):
    """The store did not confirm the write; `prior_step` is still current."""

    def __init__(self, prior_step: OnboardingStep):
        super().__init__("write_failed")
        self.prior_step = prior_step


class OnboardingWriteSuperseded(Exception):
    """A later transition for the same identity was dispatched before this one ran."""

    def __init__(self, prior_step: OnboardingStep):
        super().__init__("superseded")
        self.prior_step = prior_step


class OnboardingProgress:
    def __init__(self, store: ProfileStore) -> None:
        self._store = store
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tickets: Dict[str, int] = {}

    @property
    def store(self) -> ProfileStore:
        return self._store

    async def advance(self, identity: str, from_step: OnboardingStep) -> OnboardingStep:
        target = StepUpdate(step=steps.advance(from_step))
        profile = await self._write(identity, "advance", from_step, lambda: self._apply(identity, target))
        return profile.onboarding_step

    async def retreat(self, identity: str, from_step: OnboardingStep) -> OnboardingStep:
        # Going back always means "not complete"; keeps the stored record consistent.
        target = StepUpdate(step=steps.retreat(from_step), is_onboarding_complete=False)
        profile = await self._write(identity, "retreat", from_step, lambda: self._apply(identity, target))
        return profile.onboarding_step

    async def complete(self, identity: str, from_step: OnboardingStep) -> Profile:
        target = steps.complete()
        return await self._write(identity, "complete", from_step, lambda: self._apply(identity, target))

    async def save_details(self, identity: str, step: OnboardingStep, details: Mapping[str, Any]) -> Profile:
        """Write self-service member details collected on `step`.

        A plain profile update limited to detail fields; role and onboarding
        progress are never part of it. Runs in the same per-identity queue as
        transitions, so a following `advance` sees the details stored.
        """
        unknown = set(details) - set(DETAIL_FIELDS)
        if unknown:
            raise ValueError(f"not a detail field: {sorted(unknown)}")
        update = ProfileUpdate.of(**details)
        return await self._write(identity, "details", step, lambda: self._store.update(identity, update))

    async def finish_account_setup(
        self,
        identity: str,
        display_name: str,
        role: Role = FALLBACK_ROLE,
    ) -> Profile:
        """Record the chosen display name and move past `account-setup`.

        Creates the profile when none exists yet (first sign-in). A new profile
        gets `role`, which defaults to the lowest privilege; elevated roles are
        granted through the admin tooling.
        """

        def run() -> Profile:
            existing = self._store.get(identity)
            if existing is None:
                fresh = initial_profile(identity, role, display_name)
                if not fresh.is_onboarding_complete:
                    fresh = replace(fresh, onboarding_step=steps.FIRST_STEP)
                return self._store.create(fresh)
            fields: dict = {"display_name": display_name}
            if existing.onboarding_step is OnboardingStep.ACCOUNT_SETUP:
                fields["onboarding_step"] = steps.advance(OnboardingStep.ACCOUNT_SETUP)
            return self._store.update(identity, ProfileUpdate.of(**fields))

        return await self._write(identity, "account_setup", OnboardingStep.ACCOUNT_SETUP, run)

    def _apply(self, identity: str, target: StepUpdate) -> Profile:
        return self._store.update(identity, ProfileUpdate.of(**target.as_fields()))

    def _dispatch(self, identity: str) -> int:
        ticket = self._tickets.get(identity, 0) + 1
        self._tickets[identity] = ticket
        return ticket

    async def _write(
        self,
        identity: str,
        kind: str,
        prior: OnboardingStep,
        op: Callable[[], Profile],
    ) -> Profile:
        ticket = self._dispatch(identity)
        lock = self._locks.setdefault(identity, asyncio.Lock())
        try:
            async with lock:
                if self._tickets.get(identity) != ticket:
                    telemetry.record_transition(kind, "superseded")
                    logger.debug("Onboarding %s from %s superseded", kind, prior.value)
                    raise OnboardingWriteSuperseded(prior)
                try:
                    profile = await asyncio.to_thread(op)
                except ProfileStoreError as exc:
                    telemetry.record_transition(kind, "error")
                    logger.warning(
                        "Onboarding %s from %s failed: %s", kind, prior.value, exc.__class__.__name__
                    )
                    raise OnboardingWriteError(prior) from exc
        finally:
            self._release(identity, ticket, lock)
        telemetry.record_transition(kind, "ok")
        logger.debug("Onboarding %s: %s -> %s", kind, prior.value, profile.onboarding_step.value)
        return profile

    def _release(self, identity: str, ticket: int, lock: asyncio.Lock) -> None:
        # The latest ticket finishing means nobody is queued on this identity.
        if self._tickets.get(identity) == ticket and not lock.locked():
            self._tickets.pop(identity, None)
            self._locks.pop(identity, None)


__all__ = [
    "OnboardingProgress",
    "STEP_DETAILS",
    "OnboardingWriteError",
    "OnboardingWriteSuperseded",
]
