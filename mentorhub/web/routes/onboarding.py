"""
Onboarding routes: the step page, its form posts and the JSON API.

Why:
    The middleware only lets users on the onboarding surface reach these
    paths, so handlers can rely on `request.state.profile` being present.

Transition policy:
    - Every request names the step it was issued from (`from_step`). The
      stored step must equal it, or already equal its target (a retried
      request); anything else is stale and answered with 409.
    - `complete` is accepted only from `readiness-check` or `completed`.
    - The service writes absolute targets, so a retry never skips a step.
"""
from __future__ import annotations

import re
from typing import Any, Callable, List, Optional, Union

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel, Field, ValidationError, field_validator

from mentorhub.onboarding import steps
from mentorhub.onboarding.progress import STEP_DETAILS, OnboardingWriteError, OnboardingWriteSuperseded
from mentorhub.onboarding.steps import NAVIGABLE_STEPS, STEP_INFO, OnboardingStep, step_position
from mentorhub.profiles.model import EXPERIENCE_LEVELS, VIDEO_TOOLS, parse_skills
from mentorhub.web.components import Layout, OnboardingPage

from .security import _csrf_guard, _json_private

onboarding_router = APIRouter(tags=["Onboarding"])

_COMPLETABLE = (OnboardingStep.READINESS_CHECK, OnboardingStep.COMPLETED)
_TARGETS: dict[str, Callable[[OnboardingStep], OnboardingStep]] = {
    "advance": steps.advance,
    "retreat": steps.retreat,
    "complete": lambda _step: OnboardingStep.COMPLETED,
}
_WRITE_FAILED_MESSAGE = "We could not save your progress. Please try again."
_INVALID_DETAILS_MESSAGE = "Please check the highlighted fields."
_URL = re.compile(r"^https?://[^\s/]+\.[^\s]+$", re.IGNORECASE)
_DETAIL_MESSAGES = {
    "bio": "Bio is too long.",
    "skills": "Please list your skills separated by commas.",
    "experience": "Please pick an experience level from the list.",
    "linkedin_url": "Please enter a full LinkedIn link (https://...).",
    "github_url": "Please enter a full GitHub link (https://...).",
    "discord_username": "Discord username is too long.",
    "preferred_video_tool": "Please pick a video tool from the list.",
    "goals": "Goals are too long.",
    "expectations": "Expectations are too long.",
}


class TransitionPayload(BaseModel):
    from_step: str = Field(..., min_length=1, max_length=32)


class ProfileDetailsPayload(BaseModel):
    """Member details from the profile, goal and tool steps; all optional."""

    bio: Optional[str] = Field(None, max_length=2000)
    skills: Optional[Union[str, List[str]]] = None
    experience: Optional[str] = None
    linkedin_url: Optional[str] = Field(None, max_length=300)
    github_url: Optional[str] = Field(None, max_length=300)
    discord_username: Optional[str] = Field(None, max_length=64)
    preferred_video_tool: Optional[str] = None
    goals: Optional[str] = Field(None, max_length=2000)
    expectations: Optional[str] = Field(None, max_length=2000)

    @field_validator("bio", "linkedin_url", "github_url", "discord_username", "goals", "expectations", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("experience")
    @classmethod
    def _known_experience(cls, v):
        if v and v not in EXPERIENCE_LEVELS:
            raise ValueError("unknown_experience")
        return v

    @field_validator("preferred_video_tool")
    @classmethod
    def _known_video_tool(cls, v):
        if v and v not in VIDEO_TOOLS:
            raise ValueError("unknown_video_tool")
        return v

    @field_validator("linkedin_url", "github_url")
    @classmethod
    def _http_url(cls, v):
        if v and not _URL.match(v):
            raise ValueError("invalid_url")
        return v

    def as_fields(self) -> dict[str, Any]:
        """Only the fields the client sent; skills normalised to a tuple."""
        fields = self.model_dump(exclude_unset=True)
        if "skills" in fields:
            fields["skills"] = parse_skills(fields["skills"])
        return {k: ("" if v is None else v) for k, v in fields.items()}


def _details_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        name = str(loc[0]) if loc else ""
        if name in _DETAIL_MESSAGES and name not in errors:
            errors[name] = _DETAIL_MESSAGES[name]
    return errors


class AdvancePayload(TransitionPayload):
    details: Optional[dict[str, Any]] = None


def _requested_step(raw: object) -> OnboardingStep | None:
    """Strict parse for client input; unlike `parse_step` there is no fallback."""
    if not isinstance(raw, str):
        return None
    try:
        return OnboardingStep(raw.strip().lower())
    except ValueError:
        return None


def _validate_details(from_step: OnboardingStep, raw: Optional[dict]) -> tuple[dict[str, Any], dict[str, str]]:
    """Validated details collected on `from_step`; keys of other steps are ignored."""
    wanted = {k: v for k, v in (raw or {}).items() if k in STEP_DETAILS.get(from_step, ())}
    if not wanted:
        return {}, {}
    try:
        return ProfileDetailsPayload.model_validate(wanted).as_fields(), {}
    except ValidationError as exc:
        return {}, _details_errors(exc) or {name: _DETAIL_MESSAGES[name] for name in wanted}


async def _transition(
    request: Request, kind: str, raw_from_step: object, raw_details: Optional[dict] = None
) -> tuple[int, dict]:
    """Run one transition; returns (status, JSON body).

    An advance may carry the details of the step being left. They are saved
    first, through a separate profile update, and the step only moves once
    that write landed.
    """
    from mentorhub.web import main as mod

    profile = request.state.profile
    stored = profile.onboarding_step
    from_step = _requested_step(raw_from_step)
    if from_step is None:
        return 400, {"error": "invalid_step", "step": stored.value}
    if stored not in (from_step, _TARGETS[kind](from_step)):
        return 409, {"error": "stale_step", "step": stored.value}
    if kind == "complete" and from_step not in _COMPLETABLE:
        return 409, {"error": "complete_not_allowed", "step": stored.value}
    details: dict[str, Any] = {}
    if kind == "advance":
        details, errors = _validate_details(from_step, raw_details)
        if errors:
            return 400, {"error": "invalid_details", "step": stored.value, "fields": errors}

    identity = request.state.user["sub"]
    try:
        if kind == "advance":
            if details:
                await mod.PROGRESS.save_details(identity, from_step, details)
            step = await mod.PROGRESS.advance(identity, from_step)
            done = False
        elif kind == "retreat":
            step = await mod.PROGRESS.retreat(identity, from_step)
            done = False
        else:
            updated = await mod.PROGRESS.complete(identity, from_step)
            step, done = updated.onboarding_step, updated.is_onboarding_complete
    except OnboardingWriteSuperseded as exc:
        return 409, {"error": "superseded", "step": exc.prior_step.value}
    except OnboardingWriteError as exc:
        return 503, {"error": "write_failed", "step": exc.prior_step.value}
    return 200, {"step": step.value, "is_onboarding_complete": done}


def _page(
    request: Request,
    step: OnboardingStep,
    *,
    error: str | None = None,
    values: Optional[dict] = None,
    field_errors: Optional[dict] = None,
    status_code: int = 200,
):
    from mentorhub.web import main as mod

    profile = request.state.profile
    page = OnboardingPage(
        step=step,
        role=profile.role,
        display_name=profile.display_name,
        error=error,
        details={**profile.details(), **(values or {})},
        group_id=profile.group_id,
        field_errors=field_errors,
    )
    layout = Layout(
        title=STEP_INFO[step].title,
        content=page.render(),
        user=request.state.user,
        show_nav=False,
        current_path=request.url.path,
    )
    return mod._layout_response(request, layout, status_code=status_code)


@onboarding_router.get("/onboarding", response_class=HTMLResponse)
async def onboarding_page(request: Request):
    return _page(request, request.state.profile.onboarding_step)


async def _form_transition(request: Request, kind: str):
    """Form post: PRG on success, re-render the prior step when the write failed."""
    csrf = _csrf_guard(request, html=True)
    if csrf:
        return csrf
    form = await request.form()
    from_step = _requested_step(form.get("from_step"))
    submitted = {
        key: str(form.get(key) or "") for key in STEP_DETAILS.get(from_step, ()) if key in form
    }
    status, body = await _transition(request, kind, form.get("from_step"), submitted)
    headers = {"Cache-Control": "private, no-store"}
    if status == 400 and body["error"] == "invalid_details":
        return _page(
            request,
            from_step,
            error=_INVALID_DETAILS_MESSAGE,
            values=submitted,
            field_errors=body["fields"],
            status_code=400,
        )
    if status == 503:
        return _page(
            request, OnboardingStep(body["step"]), error=_WRITE_FAILED_MESSAGE, values=submitted, status_code=503
        )
    if status == 200 and body["is_onboarding_complete"]:
        return RedirectResponse(url="/dashboard", status_code=303, headers=headers)
    # Stale, superseded and invalid submissions all land on the current step.
    return RedirectResponse(url="/onboarding", status_code=303, headers=headers)


@onboarding_router.post("/onboarding/advance")
async def onboarding_advance_form(request: Request):
    return await _form_transition(request, "advance")


@onboarding_router.post("/onboarding/retreat")
async def onboarding_retreat_form(request: Request):
    return await _form_transition(request, "retreat")


@onboarding_router.post("/onboarding/complete")
async def onboarding_complete_form(request: Request):
    return await _form_transition(request, "complete")


@onboarding_router.get("/api/onboarding")
async def get_onboarding(request: Request):
    """Current step with its position in the flow."""
    profile = request.state.profile
    step = profile.onboarding_step
    info = STEP_INFO[step]
    return _json_private(
        {
            "step": step.value,
            "title": info.title,
            "description": info.description,
            "position": step_position(step),
            "total": len(NAVIGABLE_STEPS),
            "is_onboarding_complete": profile.is_onboarding_complete,
            "can_complete": step in _COMPLETABLE,
            "fields": list(STEP_DETAILS.get(step, ())),
            "details": profile.details(),
            "group_id": profile.group_id,
        }
    )


async def _api_transition(request: Request, kind: str, payload: TransitionPayload):
    from mentorhub.web import main as mod

    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    details = payload.details if isinstance(payload, AdvancePayload) else None
    status, body = await _transition(request, kind, payload.from_step, details)
    headers = {"Retry-After": str(mod.APP_CONFIG.loading_retry_after_seconds)} if status == 503 else None
    return _json_private(body, status_code=status, headers=headers)


@onboarding_router.post("/api/onboarding/advance")
async def api_onboarding_advance(request: Request, payload: AdvancePayload):
    """Advance one step, optionally saving the details of the step being left.

    Behavior:
        - 200 `{"step", "is_onboarding_complete"}` once the store confirmed
        - 400 `invalid_details` with per-field messages; nothing is written
        - 409 `stale_step` / `superseded`, 503 `write_failed` with the prior step
    """
    return await _api_transition(request, "advance", payload)


@onboarding_router.post("/api/onboarding/retreat")
async def api_onboarding_retreat(request: Request, payload: TransitionPayload):
    return await _api_transition(request, "retreat", payload)


@onboarding_router.post("/api/onboarding/complete")
async def api_onboarding_complete(request: Request, payload: TransitionPayload):
    """Finish onboarding; only from `readiness-check` or `completed` (409 otherwise)."""
    return await _api_transition(request, "complete", payload)
