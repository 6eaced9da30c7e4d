"""
Account setup: first-time users choose their name and a password.

Behavior:
    - Input is validated with pydantic; failures map to field errors.
    - The password goes to the identity provider (admin API) and is never
      stored or logged here. Names are synced there as well.
    - Only after the provider accepted both does the profile move past
      `account-setup` (created on first sign-in, with the lowest role).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from mentorhub.identity_access.credentials import CredentialUpdateError
from mentorhub.onboarding.progress import OnboardingWriteError, OnboardingWriteSuperseded
from mentorhub.onboarding.steps import OnboardingStep
from mentorhub.web.components import AccountSetupForm, Layout

from .security import _csrf_guard, _json_private

account_setup_router = APIRouter(tags=["Account Setup"])
logger = logging.getLogger("mentorhub.web.auth")

MIN_PASSWORD_LENGTH = 8

_FIELD_MESSAGES = {
    "first_name": "Please enter your first name.",
    "last_name": "Please enter your last name.",
    "password": f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
    "confirm_password": "Passwords do not match.",
}


class AccountSetupPayload(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=256)
    confirm_password: str = Field(..., max_length=256)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("passwords_mismatch")
        return self

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def _field_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        # Model-level errors carry an empty location; the only one is the mismatch.
        name = str(loc[0]) if loc else "confirm_password"
        if name in _FIELD_MESSAGES and name not in errors:
            errors[name] = _FIELD_MESSAGES[name]
    return errors or {"confirm_password": _FIELD_MESSAGES["confirm_password"]}


async def _setup_account(request: Request, data: dict[str, Any]) -> tuple[int, dict]:
    from mentorhub.web import main as mod

    try:
        payload = AccountSetupPayload.model_validate(data)
    except ValidationError as exc:
        return 400, {"error": "invalid_input", "fields": _field_errors(exc)}

    identity = request.state.user["sub"]
    try:
        await asyncio.to_thread(mod.CREDENTIALS.set_password, user_id=identity, password=payload.password)
        await asyncio.to_thread(
            mod.CREDENTIALS.set_names,
            user_id=identity,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    except CredentialUpdateError as exc:
        logger.warning("Account setup credential update failed: %s", exc.code)
        return 502, {"error": "credentials_update_failed"}

    prior = OnboardingStep.ACCOUNT_SETUP.value
    try:
        profile = await mod.PROGRESS.finish_account_setup(identity, display_name=payload.display_name)
    except OnboardingWriteSuperseded:
        return 409, {"error": "superseded", "step": prior}
    except OnboardingWriteError:
        return 503, {"error": "write_failed", "step": prior}
    return 200, {
        "step": profile.onboarding_step.value,
        "display_name": profile.display_name,
        "is_onboarding_complete": profile.is_onboarding_complete,
    }


def _form_page(request: Request, form: AccountSetupForm, *, status_code: int = 200) -> HTMLResponse:
    from mentorhub.web import main as mod

    layout = Layout(
        title="Account Setup",
        content=form.render(),
        user=request.state.user,
        show_nav=False,
        current_path=request.url.path,
    )
    return mod._layout_response(request, layout, status_code=status_code)


@account_setup_router.get("/account-setup", response_class=HTMLResponse)
async def account_setup_page(request: Request):
    return _form_page(request, AccountSetupForm())


@account_setup_router.post("/account-setup")
async def account_setup_submit(request: Request):
    """Form post: PRG to onboarding on success, re-render with errors otherwise."""
    csrf = _csrf_guard(request, html=True)
    if csrf:
        return csrf
    form = await request.form()
    data = {key: str(form.get(key) or "") for key in ("first_name", "last_name", "password", "confirm_password")}
    status, body = await _setup_account(request, data)
    if status == 200:
        target = "/dashboard" if body["is_onboarding_complete"] else "/onboarding"
        return RedirectResponse(url=target, status_code=303, headers={"Cache-Control": "private, no-store"})
    if status == 400:
        page = AccountSetupForm(first_name=data["first_name"], last_name=data["last_name"], errors=body["fields"])
    elif status == 502:
        page = AccountSetupForm(
            first_name=data["first_name"],
            last_name=data["last_name"],
            error="We could not save your password. Please try again.",
        )
    else:
        page = AccountSetupForm(
            first_name=data["first_name"],
            last_name=data["last_name"],
            error="We could not save your account. Please try again.",
        )
    return _form_page(request, page, status_code=status)


@account_setup_router.post("/api/account-setup")
async def api_account_setup(request: Request, payload: dict[str, Any]):
    """Complete account setup.

    Behavior:
        - 200 `{"step", "display_name", "is_onboarding_complete"}`
        - 400 `invalid_input` with per-field messages
        - 502 when the identity provider rejected the update
        - 503 `write_failed` / 409 `superseded` when the profile write did not land
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    status, body = await _setup_account(request, payload)
    return _json_private(body, status_code=status)
