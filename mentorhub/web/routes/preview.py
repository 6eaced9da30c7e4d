"""
Role preview routes: admins view the app as a mentor or mentee.

The overlay is process-local and keyed by session id. Nothing here writes to
the profile store; the admin's stored role is never touched.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from mentorhub.access.routes import route_family, routes_for
from mentorhub.identity_access.domain import Role

from .security import _csrf_guard, _json_private

preview_router = APIRouter(tags=["Preview"])
logger = logging.getLogger("mentorhub.access")

_SAFE_NEXT = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/]*$")


class PreviewPayload(BaseModel):
    role: Optional[str] = None


def _is_real_admin(request: Request) -> bool:
    user = getattr(request.state, "user", None) or {}
    return user.get("real_role") is Role.ADMIN


def _state(request: Request):
    from mentorhub.web import main as mod

    return mod.PREVIEWS.state_for(request.state.session_id)


def _preview_body(state, real_role: Role) -> dict:
    return {
        "preview_role": state.preview_role.value if state.preview_role else None,
        "is_preview_mode": state.is_preview_mode,
        "effective_role": state.effective_role(real_role).value,
    }


def _forbidden():
    return _json_private({"error": "forbidden"}, status_code=403)


@preview_router.post("/api/preview")
async def set_preview(request: Request, payload: PreviewPayload):
    """Set (or with `null`/`"admin"` clear) the preview role.

    Behavior:
        - 200 with the resulting overlay; unknown roles leave it unchanged
        - 403 for anyone whose stored role is not admin
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    if not _is_real_admin(request):
        return _forbidden()
    state = _state(request)
    if state.set_preview(request.state.user["real_role"], payload.role):
        logger.info("Preview role set to %s", state.preview_role.value if state.preview_role else "none")
    return _json_private(_preview_body(state, request.state.user["real_role"]))


@preview_router.delete("/api/preview")
async def exit_preview(request: Request):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    if not _is_real_admin(request):
        return _forbidden()
    state = _state(request)
    state.exit_preview()
    return _json_private(_preview_body(state, request.state.user["real_role"]))


def _back(next_path: str | None, effective_role: Role = Role.ADMIN) -> RedirectResponse:
    """Return to `next` when it is a safe in-app path the effective role can see."""
    target = "/dashboard"
    if isinstance(next_path, str) and _SAFE_NEXT.match(next_path) and route_family(next_path) in routes_for(effective_role):
        target = next_path
    return RedirectResponse(url=target, status_code=303, headers={"Cache-Control": "private, no-store"})


@preview_router.post("/preview")
async def set_preview_form(request: Request):
    """Switcher form: `role` plus the page to return to (`next`)."""
    csrf = _csrf_guard(request, html=True)
    if csrf:
        return csrf
    form = await request.form()
    if not _is_real_admin(request):
        return HTMLResponse("", status_code=403, headers={"Cache-Control": "private, no-store"})
    state = _state(request)
    state.set_preview(request.state.user["real_role"], str(form.get("role") or "") or None)
    return _back(str(form.get("next") or ""), state.effective_role(request.state.user["real_role"]))


@preview_router.post("/preview/exit")
async def exit_preview_form(request: Request):
    csrf = _csrf_guard(request, html=True)
    if csrf:
        return csrf
    form = await request.form()
    if _is_real_admin(request):
        _state(request).exit_preview()
    return _back(str(form.get("next") or ""))
