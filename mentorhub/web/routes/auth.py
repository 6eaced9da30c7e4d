"""
Authentication-related FastAPI routes (router-only module).

Notes:
    - Imports `main` inside functions so the shared OIDC config, state and
      session stores and the preview registry can be monkeypatched in tests.
      `/auth/callback` stays in `main.py` for the same reason.
    - Signing out drops the role-preview overlay together with the session.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from mentorhub.identity_access.oidc import OIDCClient
from mentorhub.web.components import Layout, SignedOutPage

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("mentorhub.web.auth")

# Allowed in-app redirect paths: absolute, no "//" and no "..".
INAPP_PATH_PATTERN = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/]*$")
MAX_INAPP_REDIRECT_LEN = 256

_NO_STORE = {"Cache-Control": "private, no-store"}


@auth_router.get("/auth/login")
async def auth_login(request: Request, redirect: str | None = None, retry: int | None = None):
    """
    Start the OIDC flow with PKCE and server-side state; redirect to the IdP.

    Behavior:
        - `redirect` must be an absolute in-app path; anything else is dropped.
        - `retry=1` (set when the session store could not be read) renders a
          short page with a sign-in button instead of redirecting at once.
        - HTMX requests get 204 + HX-Redirect.
    Permissions:
        Public.
    """
    from mentorhub.web import main as mod

    if retry:
        content = """
        <div class="container auth-info">
            <h1>Please sign in again</h1>
            <p>We could not confirm your session just now.</p>
            <p><a class="button button--primary" href="/auth/login">Sign in</a></p>
        </div>"""
        layout = Layout(title="Sign in", content=content, show_nav=False, current_path=request.url.path)
        return HTMLResponse(layout.render(), headers=_NO_STORE)

    code_verifier = OIDCClient.generate_code_verifier()
    code_challenge = OIDCClient.code_challenge_s256(code_verifier)
    safe_redirect = redirect if (isinstance(redirect, str) and _is_inapp_path(redirect)) else None
    rec = mod.STATE_STORE.create(code_verifier=code_verifier, redirect=safe_redirect)
    url = mod.OIDC.build_authorization_url(state=rec.state, code_challenge=code_challenge, nonce=rec.nonce)
    headers = {**_NO_STORE, "Vary": "HX-Request"}
    if request.headers.get("HX-Request"):
        headers["HX-Redirect"] = url
        return Response(status_code=204, headers=headers)
    return RedirectResponse(url=url, status_code=302, headers=headers)


@auth_router.get("/auth/logout")
async def auth_logout(request: Request):
    """
    Clear the app session and preview overlay, then end the IdP session.

    Behavior:
        - Deletes the server-side session; store failures never block logout.
        - Expires the session cookie.
        - Redirects (302) to the IdP end-session endpoint with
          `post_logout_redirect_uri` pointing at `/auth/logout/success`.
    Permissions:
        Public.
    """
    from mentorhub.web import main as mod

    sid = request.cookies.get(mod.SESSION_COOKIE_NAME)
    rec = None
    if sid:
        mod.PREVIEWS.clear(sid)
        try:
            rec = mod.SESSION_STORE.get(sid)
        except Exception as exc:
            logger.warning("Session lookup failed during logout: %s", exc.__class__.__name__)
        try:
            mod.SESSION_STORE.delete(sid)
        except Exception as exc:
            logger.warning("Session delete failed during logout: %s", exc.__class__.__name__)

    dest = f"{_default_app_base(mod.OIDC_CFG.redirect_uri)}/auth/logout/success"
    try:
        target = mod.OIDC.build_end_session_url(
            post_logout_redirect_uri=dest,
            id_token_hint=getattr(rec, "id_token", None) if rec else None,
        )
    except Exception as exc:
        logger.warning("Logout URL composition failed: %s", exc.__class__.__name__)
        target = "/auth/logout/success"

    resp = RedirectResponse(url=target, status_code=302, headers=_NO_STORE)
    resp.set_cookie(
        key=mod.SESSION_COOKIE_NAME,
        value="",
        httponly=True,
        secure=True,
        samesite=mod.SESSION_COOKIE_SAMESITE,
        path="/",
        expires=0,
        max_age=0,
    )
    return resp


@auth_router.get("/auth/logout/success", response_class=HTMLResponse)
async def auth_logout_success(request: Request):
    layout = Layout(title="Signed out", content=SignedOutPage().render(), show_nav=False, current_path=request.url.path)
    return HTMLResponse(layout.render(), headers=_NO_STORE)


def _default_app_base(redirect_uri: str) -> str:
    """`scheme://host[:port]` of the configured redirect URI, or a local default."""
    parsed = urlparse(redirect_uri or "")
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return "https://app.localhost"


def _is_inapp_path(value: str) -> bool:
    """True for absolute in-app paths such as "/", "/goals" or "/groups/7".

    Rejected: "goals", "https://evil.com", "//evil.com", "/a?b", "/..".
    """
    if not value or not isinstance(value, str):
        return False
    if len(value) > MAX_INAPP_REDIRECT_LEN:
        return False
    return bool(INAPP_PATH_PATTERN.match(value))
