"MentorHub web application"
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import logging
import os
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from mentorhub.access.preview import PreviewRegistry
from mentorhub.access.resolver import (
    LOGIN_PATH,
    AccessDecision,
    GateKind,
    GateOutcome,
    ProfileState,
    SessionState,
    Surface,
    gate,
    resolve_access,
)
from mentorhub.access.routes import FAMILY_TITLES, ROUTE_FAMILIES
from mentorhub.identity_access.credentials import AdminClient
from mentorhub.identity_access.oidc import OIDCClient
from mentorhub.identity_access.stores import SessionStore, StateStore
from mentorhub.identity_access.tokens import IDTokenVerificationError, verify_id_token
from mentorhub.onboarding.progress import OnboardingProgress
from mentorhub.profiles.store import InMemoryProfileStore, ProfileStoreError
from mentorhub.web import config as _cfg
from mentorhub.web.components import DashboardPage, Layout, LoadingPage, NotFoundPage, SectionPage
from mentorhub.web.components.preview import role_label


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _should_load_dotenv() -> bool:
    """Load a local .env outside pytest unless MENTORHUB_ENABLE_DOTENV says otherwise."""
    if _under_pytest():
        return False
    flag = (os.getenv("MENTORHUB_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return _cfg.current_environment()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("mentorhub.identity_access")
access_logger = logging.getLogger("mentorhub.access")
SETTINGS = AuthSettings()
APP_CONFIG = _cfg.load_app_config()
SESSION_COOKIE_NAME = "mentorhub_session"
# Secure in every environment. Lax, not Strict: the cookie must survive the redirect back from the IdP.
SESSION_COOKIE_SAMESITE = "lax"

app = FastAPI(title="MentorHub", description="Mentorship program access and onboarding", version="0.1.0")

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

from mentorhub.web.routes.account_setup import account_setup_router  # noqa: E402
from mentorhub.web.routes.auth import auth_router  # noqa: E402
from mentorhub.web.routes.onboarding import onboarding_router  # noqa: E402
from mentorhub.web.routes.preview import preview_router  # noqa: E402

app.include_router(auth_router)
app.include_router(account_setup_router)
app.include_router(onboarding_router)
app.include_router(preview_router)

# --- Identity, Profiles & Preview ----------------------------------------------

load_oidc_config = _cfg.load_oidc_config
OIDC_CFG = load_oidc_config()
OIDC = OIDCClient(OIDC_CFG)
STATE_STORE = StateStore()
CREDENTIALS = AdminClient(OIDC_CFG)


def _build_session_store():
    if (not _under_pytest()) and APP_CONFIG.sessions_backend == "db":
        from mentorhub.identity_access.stores_db import DBSessionStore

        return DBSessionStore()
    return SessionStore()


def _build_profile_store():
    if (not _under_pytest()) and APP_CONFIG.profiles_backend == "db":
        from mentorhub.profiles.repo_db import DBProfileStore

        return DBProfileStore()
    return InMemoryProfileStore()


SESSION_STORE = _build_session_store()
PROFILE_STORE = _build_profile_store()
PROGRESS = OnboardingProgress(PROFILE_STORE)
PREVIEWS = PreviewRegistry()

# --- Auth Helpers & Middleware --------------------------------------------------


def _set_session_cookie(response: Response, value: str, *, max_age: int | None = None) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=True,
        samesite=SESSION_COOKIE_SAMESITE,
        path="/",
        max_age=max_age,
    )


def _is_public_path(path: str) -> bool:
    return path.startswith(("/auth/", "/static/")) or path in ("/health", "/favicon.ico")


def _is_api_path(path: str) -> bool:
    return path.startswith("/api/")


_PRIVATE = {"Cache-Control": "private, no-store"}


def _read_session(sid: Optional[str]):
    """Return (record, errored). A store failure is a session error, not a crash."""
    if not sid:
        return None, False
    try:
        return SESSION_STORE.get(sid), False
    except Exception as exc:
        logger.warning("Session store get failed: %s", exc.__class__.__name__)
        return None, True


def _read_profile(identity: str) -> ProfileState:
    try:
        return ProfileState(loaded=True, profile=PROFILE_STORE.get(identity))
    except ProfileStoreError as exc:
        access_logger.warning("Profile read failed: %s", exc.__class__.__name__)
        return ProfileState(loaded=False)


def _user_context(rec, decision: AccessDecision, profile) -> dict:
    name = (profile.display_name if profile else "") or getattr(rec, "name", "") or ""
    return {
        "sub": rec.sub,
        "name": name,
        "real_role": decision.real_role,
        "effective_role": decision.effective_role,
        "preview_mode": decision.preview_mode,
    }


def _gate_response(request: Request, decision: AccessDecision, outcome: GateOutcome) -> Response:
    path = request.url.path
    is_htmx = bool(request.headers.get("HX-Request"))
    retry_after = str(APP_CONFIG.loading_retry_after_seconds)

    if outcome.kind is GateKind.LOADING:
        if _is_api_path(path):
            return JSONResponse(
                {"error": "profile_unavailable"}, status_code=503, headers={**_PRIVATE, "Retry-After": retry_after}
            )
        layout = Layout(
            title="Loading",
            content=LoadingPage(APP_CONFIG.loading_retry_after_seconds).render(),
            show_nav=False,
            current_path=path,
            refresh_seconds=APP_CONFIG.loading_retry_after_seconds,
        )
        return HTMLResponse(layout.render(), status_code=503, headers={**_PRIVATE, "Retry-After": retry_after})

    if outcome.kind is GateKind.NOT_FOUND:
        if _is_api_path(path):
            return JSONResponse({"error": "not_found"}, status_code=404, headers=_PRIVATE)
        return _not_found_response(request)

    if decision.surface is Surface.UNAUTHENTICATED:
        if _is_api_path(path):
            headers = {**_PRIVATE, "Vary": "Origin"}
            if decision.retry:
                headers["Retry-After"] = retry_after
            return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)
        location = f"{LOGIN_PATH}?retry=1" if decision.retry else LOGIN_PATH
        if is_htmx:
            return Response(status_code=401, headers={**_PRIVATE, "HX-Redirect": location, "Vary": "HX-Request"})
        return RedirectResponse(url=location, status_code=302, headers=_PRIVATE)

    location = outcome.location or "/"
    if _is_api_path(path):
        return JSONResponse(
            {"error": "forbidden", "surface": decision.surface.value, "location": location},
            status_code=403,
            headers=_PRIVATE,
        )
    if is_htmx:
        return Response(status_code=204, headers={**_PRIVATE, "HX-Redirect": location, "Vary": "HX-Request"})
    status = 302 if request.method in ("GET", "HEAD") else 303
    return RedirectResponse(url=location, status_code=status, headers=_PRIVATE)


@app.middleware("http")
async def access_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec, session_error = _read_session(sid)
    identity = rec.sub if rec else None
    profile_state = _read_profile(identity) if identity else ProfileState()
    preview = PREVIEWS.peek(sid) if identity else None

    decision = resolve_access(SessionState(identity=identity, error=session_error), profile_state, preview)
    outcome = gate(decision, path)
    if outcome.kind is not GateKind.ALLOW:
        access_logger.debug("Gate %s for surface %s", outcome.kind.value, decision.surface.value)
        return _gate_response(request, decision, outcome)

    request.state.session = rec
    request.state.session_id = sid
    request.state.access = decision
    request.state.profile = profile_state.profile
    request.state.user = _user_context(rec, decision, profile_state.profile)
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if SETTINGS.environment == "prod":
        csp = "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:; connect-src 'self';"
    else:
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; connect-src 'self';"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if SETTINGS.environment == "prod":
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Rendering helpers ----------------------------------------------------------


def _layout_response(
    request: Request,
    layout: Layout,
    *,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> HTMLResponse:
    """Render `layout` as a full page, or as fragment + OOB sidebar for HTMX.

    Pages carrying a user context are never cacheable.
    """
    body = layout.render_fragment() if request.headers.get("HX-Request") else layout.render()
    response = HTMLResponse(content=body, status_code=status_code)
    if getattr(request.state, "user", None) and not (headers and "Cache-Control" in headers):
        response.headers["Cache-Control"] = "private, no-store"
    if headers:
        for key, value in headers.items():
            response.headers[key] = value
    return response


def _not_found_response(request: Request) -> HTMLResponse:
    user = getattr(request.state, "user", None)
    layout = Layout(title="Not found", content=NotFoundPage().render(), user=user, current_path=request.url.path)
    return _layout_response(request, layout, status_code=404, headers=dict(_PRIVATE))


# --- Routes ---------------------------------------------------------------------


@app.get("/health")
async def health_check():
    return JSONResponse({"status": "healthy"}, headers=_PRIVATE)


@app.get("/auth/callback")
async def auth_callback(request: Request, code: str | None = None, state: str | None = None):
    error_headers = dict(_PRIVATE)
    if not code or not state:
        return JSONResponse({"error": "invalid_code_or_state"}, status_code=400, headers=error_headers)
    rec = STATE_STORE.pop_valid(state)
    if not rec:
        return JSONResponse({"error": "invalid_code_or_state"}, status_code=400, headers=error_headers)
    try:
        tokens = OIDC.exchange_code_for_tokens(code=code, code_verifier=rec.code_verifier)
    except Exception as exc:
        logger.warning("Token exchange failed: %s", exc.__class__.__name__)
        return JSONResponse({"error": "token_exchange_failed"}, status_code=400, headers=error_headers)
    id_token = tokens.get("id_token")
    if not id_token or not isinstance(id_token, str):
        return JSONResponse({"error": "invalid_id_token"}, status_code=400, headers=error_headers)
    try:
        claims = verify_id_token(id_token=id_token, cfg=OIDC_CFG)
    except IDTokenVerificationError as exc:
        logger.warning("ID token verification failed: %s", exc.code)
        return JSONResponse({"error": "invalid_id_token"}, status_code=400, headers=error_headers)
    if claims.get("nonce") != rec.nonce:
        return JSONResponse({"error": "invalid_nonce"}, status_code=400, headers=error_headers)
    sub = claims.get("sub")
    if not sub:
        return JSONResponse({"error": "invalid_id_token"}, status_code=400, headers=error_headers)

    display_name = claims.get("name") or claims.get("preferred_username") or ""
    try:
        sess = SESSION_STORE.create(
            sub=str(sub), name=str(display_name), id_token=id_token, ttl_seconds=APP_CONFIG.session_ttl_seconds
        )
    except Exception as exc:
        logger.warning("Session create failed: %s", exc.__class__.__name__)
        return JSONResponse(
            {"error": "session_unavailable"},
            status_code=503,
            headers={**error_headers, "Retry-After": str(APP_CONFIG.loading_retry_after_seconds)},
        )
    resp = RedirectResponse(url=rec.redirect or "/", status_code=302, headers=error_headers)
    max_age = sess.ttl_seconds if SETTINGS.environment == "prod" else None
    _set_session_cookie(resp, sess.session_id, max_age=max_age)
    return resp


@app.get("/api/me")
async def get_me(request: Request):
    """Current identity plus the access decision the middleware computed."""
    rec = request.state.session
    decision: AccessDecision = request.state.access
    profile = request.state.profile
    exp_iso = (
        datetime.fromtimestamp(rec.expires_at, tz=timezone.utc).isoformat(timespec="seconds")
        if rec.expires_at
        else None
    )
    preview = PREVIEWS.peek(request.state.session_id)
    return JSONResponse(
        {
            "sub": rec.sub,
            "name": request.state.user.get("name", ""),
            "surface": decision.surface.value,
            "role": profile.role.value if profile else None,
            "effective_role": decision.effective_role.value if decision.effective_role else None,
            "preview_role": preview.preview_role.value if decision.preview_mode and preview.preview_role else None,
            "onboarding_step": profile.onboarding_step.value if profile else None,
            "is_onboarding_complete": bool(profile and profile.is_onboarding_complete),
            "routes": sorted(decision.routes),
            "expires_at": exp_iso,
        },
        headers=_PRIVATE,
    )


@app.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request):
    user = request.state.user
    profile = request.state.profile
    content = DashboardPage(
        name=user.get("name", ""),
        role_label=role_label(user.get("effective_role")),
        group_id=profile.group_id if profile else None,
    ).render()
    layout = Layout(title="Dashboard", content=content, user=user, current_path=request.url.path)
    return _layout_response(request, layout)


# Catch-all for the remaining main-app families; registered last so routers win.
@app.get("/{family}", response_class=HTMLResponse)
@app.get("/{family}/{rest:path}", response_class=HTMLResponse)
async def family_page(request: Request, family: str, rest: str = ""):
    if family not in ROUTE_FAMILIES:
        return _not_found_response(request)
    if family == "dashboard" and not rest:
        return RedirectResponse(url="/dashboard", status_code=302, headers=_PRIVATE)
    title = FAMILY_TITLES.get(family, family)
    content = SectionPage(title, "This section is coming soon.").render()
    layout = Layout(title=title, content=content, user=request.state.user, current_path=request.url.path)
    return _layout_response(request, layout)
