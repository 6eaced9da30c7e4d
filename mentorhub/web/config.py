"""
Configuration and startup security checks for MentorHub.

Why: A mentorship program holds personal data; an accidental insecure
deployment (plain-text DB link, in-memory sessions behind a load balancer) must
not start at all. Development stays permissive.

Permissions: Reads environment variables only. `ensure_secure_config_on_startup`
raises `SystemExit` on fatal misconfiguration; `load_app_config` raises
`ValueError` on malformed values.
"""
from __future__ import annotations

from dataclasses import dataclass
import os

from mentorhub.identity_access.oidc import OIDCConfig

_BACKENDS = {"memory", "db"}


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("MENTORHUB_ENV") or "dev").strip().lower()


@dataclass(frozen=True)
class AppConfig:
    environment: str
    profiles_backend: str  # "memory" | "db"
    sessions_backend: str  # "memory" | "db"
    session_ttl_seconds: int
    loading_retry_after_seconds: int


def _int_env(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value < lo or value > hi:
        raise ValueError(f"{name} out of range ({lo}..{hi}), got: {value}")
    return value


def _backend_env(name: str) -> str:
    value = (os.getenv(name) or "memory").strip().lower()
    if value not in _BACKENDS:
        raise ValueError(f"{name} must be 'memory' or 'db', got: {value!r}")
    return value


def load_app_config() -> AppConfig:
    """Parse and validate application settings from the environment.

    Behavior:
        - `PROFILES_BACKEND` / `SESSIONS_BACKEND`: "memory" (default) or "db".
        - `SESSION_TTL_SECONDS`: 60..86400, default 3600.
        - `LOADING_RETRY_AFTER_SECONDS`: 1..60, default 2. Used for the
          Retry-After header while a profile cannot be read.
    """
    return AppConfig(
        environment=current_environment(),
        profiles_backend=_backend_env("PROFILES_BACKEND"),
        sessions_backend=_backend_env("SESSIONS_BACKEND"),
        session_ttl_seconds=_int_env("SESSION_TTL_SECONDS", 3600, lo=60, hi=86400),
        loading_retry_after_seconds=_int_env("LOADING_RETRY_AFTER_SECONDS", 2, lo=1, hi=60),
    )


def load_oidc_config() -> OIDCConfig:
    base_url = os.getenv("KC_BASE_URL", "http://localhost:8080")
    return OIDCConfig(
        base_url=base_url,
        realm=os.getenv("KC_REALM", "mentorhub"),
        client_id=os.getenv("KC_CLIENT_ID", "mentorhub-web"),
        redirect_uri=os.getenv("REDIRECT_URI", "https://app.localhost/auth/callback"),
        public_base_url=os.getenv("KC_PUBLIC_BASE_URL", base_url),
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - DATABASE_URL must not disable TLS.
    - Keycloak URLs must use https.
    - Profiles and sessions must be backed by the database.
    - The Keycloak admin client secret must be set (account setup needs it).
    """
    if not _is_prod_like(current_environment()):
        return

    for key in ("DATABASE_URL", "PROFILES_DATABASE_URL", "SESSIONS_DATABASE_URL"):
        if "sslmode=disable" in os.getenv(key, ""):
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require."
            )

    for key in ("KC_BASE_URL", "KC_PUBLIC_BASE_URL"):
        value = (os.getenv(key, "") or "").strip().lower()
        if value.startswith("http://"):
            raise SystemExit(f"Refusing to start: {key} must use https in production (got http).")

    for key in ("PROFILES_BACKEND", "SESSIONS_BACKEND"):
        if (os.getenv(key) or "memory").strip().lower() != "db":
            raise SystemExit(
                f"Refusing to start: {key} must be 'db' in production; in-memory state is per process."
            )

    secret = (os.getenv("KC_ADMIN_CLIENT_SECRET", "") or "").strip()
    if not secret or secret.upper().startswith("CHANGE_ME"):
        raise SystemExit("Refusing to start: KC_ADMIN_CLIENT_SECRET is unset or a placeholder in production.")
