"""
In-memory stores for development: StateStore and SessionStore.

Why: Keep the OIDC login context (state, PKCE code_verifier, nonce) and the
session opaque to the client. Production uses `stores_db.DBSessionStore`.

Security: Cookies carry only an opaque session id. Roles are never stored in a
session; the profile store is the single source of a user's role.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import time


def _now() -> int:
    return int(time.time())


@dataclass
class StateRecord:
    state: str
    code_verifier: str
    nonce: str
    redirect: Optional[str]
    expires_at: int


class StateStore:
    def __init__(self):
        self._data: Dict[str, StateRecord] = {}

    def create(self, *, code_verifier: str, ttl_seconds: int = 900, redirect: Optional[str] = None) -> StateRecord:
        rec = StateRecord(
            state=secrets.token_urlsafe(24),
            code_verifier=code_verifier,
            nonce=secrets.token_urlsafe(16),
            redirect=redirect,
            expires_at=_now() + ttl_seconds,
        )
        self._data[rec.state] = rec
        return rec

    def pop_valid(self, state: str) -> Optional[StateRecord]:
        rec = self._data.pop(state, None)
        if not rec or rec.expires_at < _now():
            return None
        return rec


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    name: str
    expires_at: Optional[int] = None
    id_token: Optional[str] = None
    ttl_seconds: int = 3600


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(self, *, sub: str, name: str = "", ttl_seconds: int = 3600, id_token: Optional[str] = None) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(
            session_id=sid,
            sub=sub,
            name=name,
            expires_at=_now() + ttl_seconds,
            id_token=id_token,
            ttl_seconds=ttl_seconds,
        )
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)
