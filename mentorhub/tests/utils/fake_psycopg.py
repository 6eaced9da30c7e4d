"""
Lightweight psycopg stand-in for unit tests.

Provides ``install_fake_psycopg`` which monkeypatches a target module so that
``psycopg.connect`` returns an in-memory database and ``sql`` composes plain
strings. Supports the subset of SQL used by DBSessionStore (app_sessions:
INSERT/SELECT/DELETE) and DBProfileStore (profiles: INSERT/SELECT/UPDATE).
"""
from __future__ import annotations

from dataclasses import dataclass, field
import itertools
import re
import time
import types
from typing import Any, Dict, Optional


class FakeOperationalError(Exception):
    """Raised by the fake driver when the database is marked unavailable."""


class FakeUniqueViolation(Exception):
    pass


class _Composed:
    def __init__(self, text: str) -> None:
        self.text = text

    def __str__(self) -> str:
        return self.text


class _SQL(_Composed):
    def format(self, *args: Any) -> _Composed:
        return _Composed(self.text.format(*(str(a) for a in args)))

    def join(self, parts) -> _Composed:
        return _Composed(self.text.join(str(p) for p in parts))


def _identifier(*names: str) -> _Composed:
    return _Composed(".".join(f'"{n}"' for n in names))


fake_sql = types.SimpleNamespace(SQL=_SQL, Identifier=_identifier)

_PROFILE_COLUMNS = (
    "role",
    "onboarding_step",
    "is_onboarding_complete",
    "group_id",
    "display_name",
    "bio",
    "skills",
    "experience",
    "linkedin_url",
    "github_url",
    "discord_username",
    "preferred_video_tool",
    "goals",
    "expectations",
)
_ASSIGNMENT = re.compile(r'"(\w+)" = %s')


@dataclass
class FakeDatabase:
    """Backing state shared by every connection of one test."""

    now: Any = time.time
    sessions: Dict[str, dict] = field(default_factory=dict)
    profiles: Dict[str, dict] = field(default_factory=dict)
    statements: list[str] = field(default_factory=list)
    available: bool = True
    _ids: Any = field(default_factory=lambda: itertools.count(1))

    def next_session_id(self) -> str:
        return f"fake-{next(self._ids)}"


class _FakeCursor:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self._row: Optional[tuple] = None

    def execute(self, stmt: Any, params: tuple | list = ()) -> None:
        text = str(stmt)
        self._db.statements.append(text)
        low = text.lower().strip()
        if "app_sessions" in low:
            self._execute_session(low, list(params))
        elif "profiles" in low:
            self._execute_profile(text, low, list(params))
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {text}")

    def _execute_session(self, low: str, params: list) -> None:
        if low.startswith("insert into"):
            sub, name, id_token, expires_at = params
            sid = self._db.next_session_id()
            self._db.sessions[sid] = {"sub": sub, "name": name, "id_token": id_token, "expires_at": int(expires_at)}
            self._row = (sid,)
        elif low.startswith("select"):
            sid = str(params[0])
            rec = self._db.sessions.get(sid)
            if rec and rec["expires_at"] > int(self._db.now()):
                self._row = (sid, rec["sub"], rec["name"], rec["id_token"], rec["expires_at"])
            else:
                self._row = None
        elif low.startswith("delete"):
            self._db.sessions.pop(str(params[0]), None)
            self._row = None
        else:
            raise AssertionError(f"Unexpected app_sessions SQL: {low}")

    def _profile_row(self, identity: str) -> Optional[tuple]:
        rec = self._db.profiles.get(identity)
        if rec is None:
            return None
        return (identity, *(rec.get(col) for col in _PROFILE_COLUMNS))

    def _execute_profile(self, text: str, low: str, params: list) -> None:
        if low.startswith("insert into"):
            identity, *values = params
            if identity in self._db.profiles:
                raise FakeUniqueViolation("duplicate key value violates unique constraint")
            self._db.profiles[identity] = dict(zip(_PROFILE_COLUMNS, values))
            self._row = self._profile_row(identity)
        elif low.startswith("select"):
            self._row = self._profile_row(str(params[0]))
        elif low.startswith("update"):
            columns = _ASSIGNMENT.findall(text)
            *values, identity = params
            rec = self._db.profiles.get(identity)
            if rec is None:
                self._row = None
                return
            rec.update(dict(zip(columns, values)))
            self._row = self._profile_row(identity)
        else:
            raise AssertionError(f"Unexpected profiles SQL: {low}")

    def fetchone(self):
        return self._row

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeConn:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def cursor(self):
        return _FakeCursor(self._db)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def install_fake_psycopg(monkeypatch, target_module, now_func=time.time) -> FakeDatabase:
    """
    Patch ``target_module`` so psycopg operations go against an in-memory database.

    Returns the `FakeDatabase`; set `available = False` to make `connect` fail.
    """
    db = FakeDatabase(now=now_func)

    def fake_connect(dsn: str, autocommit: bool | None = None):
        if not db.available:
            raise FakeOperationalError("connection refused")
        return _FakeConn(db)

    monkeypatch.setattr(target_module, "psycopg", types.SimpleNamespace(connect=fake_connect), raising=False)
    monkeypatch.setattr(target_module, "sql", fake_sql, raising=False)
    monkeypatch.setattr(target_module, "HAVE_PSYCOPG", True, raising=False)
    return db
