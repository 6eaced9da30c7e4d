"""
Database-backed SessionStore for production use (Postgres).

Why: In-memory sessions are not durable and do not scale across instances.
This store keeps sessions in Postgres while the cookie stays opaque.

Security:
- Use a service connection string; end users never reach `app_sessions`.
- The row holds the subject id, a display name and the ID token for logout.
  Roles are not stored here; they are read from the profile store.

Note: psycopg3 is imported lazily by callers via `SESSIONS_BACKEND=db`. Tests
use the in-memory store or a fake driver.
"""
from __future__ import annotations

from typing import Optional
import os
import re
import time

try:
    import psycopg
    from psycopg import sql
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    HAVE_PSYCOPG = False

from .stores import SessionRecord

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def _now() -> int:
    return int(time.time())


class DBSessionStore:
    """Postgres-backed session store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Falls back to `DATABASE_URL`.
    table:
        Optionally schema-qualified table name. Defaults to `public.app_sessions`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSessionStore")
        self._dsn = dsn or os.getenv("SESSIONS_DATABASE_URL") or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBSessionStore")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        if "." in table:
            self._schema, self._name = table.split(".", 1)
        else:
            self._schema, self._name = "public", table

    def _table(self):
        return sql.Identifier(self._schema, self._name)

    def create(self, *, sub: str, name: str = "", ttl_seconds: int = 3600, id_token: Optional[str] = None) -> SessionRecord:
        expires_at = _now() + ttl_seconds
        stmt = sql.SQL(
            "insert into {} (session_id, sub, name, id_token, expires_at) "
            "values (gen_random_uuid()::text, %s, %s, %s, to_timestamp(%s)) returning session_id"
        ).format(self._table())
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (sub, name, id_token, expires_at))
                row = cur.fetchone()
        sid = str(row[0]) if row else ""
        return SessionRecord(
            session_id=sid, sub=sub, name=name, expires_at=expires_at, id_token=id_token, ttl_seconds=ttl_seconds
        )

    def get(self, session_id: str) -> Optional[SessionRecord]:
        stmt = sql.SQL(
            "select session_id, sub, name, id_token, extract(epoch from expires_at)::bigint "
            "from {} where session_id = %s and expires_at > now()"
        ).format(self._table())
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (session_id,))
                row = cur.fetchone()
        if not row:
            return None
        return SessionRecord(
            session_id=str(row[0]),
            sub=str(row[1]),
            name=row[2] or "",
            id_token=row[3],
            expires_at=int(row[4]) if row[4] is not None else None,
        )

    def delete(self, session_id: str) -> None:
        stmt = sql.SQL("delete from {} where session_id = %s").format(self._table())
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (session_id,))
