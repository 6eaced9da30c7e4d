"""
Postgres-backed Profile Store.

Security:
- Use a DSN whose role may read/write `public.profiles`. Row-level policies
  live in the database and are not duplicated here.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Identifiers are composed with `psycopg.sql`; the table name is validated
  up front so a misconfiguration fails at construction time.
- Rows are parsed with `Profile.from_record`, so corrupted values fail closed.
- Every driver error is re-raised as `ProfileStoreError`.
"""
from __future__ import annotations

from typing import Any, Optional
import logging
import os
import re

try:
    import psycopg
    from psycopg import sql
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    HAVE_PSYCOPG = False

from .model import Profile, ProfileUpdate
from .store import ProfileNotFound, ProfileStoreError

logger = logging.getLogger("mentorhub.profiles")

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")
_COLUMNS = (
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
# Column names are constants; only values travel as parameters.
_SELECT_LIST = ", ".join(("identity", *_COLUMNS))
_PLACEHOLDERS = ", ".join(["%s"] * (len(_COLUMNS) + 1))


def _dsn() -> str:
    for candidate in (os.getenv("PROFILES_DATABASE_URL"), os.getenv("DATABASE_URL")):
        if candidate:
            return candidate
    raise RuntimeError("Database DSN unavailable for DBProfileStore")


def _row_to_profile(row: tuple) -> Profile:
    identity = str(row[0])
    return Profile.from_record(identity, dict(zip(_COLUMNS, row[1:])))


class DBProfileStore:
    """Profile store over `public.profiles` (or a configured table)."""

    def __init__(self, dsn: str | None = None, table: str = "public.profiles") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBProfileStore")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._dsn = dsn or _dsn()
        if "." in table:
            self._schema, self._name = table.split(".", 1)
        else:
            self._schema, self._name = "public", table

    def _table(self):
        return sql.Identifier(self._schema, self._name)

    def get(self, identity: str) -> Optional[Profile]:
        stmt = sql.SQL(
            f"select {_SELECT_LIST} from {{}} where identity = %s"
        ).format(self._table())
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, (identity,))
                    row = cur.fetchone()
        except Exception as exc:
            logger.warning("Profile read failed: %s", exc.__class__.__name__)
            raise ProfileStoreError("profile_read_failed") from exc
        if not row:
            return None
        return _row_to_profile(row)

    def update(self, identity: str, update: ProfileUpdate) -> Profile:
        record = update.as_record()
        if not record:
            existing = self.get(identity)
            if existing is None:
                raise ProfileNotFound(identity)
            return existing
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(col)) for col in record
        )
        stmt = sql.SQL(
            "update {} set {}, updated_at = now() where identity = %s "
            f"returning {_SELECT_LIST}"
        ).format(self._table(), assignments)
        params: list[Any] = [*record.values(), identity]
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, params)
                    row = cur.fetchone()
        except Exception as exc:
            logger.warning("Profile update failed: %s", exc.__class__.__name__)
            raise ProfileStoreError("profile_write_failed") from exc
        if not row:
            raise ProfileNotFound(identity)
        return _row_to_profile(row)

    def create(self, profile: Profile) -> Profile:
        record = profile.to_record()
        stmt = sql.SQL(
            f"insert into {{}} ({_SELECT_LIST}) values ({_PLACEHOLDERS}) returning {_SELECT_LIST}"
        ).format(self._table())
        params = (profile.identity, *(record[col] for col in _COLUMNS))
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, params)
                    row = cur.fetchone()
        except Exception as exc:
            logger.warning("Profile create failed: %s", exc.__class__.__name__)
            raise ProfileStoreError("profile_create_failed") from exc
        if not row:
            raise ProfileStoreError("profile_create_failed")
        return _row_to_profile(row)


__all__ = ["DBProfileStore"]
