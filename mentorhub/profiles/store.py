"""
Profile Store contract and the in-memory implementation for development.

Why: The resolver and the onboarding progression only need `get`, `update`
and `create`. Keeping that contract small lets the web layer swap the
Postgres store (`repo_db.DBProfileStore`) for this in-memory one in tests and
local runs.

Errors: every failure surfaces as `ProfileStoreError` so callers can map it to
"profile not loaded" (reads) or "write failed, stay on prior step" (writes)
without knowing the backend.
"""
from __future__ import annotations

from threading import Lock
from typing import Dict, Optional, Protocol

from .model import Profile, ProfileUpdate


class ProfileStoreError(Exception):
    """Backend unreachable or rejected the operation."""


class ProfileNotFound(ProfileStoreError):
    """Update targeted an identity without a profile."""


class ProfileStore(Protocol):
    def get(self, identity: str) -> Optional[Profile]: ...

    def update(self, identity: str, update: ProfileUpdate) -> Profile: ...

    def create(self, profile: Profile) -> Profile: ...


class InMemoryProfileStore:
    """Dict-backed store; raw records are kept so corrupted data can be simulated.

    `fail_reads` / `fail_writes` inject backend failures for tests and demos.
    """

    def __init__(self) -> None:
        self._data: Dict[str, dict] = {}
        self._lock = Lock()
        self.fail_reads = False
        self.fail_writes = False

    def get(self, identity: str) -> Optional[Profile]:
        if self.fail_reads:
            raise ProfileStoreError("profile_read_failed")
        with self._lock:
            raw = self._data.get(identity)
            if raw is None:
                return None
            return Profile.from_record(identity, raw)

    def update(self, identity: str, update: ProfileUpdate) -> Profile:
        if self.fail_writes:
            raise ProfileStoreError("profile_write_failed")
        with self._lock:
            raw = self._data.get(identity)
            if raw is None:
                raise ProfileNotFound(identity)
            merged = {**raw, **update.as_record()}
            self._data[identity] = merged
            return Profile.from_record(identity, merged)

    def create(self, profile: Profile) -> Profile:
        if self.fail_writes:
            raise ProfileStoreError("profile_write_failed")
        with self._lock:
            if profile.identity in self._data:
                raise ProfileStoreError("profile_exists")
            self._data[profile.identity] = profile.to_record()
            return profile

    def put_raw(self, identity: str, record: dict) -> None:
        """Store a raw record as-is (bypasses parsing; used to seed bad data)."""
        with self._lock:
            self._data[identity] = dict(record)

    def raw(self, identity: str) -> Optional[dict]:
        with self._lock:
            rec = self._data.get(identity)
            return dict(rec) if rec is not None else None


__all__ = [
    "ProfileStore",
    "ProfileStoreError",
    "ProfileNotFound",
    "InMemoryProfileStore",
]
