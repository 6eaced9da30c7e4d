"""
Role Preview Overlay.

An admin can look at the app as a mentor or mentee without touching their
stored role. The overlay lives in process memory, keyed by session id, and is
dropped on sign-out. Nothing here is ever written to the profile store.
"""
from __future__ import annotations

from threading import Lock
from typing import Any, Dict, Optional

from mentorhub.identity_access.domain import FALLBACK_ROLE, PREVIEW_ROLES, Role, parse_optional_role


class RolePreviewState:
    def __init__(self) -> None:
        self.preview_role: Optional[Role] = None

    @property
    def is_preview_mode(self) -> bool:
        return self.preview_role is not None

    def set_preview(self, real_role: Optional[Role], role: Any) -> bool:
        """Set or clear the preview role. Returns True when state changed.

        Ignored unless `real_role` is admin. `None` or `admin` clears the
        overlay; unknown values are ignored rather than mapped to a fallback.
        """
        if real_role is not Role.ADMIN:
            return False
        if role is None:
            return self.exit_preview()
        parsed = parse_optional_role(role)
        if parsed is None:
            return False
        if parsed is Role.ADMIN:
            return self.exit_preview()
        if parsed not in PREVIEW_ROLES or parsed is self.preview_role:
            return False
        self.preview_role = parsed
        return True

    def exit_preview(self) -> bool:
        changed = self.preview_role is not None
        self.preview_role = None
        return changed

    def effective_role(self, real_role: Optional[Role]) -> Role:
        if real_role is None:
            return FALLBACK_ROLE
        if real_role is Role.ADMIN and self.preview_role is not None:
            return self.preview_role
        return real_role


class PreviewRegistry:
    """Process-local map from session id to its preview state."""

    def __init__(self) -> None:
        self._states: Dict[str, RolePreviewState] = {}
        self._lock = Lock()

    def state_for(self, session_id: Optional[str]) -> RolePreviewState:
        """Return the state for `session_id`; a fresh detached state when there is none."""
        if not session_id:
            return RolePreviewState()
        with self._lock:
            state = self._states.get(session_id)
            if state is None:
                state = RolePreviewState()
                self._states[session_id] = state
            return state

    def peek(self, session_id: Optional[str]) -> RolePreviewState:
        """Like `state_for` but never registers a new entry."""
        if not session_id:
            return RolePreviewState()
        with self._lock:
            return self._states.get(session_id) or RolePreviewState()

    def clear(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        with self._lock:
            self._states.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


__all__ = ["RolePreviewState", "PreviewRegistry"]
