"""
Role preview controls: the admin-only switcher and the "Previewing as" banner.

Both post plain forms to `/preview` and `/preview/exit`; the server re-checks
the stored role before changing anything.
"""

from typing import Optional

from mentorhub.identity_access.domain import Role
from .base import Component

_LABELS = {Role.ADMIN: "Admin", Role.MENTOR: "Mentor", Role.MENTEE: "Mentee"}


def role_label(role: Optional[Role]) -> str:
    return _LABELS.get(role, "Member") if role is not None else "Member"


class PreviewSwitcher(Component):
    """"Preview as" selector; render it only for real admins."""

    def __init__(self, effective_role: Role, current_path: str = "/dashboard"):
        self.effective_role = effective_role
        self.current_path = current_path

    def render(self) -> str:
        options = "".join(
            f'<option value="{role.value}"{" selected" if role is self.effective_role else ""}>'
            f"{self.escape(role_label(role))}</option>"
            for role in (Role.ADMIN, Role.MENTOR, Role.MENTEE)
        )
        return f"""
        <form class="preview-switcher" method="post" action="/preview">
            <label for="preview-role">Preview as:</label>
            <select id="preview-role" name="role">{options}</select>
            <input type="hidden" name="next" value="{self.escape(self.current_path)}">
            <button type="submit" class="button button--small">Apply</button>
        </form>"""


class PreviewBanner(Component):
    def __init__(self, preview_role: Role):
        self.preview_role = preview_role

    def render(self) -> str:
        return f"""
        <div class="preview-banner" role="status">
            <span>Previewing as: <strong>{self.escape(role_label(self.preview_role))}</strong></span>
            <form method="post" action="/preview/exit">
                <button type="submit" class="button button--small">Exit Preview</button>
            </form>
        </div>"""
