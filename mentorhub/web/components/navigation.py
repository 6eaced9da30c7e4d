"""
Sidebar navigation for the main app.

Entries come from `access.routes.NAV_ITEMS` for the *effective* role, so an
admin previewing as mentee sees exactly the mentee sidebar. The preview
switcher is shown only when the stored role is admin.
"""

from typing import Any, Dict, Optional

from mentorhub.access.routes import NavItem, nav_items_for
from mentorhub.identity_access.domain import Role, parse_role
from .base import Component
from .preview import PreviewSwitcher, role_label


class Navigation(Component):
    def __init__(self, user: Optional[Dict[str, Any]] = None, current_path: str = "/"):
        """
        Args:
            user: request user context with `name`, `real_role`, `effective_role`
            current_path: path used to mark the active link
        """
        self.user = user or {}
        self.current_path = current_path or "/"

    @property
    def effective_role(self) -> Role:
        return parse_role(self.user.get("effective_role"))

    @property
    def real_role(self) -> Optional[Role]:
        raw = self.user.get("real_role")
        return parse_role(raw) if raw is not None else None

    def render(self) -> str:
        return f"""
    <button class="sidebar-toggle" data-action="sidebar-toggle" aria-label="Toggle navigation">
        <span class="sidebar-toggle-icon">&#9776;</span>
    </button>
    {self.render_aside()}
    <div class="sidebar-overlay" data-action="sidebar-close"></div>"""

    def render_aside(self, oob: bool = False) -> str:
        """Only the `<aside>`; with `oob=True` it is swapped out-of-band by HTMX."""
        items = nav_items_for(self.effective_role)
        active = self._active_href(items)
        links = "".join(self._create_nav_link(item, active == item.href) for item in items)
        switcher = ""
        if self.real_role is Role.ADMIN:
            switcher = PreviewSwitcher(self.effective_role, self.current_path).render()
        oob_attr = ' hx-swap-oob="true"' if oob else ""
        return f"""
    <aside class="sidebar" id="sidebar" aria-label="Sidebar"{oob_attr}>
        <nav class="sidebar-nav" role="navigation" aria-label="Main navigation">
            <div class="sidebar-header"><span class="sidebar-title">MentorHub</span></div>
            <div class="sidebar-items">
                {links}
                {self._render_logout()}
            </div>
            <div class="sidebar-footer">
                {switcher}
                <div class="user-info-compact">
                    <div class="user-name">{self.escape(self.user.get("name", ""))}</div>
                    <div class="user-role">{self.escape(role_label(self.effective_role))}</div>
                </div>
            </div>
        </nav>
    </aside>"""

    def _active_href(self, items: tuple[NavItem, ...]) -> Optional[str]:
        # Longest prefix wins so /group-chat does not light up /group.
        best: Optional[str] = None
        for item in items:
            href = item.href
            if self.current_path == href or self.current_path.startswith(href + "/"):
                if best is None or len(href) > len(best):
                    best = href
        return best

    def _create_nav_link(self, item: NavItem, is_active: bool) -> str:
        aria = ' aria-current="page"' if is_active else ""
        cls = self.classes("sidebar-link", active=is_active)
        return f"""
        <a href="{item.href}"
           hx-get="{item.href}"
           hx-target="#main-content"
           hx-push-url="true"
           class="{cls}"
           data-tooltip="{self.escape(item.label)}"{aria}>
            <span class="nav-text">{self.escape(item.label)}</span>
        </a>"""

    @staticmethod
    def _render_logout() -> str:
        # Full page navigation: logout ends at the IdP, which is cross-origin.
        return """
        <a href="/auth/logout" class="sidebar-link sidebar-logout">
            <span class="nav-text">Sign out</span>
        </a>"""
