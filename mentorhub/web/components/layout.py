"""
Page layout: document shell, sidebar, preview banner and main column.
"""

from typing import Any, Dict, Optional

from mentorhub.identity_access.domain import parse_role
from .base import Component
from .navigation import Navigation
from .preview import PreviewBanner


class Layout(Component):
    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[Dict[str, Any]] = None,
        show_nav: bool = True,
        current_path: str = "/",
        refresh_seconds: Optional[int] = None,
    ):
        """
        Args:
            title: page title (escaped)
            content: pre-rendered main HTML
            user: request user context; without it no sidebar is drawn
            show_nav: False on the gating surfaces (account setup, onboarding)
            refresh_seconds: emit a meta refresh, used by the loading page
        """
        self.title = title
        self.content = content
        self.user = user
        self.show_nav = show_nav and bool(user)
        self.current_path = current_path
        self.refresh_seconds = refresh_seconds

    def render(self) -> str:
        nav_html = Navigation(self.user, self.current_path).render() if self.show_nav else ""
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    {self._render_head()}
</head>
<body>
    <a href="#main-content" class="skip-link">Skip to main content</a>
    {nav_html}
    <main id="main-content" class="main-content" role="main">
        {self._render_main_inner()}
    </main>
</body>
</html>"""

    def render_fragment(self) -> str:
        """HTMX navigation: main fragment plus a single out-of-band sidebar."""
        main_inner = self._render_main_inner()
        if not self.show_nav:
            return main_inner
        return f"{main_inner}{Navigation(self.user, self.current_path).render_aside(oob=True)}"

    def _render_head(self) -> str:
        refresh = (
            f'<meta http-equiv="refresh" content="{int(self.refresh_seconds)}">'
            if self.refresh_seconds
            else ""
        )
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    {refresh}
    <title>{self.escape(self.title)} - MentorHub</title>
    <link rel="stylesheet" href="/static/css/mentorhub.css">
    """

    def _render_main_inner(self) -> str:
        banner = ""
        if self.user and self.user.get("preview_mode"):
            banner = PreviewBanner(parse_role(self.user.get("effective_role"))).render()
        return f"""
        {banner}
        {self.content}
        """
