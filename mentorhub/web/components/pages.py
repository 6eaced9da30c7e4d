"""
Small static pages: main-app placeholders, loading, not found, signed out.
"""

from typing import Optional

from .base import Component


class SectionPage(Component):
    """Placeholder body for a main-app route family."""

    def __init__(self, title: str, subtitle: str = ""):
        self.title = title
        self.subtitle = subtitle

    def render(self) -> str:
        sub = f'<p class="text-muted">{self.escape(self.subtitle)}</p>' if self.subtitle else ""
        return f"""
        <div class="container">
            <h1>{self.escape(self.title)}</h1>
            {sub}
        </div>"""


class DashboardPage(Component):
    def __init__(self, name: str, role_label: str, group_id: Optional[str] = None):
        self.name = name
        self.role_label = role_label
        self.group_id = group_id

    def render(self) -> str:
        greeting = f"Welcome back, {self.escape(self.name)}!" if self.name else "Welcome back!"
        group = (
            f"<p>Your group: <strong>{self.escape(self.group_id)}</strong></p>"
            if self.group_id
            else '<p class="text-muted">You have not been assigned to a group yet.</p>'
        )
        return f"""
        <div class="container dashboard">
            <h1>{greeting}</h1>
            <p>Signed in as <strong>{self.escape(self.role_label)}</strong>.</p>
            {group}
        </div>"""


class LoadingPage(Component):
    def __init__(self, retry_after: int):
        self.retry_after = retry_after

    def render(self) -> str:
        return f"""
        <div class="container loading" aria-busy="true">
            <h1>Loading your profile</h1>
            <p>We could not load your profile just now. This page retries in {int(self.retry_after)} seconds.</p>
            <p><a href="" class="button">Retry now</a></p>
        </div>"""


class NotFoundPage(Component):
    def render(self) -> str:
        return """
        <div class="container not-found">
            <h1>Page not found</h1>
            <p>This page does not exist or is not available for your role.</p>
            <p><a href="/dashboard">Back to the dashboard</a></p>
        </div>"""


class SignedOutPage(Component):
    def render(self) -> str:
        return """
        <div class="container auth-info">
            <h1>Signed out</h1>
            <p>You have been signed out of MentorHub and the sign-in service.</p>
            <p><a class="button button--primary" href="/auth/login">Sign in again</a></p>
        </div>"""
