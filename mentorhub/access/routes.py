"""
Route-gating table and per-role sidebar navigation.

Each main-app page lives under one route family (`/dashboard`, `/groups/...`).
A role sees a family iff the family lists it. Navigation entries are derived
from the same families so a visible link can never point at a hidden page.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from mentorhub.identity_access.domain import Role

_ALL = frozenset(Role)
_ADMIN = frozenset({Role.ADMIN})
_MENTOR = frozenset({Role.MENTOR})

ROUTE_FAMILIES: dict[str, frozenset[Role]] = {
    "dashboard": _ALL,
    "surveys": _ALL,
    "communication": _ALL,
    "group-chat": _ALL,
    "resources": _ALL,
    "goals": _ALL,
    "tasks": _ALL,
    "meetings": _ALL,
    "group": _ALL,
    "progress": _ALL,
    "settings": _ALL,
    "groups": _ADMIN,
    "users": _ADMIN,
    "analytics": _ADMIN,
    "mentor-kit": _MENTOR,
    "feedback": _MENTOR,
}


def routes_for(role: Role) -> frozenset[str]:
    """Route families visible to `role`."""
    return frozenset(name for name, roles in ROUTE_FAMILIES.items() if role in roles)


def route_family(path: str) -> Optional[str]:
    """First path segment of `path`, or None for the root path."""
    segment = (path or "/").lstrip("/").split("/", 1)[0].split("?", 1)[0]
    return segment or None


@dataclass(frozen=True)
class NavItem:
    label: str
    family: str

    @property
    def href(self) -> str:
        return f"/{self.family}"


NAV_ITEMS: dict[Role, tuple[NavItem, ...]] = {
    Role.ADMIN: (
        NavItem("Dashboard", "dashboard"),
        NavItem("Groups", "groups"),
        NavItem("Users", "users"),
        NavItem("Resources", "resources"),
        NavItem("Analytics", "analytics"),
        NavItem("Surveys", "surveys"),
        NavItem("Settings", "settings"),
    ),
    Role.MENTOR: (
        NavItem("Dashboard", "dashboard"),
        NavItem("My Group", "group"),
        NavItem("Group Chat", "group-chat"),
        NavItem("Communication", "communication"),
        NavItem("Mentor Kit", "mentor-kit"),
        NavItem("Meetings", "meetings"),
        NavItem("Goals & Progress", "goals"),
        NavItem("Tasks", "tasks"),
        NavItem("Resources", "resources"),
        NavItem("Feedback", "feedback"),
    ),
    Role.MENTEE: (
        NavItem("Dashboard", "dashboard"),
        NavItem("My Goals", "goals"),
        NavItem("Tasks", "tasks"),
        NavItem("Group Chat", "group-chat"),
        NavItem("Communication", "communication"),
        NavItem("Meetings", "meetings"),
        NavItem("Group", "group"),
        NavItem("Resources", "resources"),
        NavItem("Progress", "progress"),
    ),
}


def nav_items_for(role: Role) -> tuple[NavItem, ...]:
    return NAV_ITEMS[role]


# Human-readable page titles for the main-app placeholder pages.
FAMILY_TITLES: dict[str, str] = {
    "dashboard": "Dashboard",
    "surveys": "Surveys",
    "communication": "Communication",
    "group-chat": "Group Chat",
    "resources": "Resources",
    "goals": "Goals",
    "tasks": "Tasks",
    "meetings": "Meetings",
    "group": "Group",
    "progress": "Progress",
    "settings": "Settings",
    "groups": "Groups",
    "users": "Users",
    "analytics": "Analytics",
    "mentor-kit": "Mentor Kit",
    "feedback": "Feedback",
}


__all__ = [
    "ROUTE_FAMILIES",
    "routes_for",
    "route_family",
    "NavItem",
    "NAV_ITEMS",
    "nav_items_for",
    "FAMILY_TITLES",
]
