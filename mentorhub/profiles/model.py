"""
Profile record and its total parsing from raw store rows.

A profile is the single source of truth for role and onboarding progress.
Sessions only carry the identity; everything access-related is read here.
The member details collected during onboarding (bio, skills, links, goals)
live on the same record but never influence access.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Tuple

from mentorhub.identity_access.domain import Role, parse_role
from mentorhub.onboarding.steps import OnboardingStep, parse_step

EXPERIENCE_LEVELS = ("0-1 years", "1-3 years", "3-5 years", "5+ years", "10+ years")
VIDEO_TOOLS = ("Google Meet", "Zoom", "Discord Voice", "Microsoft Teams")

# Self-service details; the member may edit these, never role or progress.
DETAIL_FIELDS = (
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

# Fields a partial update may touch. Anything else is rejected early.
UPDATABLE_FIELDS = frozenset(
    {"role", "onboarding_step", "is_onboarding_complete", "group_id", "display_name", *DETAIL_FIELDS}
)

_TRUE_TOKENS = frozenset({"t", "true", "1", "yes"})


def _parse_flag(raw: Any) -> bool:
    if raw is True:
        return True
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUE_TOKENS
    return False


def _text(raw: Any) -> str:
    return str(raw).strip() if raw else ""


def _choice(raw: Any, allowed: Iterable[str]) -> str:
    value = _text(raw)
    return value if value in allowed else ""


def parse_skills(raw: Any) -> Tuple[str, ...]:
    """Skills from a list (DB array) or a comma separated string; blanks dropped."""
    if isinstance(raw, str):
        items: Iterable[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = raw
    else:
        return ()
    return tuple(s for s in (_text(item) for item in items) if s)


@dataclass(frozen=True)
class Profile:
    identity: str
    role: Role
    onboarding_step: OnboardingStep
    is_onboarding_complete: bool = False
    group_id: Optional[str] = None
    display_name: str = ""
    bio: str = ""
    skills: Tuple[str, ...] = ()
    experience: str = ""
    linkedin_url: str = ""
    github_url: str = ""
    discord_username: str = ""
    preferred_video_tool: str = ""
    goals: str = ""
    expectations: str = ""

    @classmethod
    def from_record(cls, identity: str, record: Mapping[str, Any]) -> "Profile":
        """Build a profile from a raw mapping, failing closed on bad data.

        - Unknown role -> mentee; unknown step -> welcome.
        - The completion flag only counts when the step is `completed` too;
          a record claiming completion at any other step is treated as
          incomplete rather than trusted.
        - Experience and video tool outside their option lists read as unset.
        """
        role = parse_role(record.get("role"))
        step = parse_step(record.get("onboarding_step"))
        done = _parse_flag(record.get("is_onboarding_complete")) and step is OnboardingStep.COMPLETED
        group = record.get("group_id")
        name = record.get("display_name")
        return cls(
            identity=identity,
            role=role,
            onboarding_step=step,
            is_onboarding_complete=done,
            group_id=str(group) if group else None,
            display_name=str(name) if name else "",
            bio=_text(record.get("bio")),
            skills=parse_skills(record.get("skills")),
            experience=_choice(record.get("experience"), EXPERIENCE_LEVELS),
            linkedin_url=_text(record.get("linkedin_url")),
            github_url=_text(record.get("github_url")),
            discord_username=_text(record.get("discord_username")),
            preferred_video_tool=_choice(record.get("preferred_video_tool"), VIDEO_TOOLS),
            goals=_text(record.get("goals")),
            expectations=_text(record.get("expectations")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "onboarding_step": self.onboarding_step.value,
            "is_onboarding_complete": self.is_onboarding_complete,
            "group_id": self.group_id,
            "display_name": self.display_name,
            "bio": self.bio,
            "skills": list(self.skills),
            "experience": self.experience,
            "linkedin_url": self.linkedin_url,
            "github_url": self.github_url,
            "discord_username": self.discord_username,
            "preferred_video_tool": self.preferred_video_tool,
            "goals": self.goals,
            "expectations": self.expectations,
        }

    def details(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in DETAIL_FIELDS}


@dataclass(frozen=True)
class ProfileUpdate:
    """Partial profile update; only explicitly provided fields are written."""

    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = set(self.fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"unsupported profile fields: {sorted(unknown)}")

    @classmethod
    def of(cls, **fields: Any) -> "ProfileUpdate":
        return cls(fields=dict(fields))

    def as_record(self) -> dict[str, Any]:
        """Serialise enum members to their stored string values and tuples to lists."""
        out: dict[str, Any] = {}
        for key, value in self.fields.items():
            if isinstance(value, (Role, OnboardingStep)):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            out[key] = value
        return out


def initial_profile(identity: str, role: Role, display_name: str = "") -> Profile:
    """Profile for a freshly registered identity.

    Mentors and mentees start before `welcome` (account setup); admins skip
    onboarding and are created already completed.
    """
    base = Profile(identity=identity, role=role, onboarding_step=OnboardingStep.ACCOUNT_SETUP, display_name=display_name)
    if role is Role.ADMIN:
        return replace(base, onboarding_step=OnboardingStep.COMPLETED, is_onboarding_complete=True)
    return base


__all__ = [
    "DETAIL_FIELDS",
    "EXPERIENCE_LEVELS",
    "Profile",
    "ProfileUpdate",
    "UPDATABLE_FIELDS",
    "VIDEO_TOOLS",
    "initial_profile",
    "parse_skills",
]
