# MentorHub component system: plain Python classes rendering HTML strings.

from .base import Component
from .layout import Layout
from .navigation import Navigation
from .preview import PreviewBanner, PreviewSwitcher
from .onboarding import OnboardingPage
from .account_setup import AccountSetupForm
from .pages import DashboardPage, LoadingPage, NotFoundPage, SectionPage, SignedOutPage

__all__ = [
    "Component",
    "Layout",
    "Navigation",
    "PreviewBanner",
    "PreviewSwitcher",
    "OnboardingPage",
    "AccountSetupForm",
    "DashboardPage",
    "LoadingPage",
    "NotFoundPage",
    "SectionPage",
    "SignedOutPage",
]
