"""MentorHub: mentorship program access and onboarding."""
