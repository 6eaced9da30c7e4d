"""Onboarding state machine and its persisted progression."""
