"""Workplace activity steward: onboarding and inactivity enforcement."""

__version__ = "0.1.0"
