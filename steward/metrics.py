"""Prometheus counters for policy actions and webhook intake."""

from __future__ import annotations

from prometheus_client import Counter

EVENTS = Counter("steward_events_total", "Webhook events dispatched by kind", ["kind"])
EVENTS_DROPPED = Counter("steward_events_dropped_total", "Webhook events dropped", ["reason"])
INACTIVITY_WARNINGS = Counter("steward_inactivity_warnings_total", "Accounts flagged as inactive")
DEACTIVATIONS = Counter("steward_deactivations_total", "Accounts deactivated for inactivity")
ONBOARDING_PROMPTS = Counter("steward_onboarding_prompts_total", "Onboarding check outcomes", ["outcome"])
ROSTER_SWEEP_FAILURES = Counter("steward_roster_sweep_failures_total", "Roster sweeps that aborted")
