"""Limits on how often one account is re-sent the onboarding setup prompt."""

from __future__ import annotations

from typing import Protocol


class PromptThrottle(Protocol):
    def allow_prompt(self, account_id: str) -> bool:
        """Count a prompt for ``account_id`` and return ``False`` once its window is full."""
        ...

    def prompts_in_window(self, account_id: str) -> int: ...
