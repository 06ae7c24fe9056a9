"""Collaborator contracts shared by the policy engines."""

from __future__ import annotations

from typing import Optional, Protocol

from .account import Account, Profile


class Messenger(Protocol):
    """Outbound messaging and profile lookups against the workplace platform."""

    def send_text(self, account_id: str, text: str) -> None: ...

    def send_button_prompt(self, account_id: str, text: str, button_label: str, payload: str) -> None: ...

    def fetch_profile(self, account_id: str) -> Profile: ...

    def deactivate_account(self, account_id: str) -> None: ...


class RosterSource(Protocol):
    """One page of the community membership listing."""

    def fetch_roster_page(self, cursor: Optional[str]) -> tuple[list[Account], Optional[str]]: ...
