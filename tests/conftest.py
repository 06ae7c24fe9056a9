from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import pytest

from steward.domain.account import Account, Profile
from steward.errors import TransientNetworkError
from steward.repository import InMemoryActivityLedger


COMPLETE_PROFILE = dict(
    name="Ada Lovelace",
    cover="https://cdn.example.com/cover.jpg",
    picture_is_silhouette=False,
    department="Engineering",
    title="Analyst",
    manager_ids=("M1",),
)


@dataclass
class SentPrompt:
    account_id: str
    text: str
    button_label: str
    payload: str


class FakeMessenger:
    """In-memory stand-in for the Graph client recording every outbound call."""

    def __init__(self) -> None:
        self.profiles: dict[str, Profile] = {}
        self.texts: list[tuple[str, str]] = []
        self.prompts: list[SentPrompt] = []
        self.deactivated: list[str] = []
        self.profile_fetches = 0
        self.failing_recipients: set[str] = set()

    def add_profile(self, account_id: str, **overrides) -> Profile:
        fields = {**COMPLETE_PROFILE, **overrides}
        profile = Profile(account_id=account_id, **fields)
        self.profiles[account_id] = profile
        return profile

    def send_text(self, account_id: str, text: str) -> None:
        if account_id in self.failing_recipients:
            raise TransientNetworkError("send message", status=500, detail="boom")
        self.texts.append((account_id, text))

    def send_button_prompt(self, account_id: str, text: str, button_label: str, payload: str) -> None:
        if account_id in self.failing_recipients:
            raise TransientNetworkError("send message", status=500, detail="boom")
        self.prompts.append(SentPrompt(account_id, text, button_label, payload))

    def fetch_profile(self, account_id: str) -> Profile:
        self.profile_fetches += 1
        if account_id not in self.profiles:
            raise TransientNetworkError("fetch profile", status=404, detail="unknown user")
        return self.profiles[account_id]

    def deactivate_account(self, account_id: str) -> None:
        self.deactivated.append(account_id)

    def texts_to(self, account_id: str) -> list[str]:
        return [text for recipient, text in self.texts if recipient == account_id]


@dataclass
class FakeRosterSource:
    """Serves pre-built membership pages keyed by the cursor that requests them."""

    pages: list[tuple[list[Account], Optional[str]]] = field(default_factory=list)
    fail_on_call: Optional[int] = None
    calls: list[Optional[str]] = field(default_factory=list)

    def fetch_roster_page(self, cursor: Optional[str]) -> tuple[list[Account], Optional[str]]:
        self.calls.append(cursor)
        index = len(self.calls) - 1
        if self.fail_on_call is not None and index == self.fail_on_call:
            raise TransientNetworkError("fetch roster page", status=500, detail="upstream error")
        if index >= len(self.pages):
            return [], None
        return self.pages[index]

    @classmethod
    def single_page(cls, *accounts: Account) -> "FakeRosterSource":
        return cls(pages=[(list(accounts), "C1"), ([], None)])


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture
def ledger() -> InMemoryActivityLedger:
    return InMemoryActivityLedger()
