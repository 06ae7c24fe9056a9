"""Greeting sequence for newly created or activated accounts."""

from __future__ import annotations

import logging
from typing import Sequence

from .contracts import Messenger
from .onboarding import SETUP_BUTTON_LABEL, SETUP_COMPLETED_PAYLOAD

logger = logging.getLogger(__name__)

SETUP_PROMPT_TEXT = "Once you've added a cover photo, a profile picture, your department, position and manager, let me know."


class WelcomeFlow:
    """Sends the greeting, the configured welcome messages and the first setup prompt."""

    def __init__(self, messenger: Messenger, org_name: str, welcome_messages: Sequence[str] = ()) -> None:
        self._messenger = messenger
        self._org_name = org_name
        self._welcome_messages = tuple(welcome_messages)

    def welcome(self, account_id: str) -> None:
        """Greet ``account_id``; a failed send stops the rest of the sequence."""
        profile = self._messenger.fetch_profile(account_id)
        greeting = f"Hello, welcome to {self._org_name} :)"
        if profile.first_name:
            greeting = f"Hello {profile.first_name}, welcome to {self._org_name} :)"
        self._messenger.send_text(account_id, greeting)
        for text in self._welcome_messages:
            self._messenger.send_text(account_id, text)
        self._messenger.send_button_prompt(account_id, SETUP_PROMPT_TEXT, SETUP_BUTTON_LABEL, SETUP_COMPLETED_PAYLOAD)
        logger.info("welcome sequence sent to %s (%d messages)", account_id, len(self._welcome_messages) + 2)
