"""Process-local onboarding prompt throttle."""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Callable


class InMemoryPromptThrottle:
    """Allows ``max_prompts`` setup prompts per account within a rolling ``window_seconds``."""

    def __init__(
        self,
        max_prompts: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_prompts = max_prompts
        self._window = window_seconds
        self._clock = clock
        self._sent: dict[str, deque[float]] = {}
        self._lock = Lock()

    def allow_prompt(self, account_id: str) -> bool:
        now = self._clock()
        with self._lock:
            sent = self._sent.setdefault(account_id, deque())
            while sent and now - sent[0] >= self._window:
                sent.popleft()
            if len(sent) >= self._max_prompts:
                return False
            sent.append(now)
            return True

    def prompts_in_window(self, account_id: str) -> int:
        """Number of prompts still counted against ``account_id``."""
        now = self._clock()
        with self._lock:
            return sum(1 for at in self._sent.get(account_id, ()) if now - at < self._window)
