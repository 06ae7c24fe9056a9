"""Onboarding prompt throttle shared across webhook workers through Redis."""

from __future__ import annotations

import time
import uuid
from typing import Callable

from redis import Redis
from redis.client import Pipeline


class RedisPromptThrottle:
    """Keeps one sorted set of prompt timestamps per account.

    The count-then-add step runs inside a WATCH/MULTI transaction, so two
    workers prompting the same account cannot both slip under the limit.
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_prompts: int,
        window_seconds: int,
        key_prefix: str = "steward:onboarding-prompts",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._max_prompts = max_prompts
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._clock = clock

    def _key(self, account_id: str) -> str:
        return f"{self._key_prefix}:{account_id}"

    def allow_prompt(self, account_id: str) -> bool:
        key = self._key(account_id)
        now_ms = int(self._clock() * 1000)
        window_start = now_ms - self._window_ms

        def reserve(pipe: Pipeline) -> bool:
            # Reads run immediately while the key is watched; writes are queued after MULTI.
            if pipe.zcount(key, f"({window_start}", "+inf") >= self._max_prompts:
                return False
            pipe.multi()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zadd(key, {f"{now_ms}:{uuid.uuid4().hex}": now_ms})
            pipe.pexpire(key, self._window_ms)
            return True

        return self._client.transaction(reserve, key, value_from_callable=True)

    def prompts_in_window(self, account_id: str) -> int:
        window_start = int(self._clock() * 1000) - self._window_ms
        return int(self._client.zcount(self._key(account_id), f"({window_start}", "+inf"))
