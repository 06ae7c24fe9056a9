"""Full-roster sweep over the paged membership endpoint."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..domain.account import Account
from ..domain.contracts import RosterSource
from ..errors import SweepCancelled, TransientNetworkError

logger = logging.getLogger(__name__)


class RosterClient:
    """Accumulates every membership page into one ordered roster."""

    def __init__(self, source: RosterSource) -> None:
        self._source = source

    def fetch_all_accounts(self, stop: Optional[threading.Event] = None) -> list[Account]:
        """Walk the membership pages until one comes back empty.

        Pages are requested strictly in sequence since each request needs the
        previous page's cursor. A failed page aborts the sweep and the partial
        roster is discarded; the caller sees the raised error only.

        Raises
        ------
        TransientNetworkError
            When a page request fails or a non-empty page carries no cursor.
        SweepCancelled
            When ``stop`` is set between two page requests.
        """
        accounts: list[Account] = []
        cursor: Optional[str] = None
        pages = 0
        while True:
            if stop is not None and stop.is_set():
                raise SweepCancelled(f"roster sweep cancelled after {pages} pages")
            page, next_cursor = self._source.fetch_roster_page(cursor)
            pages += 1
            if not page:
                break
            accounts.extend(page)
            if not next_cursor:
                raise TransientNetworkError(
                    "fetch roster page",
                    detail=(
                        f"page {pages} returned accounts without a cursor; "
                        f"sweep stopped with {len(accounts)} accounts collected"
                    ),
                )
            cursor = next_cursor
        logger.info("roster sweep collected %d accounts over %d pages", len(accounts), pages)
        return accounts
