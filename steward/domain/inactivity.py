"""Inactivity enforcement: roster sweep joined against the activity ledger."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .. import metrics
from ..errors import PersistenceError, SweepCancelled, TransientNetworkError
from ..graph.roster import RosterClient
from ..repository import ActivityLedger
from .account import Account, ActivityRecord
from .contracts import Messenger

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
WARN_THRESHOLD_SECONDS = 30 * DAY_SECONDS
DEACTIVATE_THRESHOLD_SECONDS = 45 * DAY_SECONDS


@dataclass(slots=True)
class CheckReport:
    """Outcome of one inactivity check, in roster order."""

    scanned: int = 0
    warned: list[str] = field(default_factory=list)
    deactivated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    aborted: bool = False


def _display(account: Account) -> str:
    return f"{account.name} ({account.account_id})" if account.name else account.account_id


class InactivityEngine:
    """Applies the warn/deactivate state machine to every roster member with ledger data."""

    def __init__(
        self,
        roster: RosterClient,
        ledger: ActivityLedger,
        messenger: Messenger,
        admin_ids: Sequence[str],
        *,
        operator_ids: Sequence[str] = (),
        clock: Callable[[], float] = time.time,
        warn_after: int = WARN_THRESHOLD_SECONDS,
        deactivate_after: int = DEACTIVATE_THRESHOLD_SECONDS,
    ) -> None:
        self._roster = roster
        self._ledger = ledger
        self._messenger = messenger
        self._admin_ids = tuple(admin_ids)
        self._operator_ids = tuple(operator_ids)
        self._clock = clock
        self._warn_after = warn_after
        self._deactivate_after = deactivate_after
        self._running = threading.Lock()

    def run_check(self, stop: Optional[threading.Event] = None) -> CheckReport:
        """Sweep the roster once and escalate every account past a threshold.

        A failed sweep evaluates nothing; operators are alerted instead. Only
        one check runs at a time, a concurrent request returns an aborted report.
        """
        report = CheckReport()
        if not self._running.acquire(blocking=False):
            logger.info("inactivity check already running, skipping request")
            report.aborted = True
            return report
        try:
            try:
                accounts = self._roster.fetch_all_accounts(stop)
            except SweepCancelled as exc:
                logger.info("inactivity check cancelled: %s", exc)
                report.aborted = True
                return report
            except TransientNetworkError as exc:
                logger.error("inactivity check aborted, roster sweep failed: %s", exc)
                metrics.ROSTER_SWEEP_FAILURES.inc()
                self._alert_operators(f"Inactivity check aborted: {exc}")
                report.aborted = True
                return report

            now = int(self._clock())
            for account in accounts:
                if stop is not None and stop.is_set():
                    logger.info("inactivity check stopped after %d accounts", report.scanned)
                    report.aborted = True
                    break
                report.scanned += 1
                try:
                    self._evaluate(account, now, report)
                except PersistenceError as exc:
                    logger.error("activity ledger error for %s: %s", account.account_id, exc)
                    report.failed.append(account.account_id)
            logger.info(
                "inactivity check scanned %d accounts: %d warned, %d deactivated, %d without activity data",
                report.scanned,
                len(report.warned),
                len(report.deactivated),
                len(report.skipped),
            )
            return report
        finally:
            self._running.release()

    def _evaluate(self, account: Account, now: int, report: CheckReport) -> None:
        record = self._ledger.lookup(account.account_id)
        if record is None:
            logger.debug("no activity recorded for %s, skipping", account.account_id)
            report.skipped.append(account.account_id)
            return

        elapsed = now - record.last_activity
        if elapsed > self._deactivate_after and record.warning_sent:
            self._deactivate(account, record, report)
        elif elapsed > self._warn_after and not record.warning_sent:
            self._warn(account, record, elapsed, report)

    def _warn(self, account: Account, record: ActivityRecord, elapsed: int, report: CheckReport) -> None:
        if not self._ledger.mark_warned(account.account_id, record.last_activity):
            logger.info("%s became active during the check, not warning", account.account_id)
            return
        days = elapsed // DAY_SECONDS
        remaining = max(0, (self._deactivate_after - elapsed) // DAY_SECONDS)
        self._notify_admins(
            f"{_display(account)} has been inactive for {days} days. "
            f"They will be deactivated in about {remaining} days unless they become active."
        )
        metrics.INACTIVITY_WARNINGS.inc()
        report.warned.append(account.account_id)
        logger.info("inactivity warning issued for %s after %d days", account.account_id, days)

    def _deactivate(self, account: Account, record: ActivityRecord, report: CheckReport) -> None:
        if not self._ledger.remove_account(account.account_id, record.last_activity):
            logger.info("%s became active during the check, not deactivating", account.account_id)
            return
        self._notify_admins(f"{_display(account)} has been deactivated after a prolonged period of inactivity.")
        try:
            self._messenger.deactivate_account(account.account_id)
        except TransientNetworkError as exc:
            logger.error("deactivation call for %s failed: %s", account.account_id, exc)
        metrics.DEACTIVATIONS.inc()
        report.deactivated.append(account.account_id)
        logger.info("%s deactivated for inactivity", account.account_id)

    def _notify_admins(self, text: str) -> None:
        for admin_id in self._admin_ids:
            try:
                self._messenger.send_text(admin_id, text)
            except TransientNetworkError as exc:
                logger.error("could not notify admin %s: %s", admin_id, exc)

    def _alert_operators(self, text: str) -> None:
        for operator_id in self._operator_ids:
            try:
                self._messenger.send_text(operator_id, text)
            except TransientNetworkError as exc:
                logger.error("could not alert operator %s: %s", operator_id, exc)
