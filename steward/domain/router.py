"""Classifies inbound webhook payloads and hands them to the policy engines."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from .. import metrics
from ..errors import MalformedEventError, PersistenceError, TransientNetworkError
from ..repository import ActivityLedger
from ..schemas.webhook import Change, Entry, MessagingEvent, WebhookPayload
from .inactivity import InactivityEngine
from .onboarding import SETUP_COMPLETED_PAYLOAD, OnboardingEngine
from .welcome import WelcomeFlow

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

PAGE_OBJECT = "page"
SECURITY_OBJECT = "workplace_security"

LOGIN_EVENTS = {"LOGIN", "LOGIN_SUCCESS"}
WELCOME_EVENTS = {"ADMIN_CREATE_ACCOUNT", "ADMIN_ACTIVATE_ACCOUNT"}
ACTIVITY_FIELDS = {"posts", "comments", "events", "status", "message_sends", "reactions", "membership"}


class EventRouter:
    """Entry point the webhook route invokes for every accepted delivery.

    Each messaging event or change is handled on its own: an error raised
    while handling one is logged and never stops the others, and nothing
    propagates back to the HTTP layer.
    """

    def __init__(
        self,
        *,
        ledger: ActivityLedger,
        onboarding: OnboardingEngine,
        inactivity: InactivityEngine,
        welcome: WelcomeFlow,
        admin_ids: Sequence[str],
        inactivity_command: str = "check inactivity",
        shutdown: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._onboarding = onboarding
        self._inactivity = inactivity
        self._welcome = welcome
        self._admin_ids = frozenset(admin_ids)
        self._command = inactivity_command.strip().lower()
        self._shutdown = shutdown
        self._clock = clock

    def dispatch(self, payload: dict[str, Any]) -> None:
        try:
            envelope = WebhookPayload.model_validate(payload)
        except ValidationError as exc:
            error = MalformedEventError(f"unrecognised delivery envelope: {exc.error_count()} errors")
            self._drop("invalid_payload", error)
            return

        for raw_entry in envelope.entry:
            try:
                entry = _parse(Entry, raw_entry)
            except MalformedEventError as exc:
                self._drop("malformed", exc)
                continue
            if envelope.object == PAGE_OBJECT:
                for raw_event in entry.messaging:
                    self._guarded(self._handle_messaging, raw_event)
            elif envelope.object == SECURITY_OBJECT:
                for raw_change in entry.changes:
                    self._guarded(self._handle_security_change, entry, raw_change)
            else:
                for raw_change in entry.changes:
                    self._guarded(self._handle_activity_change, envelope.object, entry, raw_change)

    def _guarded(self, handler: Callable[..., None], *args: Any) -> None:
        try:
            handler(*args)
        except MalformedEventError as exc:
            self._drop("malformed", exc)
        except TransientNetworkError as exc:
            logger.error("graph call failed while handling event: %s", exc)
            metrics.EVENTS_DROPPED.labels(reason="network").inc()
        except PersistenceError as exc:
            logger.error("activity ledger failed while handling event: %s", exc)
            metrics.EVENTS_DROPPED.labels(reason="persistence").inc()

    def _drop(self, reason: str, exc: MalformedEventError) -> None:
        logger.warning("dropping webhook event: %s", exc)
        metrics.EVENTS_DROPPED.labels(reason=reason).inc()

    def _handle_messaging(self, raw_event: dict[str, Any]) -> None:
        event = _parse(MessagingEvent, raw_event)
        sender_id = event.sender.id
        if event.postback is not None:
            if event.postback.payload != SETUP_COMPLETED_PAYLOAD:
                raise MalformedEventError(f"unknown postback payload {event.postback.payload!r} from {sender_id}")
            metrics.EVENTS.labels(kind="setup_postback").inc()
            self._onboarding.check_profile(sender_id)
        elif event.message is not None:
            if event.message.is_echo:
                logger.debug("ignoring echo of a page message to %s", sender_id)
                return
            if sender_id in self._admin_ids and self._is_command(event.message.text):
                metrics.EVENTS.labels(kind="inactivity_command").inc()
                logger.info("admin %s requested an inactivity check", sender_id)
                self._inactivity.run_check(self._shutdown)
            else:
                metrics.EVENTS.labels(kind="message").inc()
                self._onboarding.check_profile(sender_id)
        else:
            logger.debug("ignoring messaging event from %s without message or postback", sender_id)

    def _is_command(self, text: Optional[str]) -> bool:
        return bool(text) and text.strip().lower() == self._command

    def _handle_security_change(self, entry: Entry, raw_change: dict[str, Any]) -> None:
        change = _parse(Change, raw_change)
        event = str(change.value.get("event", "")).upper()
        if change.field == "sessions":
            if event not in LOGIN_EVENTS:
                logger.debug("ignoring session event %s", event)
                return
            account_id = _actor_of(change.value, entry, allow_entry_id=False)
            self._record(account_id, entry, kind="login")
        elif change.field == "admin_activity":
            if event not in WELCOME_EVENTS:
                logger.debug("ignoring admin activity %s", event)
                return
            account_id = change.value.get("target_id")
            if not account_id:
                raise MalformedEventError(f"{event} without target_id")
            metrics.EVENTS.labels(kind="account_created").inc()
            logger.info("new account %s, sending welcome messages", account_id)
            self._welcome.welcome(str(account_id))
        else:
            raise MalformedEventError(f"unknown {SECURITY_OBJECT} field {change.field!r}")

    def _handle_activity_change(self, obj: str, entry: Entry, raw_change: dict[str, Any]) -> None:
        change = _parse(Change, raw_change)
        if change.field not in ACTIVITY_FIELDS:
            raise MalformedEventError(f"unknown {obj} field {change.field!r}")
        account_id = _actor_of(change.value, entry, allow_entry_id=obj == "user")
        self._record(account_id, entry, kind=change.field)

    def _record(self, account_id: str, entry: Entry, *, kind: str) -> None:
        at = entry.time if entry.time is not None else int(self._clock())
        self._ledger.record_activity(account_id, at)
        metrics.EVENTS.labels(kind=kind).inc()
        logger.debug("recorded %s activity for %s at %d", kind, account_id, at)


def _actor_of(value: dict[str, Any], entry: Entry, *, allow_entry_id: bool) -> str:
    """Resolve which account performed a change."""
    sender = value.get("from")
    if isinstance(sender, dict) and sender.get("id"):
        return str(sender["id"])
    for key in ("target_id", "actor_id", "user_id"):
        if value.get(key):
            return str(value[key])
    if allow_entry_id and entry.id:
        return entry.id
    raise MalformedEventError("change carries no account identifier")


def _parse(model: type[ModelT], raw: Any) -> ModelT:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise MalformedEventError(f"invalid {model.__name__}: {exc.error_count()} errors") from exc
