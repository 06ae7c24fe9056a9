"""Profile completeness check driving the onboarding reminder loop."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .. import metrics
from ..throttling import PromptThrottle
from .account import Profile
from .contracts import Messenger

logger = logging.getLogger(__name__)

SETUP_COMPLETED_PAYLOAD = "SETUP_COMPLETED_PAYLOAD"
SETUP_BUTTON_LABEL = "I'm done!"


@dataclass(frozen=True, slots=True)
class RequiredField:
    """A profile predicate paired with the phrase used when it fails."""

    label: str
    is_present: Callable[[Profile], bool]


REQUIRED_FIELDS: tuple[RequiredField, ...] = (
    RequiredField("a cover photo", lambda profile: bool(profile.cover)),
    RequiredField("a profile picture", lambda profile: not profile.picture_is_silhouette),
    RequiredField("a department", lambda profile: bool(profile.department)),
    RequiredField("a position", lambda profile: bool(profile.title)),
    RequiredField("a manager", lambda profile: len(profile.manager_ids) > 0),
)


class OnboardingOutcome(str, enum.Enum):
    complete = "complete"
    prompted = "prompted"
    throttled = "throttled"


def missing_fields(profile: Profile, required: Sequence[RequiredField] = REQUIRED_FIELDS) -> list[str]:
    """Labels of the required fields absent from ``profile``, in checking order."""
    return [field.label for field in required if not field.is_present(profile)]


def join_labels(labels: Sequence[str]) -> str:
    """Join labels as prose: ``a``, ``a and b``, ``a, b, and c``."""
    if not labels:
        return ""
    if len(labels) == 1:
        return labels[0]
    if len(labels) == 2:
        return f"{labels[0]} and {labels[1]}"
    return ", ".join(labels[:-1]) + f", and {labels[-1]}"


def render_missing_message(labels: Sequence[str]) -> str:
    return f"Your profile is still missing {join_labels(labels)} :( Tap the button once you've added them."


def render_complete_message(profile: Profile) -> str:
    if profile.first_name:
        return f"Thanks {profile.first_name}, your profile is all set!"
    return "Thanks, your profile is all set!"


class OnboardingEngine:
    """Checks a fresh profile and either confirms it or re-issues the setup prompt."""

    def __init__(
        self,
        messenger: Messenger,
        throttle: Optional[PromptThrottle] = None,
        required_fields: Sequence[RequiredField] = REQUIRED_FIELDS,
    ) -> None:
        self._messenger = messenger
        self._throttle = throttle
        self._required = tuple(required_fields)

    def check_profile(self, account_id: str) -> OnboardingOutcome:
        """Fetch the profile of ``account_id`` and answer with a confirmation or a retry prompt.

        Graph failures propagate as ``TransientNetworkError``; the caller owns
        logging them since the user only sees a missing reply.
        """
        profile = self._messenger.fetch_profile(account_id)
        missing = missing_fields(profile, self._required)
        if not missing:
            self._messenger.send_text(account_id, render_complete_message(profile))
            logger.info("onboarding complete for %s", account_id)
            metrics.ONBOARDING_PROMPTS.labels(outcome=OnboardingOutcome.complete.value).inc()
            return OnboardingOutcome.complete

        if self._throttle is not None and not self._throttle.allow_prompt(account_id):
            logger.warning(
                "onboarding prompt for %s throttled after %d recent prompts; still missing %s",
                account_id,
                self._throttle.prompts_in_window(account_id),
                missing,
            )
            metrics.ONBOARDING_PROMPTS.labels(outcome=OnboardingOutcome.throttled.value).inc()
            return OnboardingOutcome.throttled

        self._messenger.send_button_prompt(
            account_id,
            render_missing_message(missing),
            SETUP_BUTTON_LABEL,
            SETUP_COMPLETED_PAYLOAD,
        )
        logger.info("onboarding prompt sent to %s, missing %s", account_id, missing)
        metrics.ONBOARDING_PROMPTS.labels(outcome=OnboardingOutcome.prompted.value).inc()
        return OnboardingOutcome.prompted
