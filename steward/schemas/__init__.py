"""Inbound webhook payload models."""

from .webhook import Change, Entry, MessagingEvent, WebhookPayload

__all__ = [
    "Change",
    "Entry",
    "MessagingEvent",
    "WebhookPayload",
]
