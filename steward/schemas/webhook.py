"""Pydantic models for the two inbound webhook shapes (messaging and change feeds)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Permissive(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


class Sender(_Permissive):
    id: str


class Message(_Permissive):
    mid: str | None = None
    text: str | None = None
    is_echo: bool = False


class Postback(_Permissive):
    payload: str | None = None
    title: str | None = None


class MessagingEvent(_Permissive):
    sender: Sender
    timestamp: int | None = None
    message: Message | None = None
    postback: Postback | None = None


class Change(_Permissive):
    field: str
    value: dict[str, Any] = Field(default_factory=dict)


class Entry(_Permissive):
    """One delivery entry; its events stay raw so each is validated on its own."""

    id: str | None = None
    time: int | None = None
    messaging: list[dict[str, Any]] = Field(default_factory=list)
    changes: list[dict[str, Any]] = Field(default_factory=list)


class WebhookPayload(_Permissive):
    """Delivery envelope: only the object discriminator and the raw entry list."""

    object: str
    entry: list[dict[str, Any]] = Field(default_factory=list)
