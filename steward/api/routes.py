"""Webhook routes: subscription handshake and event intake."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ..config import Settings
from ..domain.router import EventRouter

logger = logging.getLogger(__name__)

router = APIRouter()


class AcceptedResponse(BaseModel):
    """Acknowledgement returned for every delivery, whatever its processing outcome."""

    status: str = "accepted"


def get_settings_state(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_event_router(request: Request) -> EventRouter:
    """Resolve the `EventRouter` stored on the FastAPI application state."""
    event_router: EventRouter = request.app.state.event_router
    return event_router


@router.get("/webhook", response_class=PlainTextResponse)
def verify_subscription(
    request: Request,
    mode: str | None = Query(default=None, alias="hub.mode"),
    verify_token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
) -> str:
    """Echo the challenge when the platform subscribes with our verify token."""
    settings = get_settings_state(request)
    if mode == "subscribe" and verify_token == settings.verify_token:
        logger.info("validated webhook subscription")
        return challenge
    logger.error("failed webhook validation, verify tokens do not match")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="verification failed")


@router.post("/webhook", response_model=AcceptedResponse)
async def receive_event(request: Request, background_tasks: BackgroundTasks) -> AcceptedResponse:
    """Acknowledge the delivery immediately and process it after the response."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("webhook body is not valid JSON, dropping")
        return AcceptedResponse()
    if not isinstance(payload, dict):
        logger.warning("webhook body is not a JSON object, dropping")
        return AcceptedResponse()

    background_tasks.add_task(get_event_router(request).dispatch, payload)
    return AcceptedResponse()
