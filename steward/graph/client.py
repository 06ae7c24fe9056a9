"""HTTP client for the workplace Graph API (messages, profiles, membership)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config import Settings
from ..domain.account import Account, Profile
from ..errors import RequestTimeout, TransientNetworkError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = "name,cover,picture{is_silhouette},department,title,managers"
ROSTER_FIELDS = "id,name"
ROSTER_PAGE_SIZE = 100


class GraphClient:
    """Thin wrapper over the Graph API endpoints the steward depends on."""

    def __init__(
        self,
        *,
        base_url: str,
        access_token: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Create the pooled httpx client; ``transport`` lets tests stub the network."""
        self._client = httpx.Client(
            base_url=base_url,
            params={"access_token": access_token},
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "GraphClient":
        return cls(
            base_url=settings.graph_api_base,
            access_token=settings.access_token,
            timeout_seconds=settings.graph_timeout_seconds,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("%s timed out: %s", operation, exc)
            raise RequestTimeout(operation, detail=str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.error("%s failed: %s", operation, exc)
            raise TransientNetworkError(operation, detail=str(exc)) from exc

        if response.status_code != 200:
            logger.error(
                "%s failed %s %s: %s",
                operation,
                response.status_code,
                response.reason_phrase,
                response.text,
            )
            raise TransientNetworkError(operation, status=response.status_code, detail=response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise TransientNetworkError(operation, status=response.status_code, detail="invalid JSON body") from exc

    def _send(self, account_id: str, message: dict[str, Any]) -> dict[str, Any]:
        body = self._request(
            "send message",
            "POST",
            "/me/messages",
            json={"recipient": {"id": account_id}, "message": message},
        )
        logger.debug("sent message %s to %s", body.get("message_id"), body.get("recipient_id", account_id))
        return body

    def send_text(self, account_id: str, text: str) -> None:
        self._send(account_id, {"text": text})

    def send_button_prompt(self, account_id: str, text: str, button_label: str, payload: str) -> None:
        """Send a button template whose single button posts ``payload`` back to the webhook."""
        self._send(
            account_id,
            {
                "attachment": {
                    "type": "template",
                    "payload": {
                        "template_type": "button",
                        "text": text,
                        "buttons": [{"type": "postback", "title": button_label, "payload": payload}],
                    },
                }
            },
        )

    def fetch_profile(self, account_id: str) -> Profile:
        body = self._request("fetch profile", "GET", f"/{account_id}", params={"fields": PROFILE_FIELDS})
        return parse_profile(account_id, body)

    def fetch_roster_page(self, cursor: Optional[str]) -> tuple[list[Account], Optional[str]]:
        """Return one membership page and the ``after`` cursor for the next one."""
        params: dict[str, Any] = {"fields": ROSTER_FIELDS, "limit": ROSTER_PAGE_SIZE}
        if cursor:
            params["after"] = cursor
        body = self._request("fetch roster page", "GET", "/community/members", params=params)
        accounts = [
            Account(account_id=str(item["id"]), name=item.get("name", ""))
            for item in body.get("data", [])
            if item.get("id")
        ]
        next_cursor = body.get("paging", {}).get("cursors", {}).get("after")
        return accounts, next_cursor

    def deactivate_account(self, account_id: str) -> None:
        # TODO: call the SCIM Users endpoint with active=false once the app holds the provisioning permission.
        logger.warning("deactivation of %s requested; no provisioning endpoint is wired, skipping", account_id)


def parse_profile(account_id: str, body: dict[str, Any]) -> Profile:
    """Map a Graph user node onto the ``Profile`` fields checked during onboarding."""
    cover = body.get("cover") or {}
    picture = (body.get("picture") or {}).get("data") or {}
    managers = (body.get("managers") or {}).get("data") or []
    return Profile(
        account_id=account_id,
        name=body.get("name", ""),
        cover=cover.get("source") or cover.get("id"),
        picture_is_silhouette=bool(picture.get("is_silhouette", True)),
        department=body.get("department") or None,
        title=body.get("title") or None,
        manager_ids=tuple(str(m["id"]) for m in managers if m.get("id")),
    )
