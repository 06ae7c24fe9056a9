from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import json
import os
from typing import Mapping

from .errors import ConfigurationError

REQUIRED_SETTINGS: dict[str, str] = {
    "app_id": "APP_ID",
    "app_secret": "APP_SECRET",
    "verify_token": "VERIFY_TOKEN",
    "access_token": "ACCESS_TOKEN",
    "org_name": "ORG_NAME",
    "admin_ids": "ADMIN_IDS",
    "database_url": "POSTGRES_URL",
    "activity_table": "ACTIVITY_TABLE",
}


def _split_ids(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values shared by the webhook app and the policy engines."""

    app_name: str = "activity-steward"
    version: str = "0.1.0"
    app_id: str = ""
    app_secret: str = ""
    verify_token: str = ""
    access_token: str = ""
    org_name: str = ""
    admin_ids: tuple[str, ...] = ()
    operator_ids: tuple[str, ...] = ()
    database_url: str = ""
    activity_table: str = ""
    debug: bool = False
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    graph_api_base: str = "https://graph.facebook.com/v2.10"
    graph_timeout_seconds: float = 10.0
    inactivity_command: str = "check inactivity"
    inactivity_check_interval_seconds: int = 0
    onboarding_prompt_limit: int = 5
    onboarding_prompt_window_seconds: int = 3600
    throttle_backend: str = "memory"
    redis_url: str = ""
    welcome_messages_path: str = ""
    welcome_messages: tuple[str, ...] = field(default=(), repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        welcome_path = env.get("WELCOME_MESSAGES_PATH", "")
        return cls(
            app_id=env.get("APP_ID", ""),
            app_secret=env.get("APP_SECRET", ""),
            verify_token=env.get("VERIFY_TOKEN", ""),
            access_token=env.get("ACCESS_TOKEN", ""),
            org_name=env.get("ORG_NAME", ""),
            admin_ids=_split_ids(env.get("ADMIN_IDS", "")),
            operator_ids=_split_ids(env.get("OPERATOR_IDS", "")),
            database_url=env.get("POSTGRES_URL", ""),
            activity_table=env.get("ACTIVITY_TABLE", ""),
            debug=_flag(env.get("DEBUG", "false")),
            http_host=env.get("HTTP_HOST", "0.0.0.0"),
            http_port=int(env.get("HTTP_PORT", "8000")),
            graph_api_base=env.get("GRAPH_API_BASE", "https://graph.facebook.com/v2.10"),
            graph_timeout_seconds=float(env.get("GRAPH_TIMEOUT_SECONDS", "10")),
            inactivity_command=env.get("INACTIVITY_COMMAND", "check inactivity"),
            inactivity_check_interval_seconds=int(env.get("INACTIVITY_CHECK_INTERVAL_SECONDS", "0")),
            onboarding_prompt_limit=int(env.get("ONBOARDING_PROMPT_LIMIT", "5")),
            onboarding_prompt_window_seconds=int(env.get("ONBOARDING_PROMPT_WINDOW_SECONDS", "3600")),
            throttle_backend=env.get("THROTTLE_BACKEND", "memory").lower(),
            redis_url=env.get("REDIS_URL", ""),
            welcome_messages_path=welcome_path,
            welcome_messages=load_welcome_messages(welcome_path) if welcome_path else (),
        )

    def validate(self) -> "Settings":
        """Raise ``ConfigurationError`` naming every required variable left empty."""
        missing = [env_name for attr, env_name in REQUIRED_SETTINGS.items() if not getattr(self, attr)]
        if missing:
            raise ConfigurationError(missing)
        return self


def load_welcome_messages(path: str) -> tuple[str, ...]:
    """Read the ``{"msgs": [...]}`` welcome message file."""
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        raise ConfigurationError([f"WELCOME_MESSAGES_PATH ({exc})"]) from exc
    return tuple(str(msg) for msg in data.get("msgs", []))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings.from_env()
