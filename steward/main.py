"""FastAPI application wiring for the activity steward."""

from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as webhook_router
from .config import Settings, get_settings
from .domain.inactivity import InactivityEngine
from .domain.onboarding import OnboardingEngine
from .domain.router import EventRouter
from .domain.welcome import WelcomeFlow
from .graph.client import GraphClient
from .graph.roster import RosterClient
from .repository import ActivityLedger, PostgresActivityLedger
from .throttling import PromptThrottle
from .throttling.memory import InMemoryPromptThrottle
from .throttling.redis_backend import RedisPromptThrottle

logger = logging.getLogger(__name__)

settings = get_settings()


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_throttle(config: Settings) -> PromptThrottle:
    """Instantiate the configured prompt throttle backend, preferring Redis when available."""
    if config.throttle_backend == "redis" and config.redis_url:
        try:
            client = redis.from_url(config.redis_url)
            client.ping()
            logger.info("onboarding throttle configured for redis backend at %s", config.redis_url)
            return RedisPromptThrottle(
                client,
                max_prompts=config.onboarding_prompt_limit,
                window_seconds=config.onboarding_prompt_window_seconds,
            )
        except redis.RedisError as exc:
            logger.warning("redis throttle unavailable, falling back to in-memory: %s", exc)

    logger.info("onboarding throttle using in-memory backend")
    return InMemoryPromptThrottle(
        max_prompts=config.onboarding_prompt_limit,
        window_seconds=config.onboarding_prompt_window_seconds,
    )


def build_event_router(
    config: Settings,
    ledger: ActivityLedger,
    graph: GraphClient,
    shutdown: threading.Event,
) -> tuple[EventRouter, InactivityEngine]:
    inactivity = InactivityEngine(
        RosterClient(graph),
        ledger,
        graph,
        config.admin_ids,
        operator_ids=config.operator_ids,
    )
    event_router = EventRouter(
        ledger=ledger,
        onboarding=OnboardingEngine(graph, build_throttle(config)),
        inactivity=inactivity,
        welcome=WelcomeFlow(graph, config.org_name, config.welcome_messages),
        admin_ids=config.admin_ids,
        inactivity_command=config.inactivity_command,
        shutdown=shutdown,
    )
    return event_router, inactivity


def _run_periodic_checks(engine: InactivityEngine, interval: int, stop: threading.Event) -> None:
    while not stop.wait(interval):
        engine.run_check(stop)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration, then open the ledger pool and Graph client for the app lifecycle."""
    configure_logging(settings.debug)
    settings.validate()

    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    ledger = PostgresActivityLedger(pool, settings.activity_table)
    ledger.ensure_schema()
    graph = GraphClient.from_settings(settings)

    stop = threading.Event()
    event_router, inactivity = build_event_router(settings, ledger, graph, stop)
    app.state.settings = settings
    app.state.event_router = event_router

    scheduler = None
    if settings.inactivity_check_interval_seconds > 0:
        scheduler = threading.Thread(
            target=_run_periodic_checks,
            args=(inactivity, settings.inactivity_check_interval_seconds, stop),
            name="inactivity-check",
            daemon=True,
        )
        scheduler.start()
        logger.info("periodic inactivity check every %ds", settings.inactivity_check_interval_seconds)
    try:
        yield
    finally:
        stop.set()
        if scheduler is not None:
            scheduler.join(timeout=settings.graph_timeout_seconds * 2)
        graph.close()
        pool.close()
        pool.wait_close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(webhook_router)


def run() -> None:
    import uvicorn

    uvicorn.run("steward.main:app", host=settings.http_host, port=settings.http_port)
