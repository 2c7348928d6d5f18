"""
TLS Enforcement Milter - Main Entry Point

Loads the TLS policy snapshot, then serves the milter that decides, per
outgoing transaction, whether enforced TLS delivery is possible to every
addressed domain.

Operational Notes:
- A missing or unreadable policy map is fatal at startup
- SIGHUP reloads the policy map; a failed reload keeps the old snapshot
- The optional admin API binds to localhost only and requires a bearer token
"""

import logging
import signal
import sys
import threading
from contextlib import asynccontextmanager
from typing import List

import uvicorn
from fastapi import FastAPI

from api import decisions, policy
from config import settings
from policy_engine.decision import DecisionEngine
from policy_engine.rules import PolicyEngine
from policy_engine.stats import get_decision_stats
from policy_store import PolicyStore, PolicyStoreError, get_policy_store

_handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
if settings.log_file:
    _handlers.append(logging.FileHandler(settings.log_file))

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=_handlers,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Admin API for %s v%s", settings.app_name, settings.app_version)
    logger.info("Binding to %s:%d (localhost only)", settings.api_host, settings.api_port)

    yield

    logger.info("Admin API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Enforced TLS milter administration API",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

app.include_router(policy.router, prefix="/api/v1/policy", tags=["Policy"])
app.include_router(decisions.router, prefix="/api/v1/filter", tags=["Filter"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "policy_loaded": get_policy_store().is_loaded,
    }


def build_decision_engine(store: PolicyStore) -> DecisionEngine:
    return DecisionEngine(PolicyEngine(store), settings.filter_options)


def install_reload_handler(store: PolicyStore) -> None:
    """Reload the policy snapshot on SIGHUP."""

    def _reload(signum, frame):
        logger.info("SIGHUP received, reloading policy map")
        try:
            store.reload()
        except PolicyStoreError as e:
            logger.error("Policy reload failed: %s", e)

    signal.signal(signal.SIGHUP, _reload)


def start_api_server() -> threading.Thread:
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
        )
    )
    thread = threading.Thread(target=server.run, name="admin-api", daemon=True)
    thread.start()
    return thread


def run() -> int:
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    store = get_policy_store()
    try:
        store.load()
    except PolicyStoreError as e:
        logger.critical("Cannot start without a policy snapshot: %s", e)
        return 1

    options = settings.filter_options
    logger.info(
        "Filter options: strict=%s unified=%s track_x_tls=%s",
        options.strict, options.unified, options.track_x_tls_header,
    )

    engine = build_decision_engine(store)
    install_reload_handler(store)

    if settings.api_enabled:
        start_api_server()

    from mta import run_milter

    run_milter(
        engine,
        get_decision_stats(),
        settings.milter_name,
        settings.milter_socket,
        settings.milter_timeout,
    )
    return 0


if __name__ == "__main__":
    sys.exit(run())
