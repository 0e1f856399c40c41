from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import Depends, FastAPI

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not database_url and not cloud_database_url and not local_database_url:
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    alias_path = os.getenv("METRIC_ALIAS_CONFIG_PATH", "").strip()
    if alias_path and not os.path.isfile(alias_path):
        errors.append(f"METRIC_ALIAS_CONFIG_PATH={alias_path!r} does not point to a file.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def _probe_store() -> str:
    """
    Resolve the metric table shape once. Raises RuntimeError if neither the
    versioned nor the legacy table is reachable.
    """

    from app.services.runtime import get_metric_store_client
    from db.repositories.errors import MetricStoreError

    try:
        return await get_metric_store_client().probe()
    except MetricStoreError as exc:
        logger.critical(
            "Metric store probe failed: %s. Check connectivity and run 'alembic upgrade head'.",
            exc,
        )
        raise RuntimeError("Metric store unavailable.") from exc


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate configuration and the metric store on boot; release resources on exit."""
    from app.services.runtime import get_change_notifier, get_key_normalizer
    from db.session import dispose_engine

    _validate_env()
    get_key_normalizer()
    shape = await _probe_store()
    logger.info("Metric store ready shape=%s", shape)
    try:
        yield
    finally:
        get_change_notifier().close()
        await dispose_engine()
        logger.info("Metric store connections released")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _configure_logging()

    application = FastAPI(
        title="Donor Dashboard Metrics API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import (
        dashboard_router,
        history_router,
        metrics_router,
        sections_router,
    )

    application.include_router(metrics_router)
    application.include_router(dashboard_router)
    application.include_router(sections_router)
    application.include_router(history_router)

    from app.repositories.metric_store import MetricStoreClient
    from app.services.runtime import get_metric_store_client

    @application.get("/health")
    def healthcheck(
        store: MetricStoreClient = Depends(get_metric_store_client),
    ) -> dict[str, str | None]:
        return {
            "status": "ok",
            "metric_shape": store.active_shape,
        }

    return application


app = create_app()
