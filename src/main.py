"""FastAPI application entry point for Fraud Pulse."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import global_exception_handler, pipeline_exception_handler
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.routes.health import router as health_router
from src.api.routes.live import router as live_router
from src.api.routes.transactions import router as transactions_router
from src.config import Settings, settings
from src.db.database import init_db
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.errors import PipelineError
from src.runtime import Runtime, build_runtime
from src.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


async def startup_maintenance(runtime: Runtime) -> None:
    """Trim the store to the retention cap and log where it stands."""
    evicted = await runtime.store.evict_oldest(runtime.config.retention.retention_cap)
    snapshot = await runtime.stats.compute()
    logger.info(
        "startup_store_state",
        evicted=evicted,
        total_transactions=snapshot.total_transactions,
        flagged_transactions=snapshot.flagged_transactions,
        high_risk_percentage=snapshot.high_risk_percentage,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()

    runtime: Runtime | None = getattr(app.state, "runtime", None)
    if runtime is None:
        setup_logging(settings.log_level, settings.json_logs)
        runtime = build_runtime(settings, FraudConfig.from_env())
        app.state.runtime = runtime

    logger.info(
        "fraud_pulse_starting",
        app_name=runtime.settings.app_name,
        version=runtime.settings.app_version,
        debug=runtime.settings.debug,
        scorer_mode=runtime.scorer_mode,
    )

    await init_db(runtime.engine)
    try:
        await startup_maintenance(runtime)
    except PipelineError:
        logger.warning("startup_maintenance_failed", exc_info=True)

    yield

    logger.info("fraud_pulse_shutting_down")
    await runtime.aclose()


def create_app(runtime: Runtime | None = None, app_settings: Settings | None = None) -> FastAPI:
    """Build the application. Tests hand in a prebuilt ``runtime``."""
    app_settings = app_settings or (runtime.settings if runtime else settings)

    app = FastAPI(
        title="Fraud Pulse",
        description="Real-time transaction risk scoring and live fraud monitoring",
        version=app_settings.app_version,
        lifespan=lifespan,
    )
    if runtime is not None:
        app.state.runtime = runtime

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if app_settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Structured logging middleware
    app.add_middleware(StructuredLoggingMiddleware)

    # Domain errors map to their own status; anything else is a logged 500
    app.add_exception_handler(PipelineError, pipeline_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(health_router)
    app.include_router(transactions_router)
    app.include_router(live_router)
    return app


app = create_app()


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
