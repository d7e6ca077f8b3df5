"""Health and readiness endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.db.database import check_db
from src.runtime import Runtime

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict:
    from src.main import get_uptime

    runtime: Runtime = request.app.state.runtime
    return {
        "status": "healthy",
        "version": runtime.settings.app_version,
        "uptime_seconds": get_uptime(),
    }


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    runtime: Runtime = request.app.state.runtime
    db_ok = await check_db(runtime.engine)

    status_code = 200 if db_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if db_ok else "degraded",
            "database": db_ok,
            "scorer_mode": runtime.scorer_mode,
            "generation": runtime.controller.state.value,
            "subscribers": runtime.hub.subscriber_count,
        },
    )
