"""
Health and metrics endpoints. Neither requires authentication.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api.dependencies import DB, AppSettings
from models.schemas.health import DatabaseHealth, HealthResponse
from utils.db_utils import check_pool_health
from utils.metrics import db_pool_connections

router = APIRouter()


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    responses={
        200: {
            "description": "Service health",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "model": "gpt-4.1",
                        "database": {"healthy": True, "pool_size": 10, "pool_free": 8, "pool_used": 2},
                    }
                }
            },
        }
    },
    tags=["Health"],
)
async def health_check(db: DB, settings: AppSettings) -> HealthResponse:
    stats = await check_pool_health(db)
    db_pool_connections.labels(state="free").set(stats["free_connections"])
    db_pool_connections.labels(state="used").set(stats["used_connections"])

    return HealthResponse(
        status="healthy" if stats["healthy"] else "degraded",
        version=settings.app_version,
        model=settings.chat_model,
        database=DatabaseHealth(
            healthy=stats["healthy"],
            pool_size=stats["pool_size"],
            pool_free=stats["free_connections"],
            pool_used=stats["used_connections"],
        ),
    )


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
