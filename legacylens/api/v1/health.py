"""
Health check endpoints.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends

from legacylens.api.deps import ServiceContainer, get_container
from legacylens.core.config import settings
from legacylens.core.exceptions import LegacyLensError
from legacylens.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Basic health check endpoint.
    Returns application status.
    """
    return {
        "status": "healthy",
        "app": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/ready")
async def readiness_check(
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    """
    Readiness check endpoint.
    Verifies the job store answers and the stage workers are running.
    """
    try:
        await container.job_repository.exists("readiness-check")
        job_store = True
    except LegacyLensError as e:
        logger.warning("Job store not ready", error=e.message)
        job_store = False

    checks = {
        "app": True,
        "job_store": job_store,
        "stage_queue": container.stage_queue.is_running,
    }

    all_healthy = all(checks.values())

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.
    Simple check that the application is running.
    """
    return {"status": "alive"}
