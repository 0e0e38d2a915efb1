"""Health check and metrics endpoints"""

from fastapi import APIRouter, Depends, Response, status
from datetime import datetime
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from clubportal.api.dependencies import get_redis_service, get_storage
from clubportal.database import get_session_factory
from clubportal.services.redis_service import RedisService
from clubportal.services.s3_service import S3Service, S3ServiceError

router = APIRouter(tags=["Health"])

API_VERSION = "1.0.0"


@router.get("/health", status_code=status.HTTP_200_OK)
async def basic_health_check():
    """
    Basic health check endpoint (no authentication required)

    Returns simple health status and timestamp
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }


@router.get("/api/v1/health", status_code=status.HTTP_200_OK)
async def detailed_health_check(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis_service: RedisService = Depends(get_redis_service),
    storage: S3Service = Depends(get_storage),
):
    """
    Detailed health check with service dependency status (no authentication required)

    Checks connectivity to the database, Redis and the S3 bucket.
    """
    services = {}
    overall_status = "healthy"

    try:
        async with session_factory() as session:
            (await session.execute(text("SELECT 1"))).scalar_one()
        services["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        services["database"] = f"disconnected: {str(e)}"
        overall_status = "degraded"

    try:
        await redis_service.ping()
        services["redis"] = "connected"
    except (RedisError, OSError) as e:
        services["redis"] = f"disconnected: {str(e)}"
        overall_status = "degraded"

    try:
        storage.check_bucket()
        services["s3"] = "connected"
    except S3ServiceError as e:
        services["s3"] = f"disconnected: {str(e)}"
        overall_status = "degraded"

    return {
        "status": overall_status,
        "version": API_VERSION,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "services": services
    }


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus scrape endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
