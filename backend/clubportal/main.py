"""Main FastAPI application entry point"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
import logging

from clubportal.api.auth import router as auth_router
from clubportal.api.contributions import router as contributions_router
from clubportal.api.departments import router as departments_router
from clubportal.api.errors import (
    portal_error_handler,
    request_validation_handler,
    storage_error_handler,
)
from clubportal.api.health import router as health_router
from clubportal.api.projects import join_requests_router, router as projects_router
from clubportal.api.uploads import router as uploads_router
from clubportal.api.users import router as users_router
from clubportal.api.websocket_routes import router as websocket_router
from clubportal.config import settings
from clubportal.database import async_engine
from clubportal.exceptions import PortalError
from clubportal.services.redis_service import RedisService
from clubportal.services.s3_service import S3ServiceError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Club portal API starting ({settings.environment})")
    yield
    await RedisService.close()
    await async_engine.dispose()


app = FastAPI(
    title="Club Portal API",
    description="Club membership, contributions and leaderboard backend with Google sign-in",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# Error handlers
app.add_exception_handler(PortalError, portal_error_handler)
app.add_exception_handler(S3ServiceError, storage_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

# Include routers
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(departments_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(join_requests_router)
app.include_router(contributions_router)
app.include_router(uploads_router)
app.include_router(websocket_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Club Portal API",
        "version": "1.0.0",
        "status": "running",
    }
