"""RFC 7807 Problem Details error response formatting"""

import logging
from typing import Optional, Dict, Any, List
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from clubportal.exceptions import PortalError
from clubportal.services.s3_service import S3ServiceError

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://clubportal.dev/errors"


class ValidationErrorDetail(BaseModel):
    """Validation error detail for a specific field"""
    field: str
    message: str


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs"""
    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")
    errors: Optional[List[ValidationErrorDetail]] = Field(None, description="Validation errors")


def create_error_response(
    status_code: int,
    title: str,
    detail: str,
    error_type: Optional[str] = None,
    instance: Optional[str] = None,
    errors: Optional[List[Dict[str, str]]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create an RFC 7807 compliant error response

    Args:
        status_code: HTTP status code
        title: Short error title
        detail: Detailed error message
        error_type: Error type slug (defaults to one based on status code)
        instance: Request path or identifier
        errors: List of validation errors with field and message
        headers: Extra response headers

    Returns:
        JSONResponse with problem details
    """
    error_type_map = {
        400: "validation_error",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        409: "conflict",
        413: "upload_too_large",
        422: "validation_error",
        500: "internal_server_error",
        502: "bad_gateway",
        503: "service_unavailable"
    }

    if not error_type:
        error_type = error_type_map.get(status_code, "error")

    problem: Dict[str, Any] = {
        "type": f"{PROBLEM_TYPE_BASE}/{error_type}",
        "title": title,
        "status": status_code,
        "detail": detail
    }

    if instance:
        problem["instance"] = instance

    if errors:
        problem["errors"] = errors

    return JSONResponse(
        status_code=status_code,
        content=problem,
        headers=headers,
    )


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Render a service-layer error as problem details"""
    return create_error_response(
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.detail,
        error_type=exc.error_type,
        instance=request.url.path,
        headers=exc.headers,
    )


async def storage_error_handler(request: Request, exc: S3ServiceError) -> JSONResponse:
    logger.error(f"Storage failure on {request.url.path}: {exc}")
    return create_error_response(
        status_code=status.HTTP_502_BAD_GATEWAY,
        title="Storage Unavailable",
        detail="Object storage request failed",
        error_type="storage_error",
        instance=request.url.path,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI body/query validation failures as problem details"""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        title="Validation Error",
        detail="Request validation failed",
        instance=request.url.path,
        errors=errors,
    )
