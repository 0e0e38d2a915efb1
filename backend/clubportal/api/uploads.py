"""Generic file upload endpoint"""

import logging
import time
from typing import Any, Dict
from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from clubportal.api.dependencies import get_current_user, get_storage
from clubportal.config import settings
from clubportal.exceptions import InvalidUpload, UploadTooLarge
from clubportal.models import User
from clubportal.schemas.upload import UploadRequest, UploadResponse
from clubportal.services.image_service import decode_data_url, safe_filename
from clubportal.services.s3_service import S3Service, S3ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/uploads", tags=["Uploads"])


def upload_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("", response_model=UploadResponse, status_code=status.HTTP_200_OK)
async def upload_file(
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    storage: S3Service = Depends(get_storage),
):
    """
    Store a base64 data URL

    Body: ``{"filename": ..., "dataUrl": "data:<mime>;base64,..."}``.
    Responds ``{"url": ...}`` on success and ``{"error": ...}`` otherwise;
    decoded payloads over 10 MB are refused with 413.
    """
    try:
        upload = UploadRequest.model_validate(payload)
    except ValidationError:
        return upload_error(status.HTTP_400_BAD_REQUEST, "Missing filename or dataUrl")

    try:
        decoded = decode_data_url(upload.data_url, max_bytes=settings.upload_max_bytes)
    except UploadTooLarge:
        return upload_error(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, f"File {upload.filename} is too large"
        )
    except InvalidUpload as e:
        return upload_error(status.HTTP_400_BAD_REQUEST, e.detail)

    s3_key = f"uploads/{current_user.id}/{int(time.time() * 1000)}_{safe_filename(upload.filename)}"
    try:
        url = storage.upload_bytes(decoded.data, s3_key, content_type=decoded.mime_type)
    except S3ServiceError as e:
        logger.error(f"Upload of {upload.filename} for {current_user.id} failed: {e}")
        return upload_error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return UploadResponse(url=url)
