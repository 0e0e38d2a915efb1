"""Generic upload schemas"""

from pydantic import BaseModel, Field


class UploadRequest(BaseModel):
    """Base64 data URL upload request"""
    filename: str = Field(..., min_length=1, max_length=255, description="Original file name")
    data_url: str = Field(..., alias="dataUrl", description="data:<mime>;base64,<payload>")

    class Config:
        populate_by_name = True


class UploadResponse(BaseModel):
    """Upload success response"""
    url: str = Field(..., description="Public URL of the stored object")


class UploadError(BaseModel):
    """Upload failure response"""
    error: str
