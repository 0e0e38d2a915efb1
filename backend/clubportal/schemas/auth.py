"""Authentication and authorization schemas"""

from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from uuid import UUID

from clubportal.models.user import UserRole


class GoogleSignInRequest(BaseModel):
    """Google sign-in request schema"""
    id_token: str = Field(..., min_length=1, description="Google ID token from the sign-in popup")


class LoginRequest(BaseModel):
    """Admin password login request schema"""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, description="User password (minimum 8 characters)")


class UserInfo(BaseModel):
    """User information in token response"""
    id: str = Field(..., description="Identity provider uid")
    email: str = Field(..., description="User email")
    name: str = Field(..., description="Display name")
    role: str = Field(..., description="User role")
    departments: List[str] = Field(default_factory=list, description="Held department ids")
    total_points: int = Field(default=0, description="Points awarded so far")
    project_id: Optional[UUID] = Field(None, description="Current project team")

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Token response schema"""
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration in seconds")
    user: UserInfo = Field(..., description="User information")


class RefreshTokenResponse(BaseModel):
    """Refresh token response schema"""
    access_token: str = Field(..., description="New JWT access token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration in seconds")


class RoleUpdate(BaseModel):
    """Role change schema (superadmin only)"""
    role: str = Field(..., description="New role")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        """Validate role is valid"""
        valid_roles = [role.value for role in UserRole]
        if v not in valid_roles:
            raise ValueError(f"Role must be one of: {', '.join(valid_roles)}")
        return v


class UserResponse(UserInfo):
    """User response schema"""
    created_at: datetime
    updated_at: datetime
