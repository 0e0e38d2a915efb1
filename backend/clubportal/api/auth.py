"""Authentication endpoints"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from clubportal.api.dependencies import (
    extract_bearer_token,
    get_current_user,
    get_identity_verifier,
    get_redis_service,
    get_sign_in_service,
)
from clubportal.database import get_session_factory
from clubportal.exceptions import NotAuthenticated, TooManyAttempts
from clubportal.models.user import User
from clubportal.schemas.auth import (
    GoogleSignInRequest,
    LoginRequest,
    RefreshTokenResponse,
    TokenResponse,
    UserInfo,
)
from clubportal.services.auth_service import AuthService
from clubportal.services.identity_service import GoogleIdentityVerifier, SignInService
from clubportal.services.redis_service import RedisService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

MAX_LOGIN_ATTEMPTS = 5


def issue_tokens(user: User) -> TokenResponse:
    """Access and refresh tokens for a signed-in user"""
    return TokenResponse(
        access_token=AuthService.create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role,
        ),
        refresh_token=AuthService.create_refresh_token(user_id=user.id),
        token_type="Bearer",
        expires_in=AuthService.access_token_lifetime(),
        user=UserInfo.model_validate(user),
    )


@router.post("/google", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def google_sign_in(
    body: GoogleSignInRequest,
    verifier: GoogleIdentityVerifier = Depends(get_identity_verifier),
    sign_in_service: SignInService = Depends(get_sign_in_service),
):
    """
    Sign in with a Google ID token

    Only institutional email accounts are accepted. The portal user is
    created on first sign-in.
    """
    identity = verifier.verify(body.id_token)
    user = await sign_in_service.sign_in(identity)
    return issue_tokens(user)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def login(
    login_data: LoginRequest,
    request: Request,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis_service: RedisService = Depends(get_redis_service),
):
    """
    Authenticate an admin account with email and password

    - **email**: User email address
    - **password**: User password
    """
    client_ip = request.client.host if request.client else "unknown"

    # Max 5 failed attempts per IP per 15 minutes
    attempts = await redis_service.get_login_attempts(client_ip)
    if attempts >= MAX_LOGIN_ATTEMPTS:
        raise TooManyAttempts()

    async with session_factory() as session:
        result = await session.execute(select(User).where(User.email == login_data.email))
        user = result.scalar_one_or_none()

    if not user or not AuthService.verify_password(login_data.password, user.password_hash):
        await redis_service.increment_login_attempts(client_ip)
        # Generic message, don't reveal which field failed
        raise NotAuthenticated("Invalid email or password")

    await redis_service.reset_login_attempts(client_ip)
    logger.info(f"Password login for {user.email}")
    return issue_tokens(user)


@router.post("/refresh", response_model=RefreshTokenResponse, status_code=status.HTTP_200_OK)
async def refresh_token(
    authorization: Optional[str] = Header(None),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Refresh access token using refresh token

    - **Authorization**: Bearer {refresh_token}
    """
    token = extract_bearer_token(authorization)

    payload = AuthService.validate_token(token, token_type="refresh")
    if not payload:
        raise NotAuthenticated("Invalid or expired refresh token")

    async with session_factory() as session:
        user = await session.get(User, payload["sub"])

    if not user:
        raise NotAuthenticated("User not found")

    return RefreshTokenResponse(
        access_token=AuthService.create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role,
        ),
        token_type="Bearer",
        expires_in=AuthService.access_token_lifetime(),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    authorization: Optional[str] = Header(None),
    redis_service: RedisService = Depends(get_redis_service),
):
    """
    Logout by blacklisting the access token until it expires

    Invalid tokens are accepted silently (idempotent operation).
    """
    token = extract_bearer_token(authorization)

    payload = AuthService.decode_token(token)
    if not payload:
        return

    remaining = AuthService.remaining_lifetime(payload)
    if remaining > 0:
        await redis_service.blacklist_token(token, remaining)


@router.get("/me", response_model=UserInfo)
async def me(current_user: User = Depends(get_current_user)):
    """Current user profile"""
    return current_user
