"""API dependencies for authentication, authorization and services"""

from functools import lru_cache
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import async_sessionmaker

from clubportal.config import settings
from clubportal.database import get_session_factory
from clubportal.exceptions import Forbidden, NotAuthenticated
from clubportal.models import User, UserRole
from clubportal.services.auth_service import AuthService
from clubportal.services.change_feed import ChangeFeed, change_feed
from clubportal.services.contribution_service import ContributionWorkflow
from clubportal.services.directory_service import DirectoryService
from clubportal.services.identity_service import GoogleIdentityVerifier, SignInService
from clubportal.services.join_request_service import JoinRequestBroker
from clubportal.services.membership_ledger import MembershipLedger
from clubportal.services.redis_service import RedisService
from clubportal.services.review_service import ReviewService
from clubportal.services.s3_service import S3Service
from clubportal.services.scoring_service import ScoringService
from clubportal.services.transaction import TransactionRunner


# Infrastructure

def get_redis_service() -> RedisService:
    return RedisService()


def get_change_feed() -> ChangeFeed:
    return change_feed


@lru_cache()
def get_storage() -> S3Service:
    """Shared S3 client, created on first use"""
    return S3Service()


@lru_cache()
def get_identity_verifier() -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier()


def get_transaction_runner(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> TransactionRunner:
    return TransactionRunner(
        session_factory,
        max_attempts=settings.transaction_max_attempts,
        base_delay=settings.transaction_base_delay,
    )


# Services

def get_membership_ledger(
    runner: TransactionRunner = Depends(get_transaction_runner),
    feed: ChangeFeed = Depends(get_change_feed),
) -> MembershipLedger:
    return MembershipLedger(runner, feed)


def get_contribution_workflow(
    runner: TransactionRunner = Depends(get_transaction_runner),
    storage: S3Service = Depends(get_storage),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ContributionWorkflow:
    return ContributionWorkflow(runner, storage, feed=feed)


def get_scoring_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ScoringService:
    return ScoringService(session_factory)


def get_join_request_broker(
    runner: TransactionRunner = Depends(get_transaction_runner),
    feed: ChangeFeed = Depends(get_change_feed),
) -> JoinRequestBroker:
    return JoinRequestBroker(runner, feed)


def get_review_service(
    runner: TransactionRunner = Depends(get_transaction_runner),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ReviewService:
    return ReviewService(runner, feed)


def get_directory_service(
    runner: TransactionRunner = Depends(get_transaction_runner),
    feed: ChangeFeed = Depends(get_change_feed),
) -> DirectoryService:
    return DirectoryService(runner, feed)


def get_sign_in_service(
    runner: TransactionRunner = Depends(get_transaction_runner),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SignInService:
    return SignInService(runner, feed)


# Authentication

def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Raises:
        NotAuthenticated: Header missing or not ``Bearer <token>``
    """
    if not authorization:
        raise NotAuthenticated("Authorization header missing")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise NotAuthenticated("Invalid authorization header format")

    return parts[1]


async def authenticate_token(
    token: str,
    session_factory: async_sessionmaker,
    redis_service: RedisService,
) -> User:
    """
    Resolve an access token to its user.

    Raises:
        NotAuthenticated: Token revoked, invalid, expired or user unknown
    """
    if await redis_service.is_token_blacklisted(token):
        raise NotAuthenticated("Token has been revoked")

    payload = AuthService.validate_token(token, token_type="access")
    if not payload:
        raise NotAuthenticated("Invalid or expired token")

    async with session_factory() as session:
        user = await session.get(User, payload["sub"])

    if not user:
        raise NotAuthenticated("User not found")

    return user


async def get_current_user(
    authorization: Optional[str] = Header(None),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis_service: RedisService = Depends(get_redis_service),
) -> User:
    """
    Get current authenticated user from JWT token.

    The user row is re-read on every request so role changes apply
    immediately.
    """
    token = extract_bearer_token(authorization)
    return await authenticate_token(token, session_factory, redis_service)


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise Forbidden("Admin role required")
    return current_user


async def require_superadmin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.SUPERADMIN.value:
        raise Forbidden("Superadmin role required")
    return current_user
