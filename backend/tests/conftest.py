"""Pytest configuration and shared fixtures"""

import os

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./clubportal_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client.apps.googleusercontent.com")

import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from clubportal.api.dependencies import (
    get_change_feed,
    get_identity_verifier,
    get_redis_service,
    get_storage,
)
from clubportal.database import Base, get_session_factory
from clubportal.exceptions import NotAuthenticated
from clubportal.main import app
from clubportal.models import Department, Project, User
from clubportal.services.auth_service import AuthService
from clubportal.services.change_feed import ChangeFeed
from clubportal.services.identity_service import Identity
from clubportal.services.s3_service import S3ConnectionError, StorageDeleteFailed
from clubportal.services.transaction import TransactionRunner

BUCKET_URL = "https://clubportal-uploads.s3.us-east-1.amazonaws.com"
SIGNUP_START = datetime(2024, 1, 1, 9, 0, 0)


class FakeStorage:
    """In-memory object store with the S3Service interface"""

    def __init__(self):
        self.objects: Dict[str, tuple] = {}
        self.deleted: List[str] = []
        self.fail_uploads = False
        self.fail_deletes = False

    def build_url(self, s3_key: str) -> str:
        return f"{BUCKET_URL}/{s3_key}"

    def key_from_url(self, url: str) -> Optional[str]:
        prefix = f"{BUCKET_URL}/"
        return url[len(prefix):] if url and url.startswith(prefix) else None

    def upload_bytes(self, file_bytes: bytes, s3_key: str, content_type: str = "application/octet-stream") -> str:
        if self.fail_uploads:
            raise S3ConnectionError("Failed to upload bytes: ServiceUnavailable")
        self.objects[s3_key] = (file_bytes, content_type)
        return self.build_url(s3_key)

    def delete_object(self, s3_key: str) -> None:
        if self.fail_deletes:
            raise StorageDeleteFailed(f"Failed to delete object {s3_key}")
        self.objects.pop(s3_key, None)
        self.deleted.append(s3_key)

    def check_bucket(self) -> bool:
        return True


class FakeRedisService:
    """Dictionary-backed RedisService"""

    def __init__(self):
        self.blacklist: Dict[str, int] = {}
        self.attempts: Dict[str, int] = {}

    async def ping(self) -> bool:
        return True

    async def blacklist_token(self, token: str, expiration_seconds: int):
        self.blacklist[token] = expiration_seconds

    async def is_token_blacklisted(self, token: str) -> bool:
        return token in self.blacklist

    async def increment_login_attempts(self, ip_address: str) -> int:
        self.attempts[ip_address] = self.attempts.get(ip_address, 0) + 1
        return self.attempts[ip_address]

    async def reset_login_attempts(self, ip_address: str):
        self.attempts.pop(ip_address, None)

    async def get_login_attempts(self, ip_address: str) -> int:
        return self.attempts.get(ip_address, 0)


class FakeIdentityVerifier:
    """Accepts the tokens registered in ``identities``"""

    def __init__(self):
        self.identities: Dict[str, Identity] = {}

    def verify(self, token: str) -> Identity:
        if token not in self.identities:
            raise NotAuthenticated("Invalid Google ID token")
        return self.identities[token]


def make_user(
    user_id: str,
    role: str = "member",
    total_points: int = 0,
    departments: Optional[List[str]] = None,
    signed_up_minutes: int = 0,
    **fields,
) -> User:
    """Unsaved user with a deterministic sign-up time"""
    return User(
        id=user_id,
        email=fields.pop("email", f"{user_id}@vitstudent.ac.in"),
        name=fields.pop("name", user_id.replace("-", " ").title()),
        role=role,
        departments=departments or [],
        total_points=total_points,
        created_at=SIGNUP_START + timedelta(minutes=signed_up_minutes),
        **fields,
    )


def bearer(user: User) -> Dict[str, str]:
    """Authorization header for ``user``"""
    token = AuthService.create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite engine; each connection is a separate writer"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'clubportal.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and inspecting rows"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def runner(session_factory) -> TransactionRunner:
    return TransactionRunner(session_factory, max_attempts=5, base_delay=0.001)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def redis_service() -> FakeRedisService:
    return FakeRedisService()


@pytest.fixture
def identity_verifier() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


async def save(session_factory, *rows):
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()
    return rows


async def reload(session_factory, model, key):
    """Fresh copy of a row from the database"""
    async with session_factory() as session:
        return await session.get(model, key)


@pytest_asyncio.fixture
async def departments(session_factory) -> Dict[str, Department]:
    """technical and design hold 2 seats, media is unlimited, outreach holds 1"""
    rows = [
        Department(id="technical", name="Technical", capacity=2, filled_count=0),
        Department(id="design", name="Design", capacity=2, filled_count=0),
        Department(id="media", name="Media", capacity=0, filled_count=0),
        Department(id="outreach", name="Outreach", capacity=1, filled_count=0),
    ]
    await save(session_factory, *rows)
    return {row.id: row for row in rows}


@pytest_asyncio.fixture
async def member(session_factory) -> User:
    user = make_user("member-1", total_points=10, name="Asha Rao")
    await save(session_factory, user)
    return user


@pytest_asyncio.fixture
async def other_member(session_factory) -> User:
    user = make_user("member-2", signed_up_minutes=5, name="Vikram Nair")
    await save(session_factory, user)
    return user


@pytest_asyncio.fixture
async def admin(session_factory) -> User:
    user = make_user(
        "admin-1",
        role="admin",
        signed_up_minutes=-60,
        email="admin@vitstudent.ac.in",
        password_hash=AuthService.hash_password("AdminPassword123!"),
    )
    await save(session_factory, user)
    return user


@pytest_asyncio.fixture
async def superadmin(session_factory) -> User:
    user = make_user("root-1", role="superadmin", signed_up_minutes=-120)
    await save(session_factory, user)
    return user


@pytest_asyncio.fixture
async def open_project(session_factory) -> Project:
    """Project with no department scope"""
    project = Project(id=uuid.uuid4(), name="Robotics", description="Line follower", members=[])
    await save(session_factory, project)
    return project


@pytest_asyncio.fixture
async def async_client(session_factory, storage, redis_service, identity_verifier, feed):
    """Async test client wired to the test database and fakes"""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_redis_service] = lambda: redis_service
    app.dependency_overrides[get_identity_verifier] = lambda: identity_verifier
    app.dependency_overrides[get_change_feed] = lambda: feed

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
