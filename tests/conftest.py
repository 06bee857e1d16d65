"""
Pytest configuration and fixtures for credential service testing.
Provides an in-memory database, wired services and an HTTP client.
"""
import os

# Settings are read on import; the test environment must be in place first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-q8Zr4Lm2Xv7Nw3Kp9Tb6Hs1Jd5Gf0")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-Wm3Yt8Rq2Pz6Vn0Lc4Xb9Ks7Hd1F")
os.environ.setdefault("ACCOUNT_VERIFY_TOKEN_SECRET", "test-verify-secret-Ja5Ue2Io8Qw3Zx7Cv1Bn6Mr4Tg9Ly")
os.environ.setdefault("RECOVER_PASSWORD_TOKEN_SECRET", "test-recover-secret-Pk7Dh2Sg9Fa4Lm1Ze6Xr3Cw8Vq0N")
os.environ.setdefault("RESET_PASSWORD_TOKEN_SECRET", "test-reset-secret-Tn4Bv9Cx2Zl7Kj3Hg8Fd1Sa6Qw0Ep")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("BACKEND_URL", "http://test")

import time
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from credential_service.core.config import settings
from credential_service.core.database import get_db
from credential_service.container import get_container, reset_container
from credential_service.events.event_bus import InMemoryEventBus
from credential_service.events.mail_handlers import MailEventHandler
from credential_service.models import Base
from credential_service.repositories import RefreshTokenRepository, UserRepository
from credential_service.services.auth import (
    AuthenticationService,
    RefreshTokenService,
    TokenService,
)
from tests.factories import create_user

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """
    Database file shared by several connections, for tests that run
    transactions concurrently. SQLite serializes the writers.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        echo=False,
        connect_args={"timeout": 30}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return async_sessionmaker(
        bind=file_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mail_service():
    """Mail collaborator double; every send reports success."""
    mail = AsyncMock()
    mail.send_account_verify.return_value = True
    mail.send_password_reset.return_value = True
    mail.send_password_recover.return_value = True
    mail.send_reuse_alert.return_value = True
    return mail


@pytest_asyncio.fixture
async def event_bus(mail_service):
    bus = InMemoryEventBus()
    await MailEventHandler(mail_service).register(bus)
    return bus


@pytest.fixture
def token_service():
    return TokenService(settings)


@pytest.fixture
def user_repository():
    return UserRepository()


@pytest.fixture
def refresh_token_repository():
    return RefreshTokenRepository()


@pytest.fixture
def build_auth_service(user_repository, refresh_token_repository, event_bus) -> Callable[..., AuthenticationService]:
    """Build an orchestrator; a custom token service shifts its clock."""
    def _build(token_service: TokenService = None) -> AuthenticationService:
        token_service = token_service or TokenService(settings)
        return AuthenticationService(
            user_repository=user_repository,
            token_service=token_service,
            refresh_token_service=RefreshTokenService(token_service, refresh_token_repository),
            event_bus=event_bus
        )
    return _build


@pytest.fixture
def auth_service(build_auth_service) -> AuthenticationService:
    return build_auth_service()


@pytest.fixture
def past_token_service():
    """Token service whose clock is thirty days behind; everything it mints is expired."""
    return TokenService(settings, clock=lambda: time.time() - 30 * 24 * 3600)


@pytest.fixture
def encrypting_token_service():
    """Token service with transport encryption switched on."""
    encrypted_settings = settings.model_copy(update={
        "ENABLE_SESSION_ACCESS_JWT_ENCRYPTION": True,
        "SESSION_ACCESS_JWT_ENCRYPTION_KEY": "transport-key-for-tests",
    })
    return TokenService(encrypted_settings)


@pytest_asyncio.fixture
async def verified_user(db_session):
    return await create_user(db_session, is_account_verified=True)


@pytest_asyncio.fixture
async def unverified_user(db_session):
    return await create_user(db_session, is_account_verified=False)


@pytest_asyncio.fixture
async def strict_user(db_session):
    return await create_user(db_session, is_account_verified=True, strict_mode=True)


@pytest_asyncio.fixture
async def app_client(session_factory, mail_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the application with the test database and mail double."""
    from credential_service.main import app

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    reset_container()
    await get_container().initialize(mail_service=mail_service)
    app.dependency_overrides[get_db] = _override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    reset_container()
