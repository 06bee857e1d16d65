"""
Database configuration and connection management for the credential service.
Implements async SQLAlchemy with connection pooling and the per-request
transaction scope every credential flow runs in.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
import structlog

from .config import settings
from .exceptions import CredentialError

logger = structlog.get_logger()


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"echo": settings.DEBUG}
    return {
        "echo": settings.DEBUG,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
        "pool_pre_ping": True,  # Validate connections before use
        "pool_recycle": settings.DATABASE_POOL_RECYCLE,
    }


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async session.
    Handles connection cleanup and error management.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except CredentialError as e:
            if e.keep_changes:
                await session.commit()
            else:
                await session.rollback()
            raise
        except Exception as e:
            await session.rollback()
            logger.debug("Database session closed after error", error=str(e))
            raise


@asynccontextmanager
async def transaction(db: Optional[AsyncSession] = None) -> AsyncIterator[AsyncSession]:
    """
    Run a block of store operations atomically.

    - No session: open a dedicated session and transaction.
    - Session outside a transaction: begin, then commit or roll back here.
    - Session already inside a transaction: join it; the owner commits.

    A CredentialError raised with keep_changes=True commits before it propagates.
    """
    if db is None:
        async with AsyncSessionLocal() as session:
            async with transaction(session) as tx:
                yield tx
        return

    if db.in_transaction():
        yield db
        return

    try:
        yield db
    except CredentialError as e:
        if e.keep_changes:
            await db.commit()
        else:
            await db.rollback()
        raise
    except BaseException:
        await db.rollback()
        raise
    else:
        await db.commit()



class DatabaseHealthCheck:
    """Health check utilities for database connections."""

    @staticmethod
    async def check_connection() -> bool:
        try:
            async with AsyncSessionLocal() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False


async def close_db_connections():
    """Close all database connections on shutdown."""
    await engine.dispose()
    logger.info("Database connections closed")
