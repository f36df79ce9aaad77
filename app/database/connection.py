import asyncio
from typing import Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from app.core.config import settings
from app.core.exceptions import ServiceUnavailableException
from .unified_models import Base

logger = logging.getLogger(__name__)


async def _test_connection(engine):
    """Helper function to test database connection with resilience"""
    max_retries = 3
    retry_delays = [1, 2, 4]

    for attempt in range(max_retries):
        try:
            async with engine.begin() as conn:
                result = await conn.execute(text("SELECT 1"))
                logger.info(f"Connection test successful on attempt {attempt + 1}")
                return result.scalar()
        except Exception as e:
            logger.warning(f"Connection test attempt {attempt + 1} failed: {e}")

            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delays[attempt])
            else:
                logger.error("All connection test attempts failed")
                raise Exception(f"Connection test failed after {max_retries} attempts: {e}")


def _to_async_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)


# Database instances
async_engine = None
SessionLocal = None


async def init_database(database_url: Optional[str] = None, test_connection: bool = True):
    """Initialize the async engine and session factory"""
    global async_engine, SessionLocal

    if async_engine is not None and SessionLocal is not None:
        logger.info("Database already initialized - reusing existing connection pool")
        return

    url = database_url or settings.DATABASE_URL
    if not url or "[YOUR-PASSWORD]" in url:
        logger.warning("WARNING: Database URL not configured. Skipping database initialization.")
        return

    logger.info("Initializing database connections...")

    if url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        async_engine = create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False
        )
    else:
        async_engine = create_async_engine(
            _to_async_url(url),
            pool_pre_ping=True,          # Enable pre-ping for connection health
            pool_recycle=1800,           # 30 minutes recycle time
            pool_size=5,
            max_overflow=3,
            pool_timeout=30,
            echo=False,
            connect_args={
                "command_timeout": 60,
                # Supabase pooler (pgbouncer) does not support prepared statements
                "statement_cache_size": 0,
                "server_settings": {
                    "application_name": "modelcast_backend",
                    "statement_timeout": "60s"
                }
            }
        )

    SessionLocal = sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    if test_connection:
        try:
            await asyncio.wait_for(_test_connection(async_engine), timeout=30.0)
            logger.info("SUCCESS: Database connection test passed")
        except asyncio.TimeoutError:
            logger.warning("WARNING: Connection test timed out after 30s - continuing with pool")
        except Exception as test_error:
            logger.warning(f"WARNING: Connection test failed: {test_error} - continuing with pool")


async def close_database():
    """Close database connections and reset global state"""
    global async_engine, SessionLocal

    if async_engine:
        await async_engine.dispose()
        logger.info("Database connection pool closed")

    async_engine = None
    SessionLocal = None


async def create_tables():
    """Create all database tables"""
    if not async_engine:
        logger.warning("WARNING: Database not initialized. Skipping table creation.")
        return

    try:
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SUCCESS: Database tables created successfully")
    except Exception as e:
        logger.error(f"ERROR: Failed to create tables: {str(e)}")
        raise


def get_session() -> AsyncSession:
    """Get database session context manager"""
    if not SessionLocal:
        logger.error("DATABASE: Database not initialized")
        raise ServiceUnavailableException("DATABASE_UNAVAILABLE", "Database is not configured")
    return SessionLocal()


async def check_database_health() -> bool:
    if not async_engine:
        return False
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"DATABASE: Health check failed: {e}")
        return False

