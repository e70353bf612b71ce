# db.py
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from designspace.errors import Internal
from designspace.settings import settings

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Rewrites plain Postgres URLs to use the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def engine_options(url: str) -> dict:
    """
    Pool settings for the given URL.

    SQLite gets no pool sizing (and a single shared connection when in-memory);
    everything else gets the production pool.
    """
    if url.startswith("sqlite"):
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        return {}
    # `pool_recycle` keeps idle connections from being dropped by the network
    # between requests.
    return {
        "pool_size": 10,
        "max_overflow": 5,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)
if DATABASE_URL.startswith("postgresql+asyncpg://"):
    logger.info("Connecting to PostgreSQL database.")
else:
    logger.info("Using local SQLite database for development.")


# --- SQLAlchemy Engine & Session ---

engine = create_async_engine(DATABASE_URL, echo=False, **engine_options(DATABASE_URL))

# `expire_on_commit=False` keeps loaded documents usable after the request commits.
async_session_maker = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Base class for declarative models. All models in `models.py` inherit from this.
Base = declarative_base()


# --- FastAPI Dependency ---

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session to each request.

    The session is rolled back if the request fails mid-transaction and is
    always closed afterwards.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def commit_or_raise(session: AsyncSession, failure: str) -> None:
    """Commits, or rolls back and surfaces `failure` as a 500."""
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception(failure)
        raise Internal(failure)
