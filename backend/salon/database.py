import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# READ COMMITTED so plain reads issued after a FOR UPDATE lock see rows
# committed by the transaction that held the lock before us.
engine = create_async_engine(
    settings.database_url,
    echo=settings.echo_sql,
    isolation_level="READ COMMITTED",
    pool_pre_ping=True,
    pool_recycle=3600,
)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def dispose_engine() -> None:
    """Close pooled connections; called once at application shutdown."""
    logger.info("disposing database engine")
    await engine.dispose()
