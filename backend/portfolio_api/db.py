import asyncio
import logging
from datetime import datetime, timezone

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(database_url, echo=echo, future=True, pool_pre_ping=True)


def make_sessionmaker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Wait for DB
async def wait_for_db(engine: AsyncEngine, retries: int = 10, delay: float = 2) -> None:
    for i in range(retries):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(lambda sync_conn: None)
            logger.info("✅ Database ready")
            return
        except OperationalError:
            logger.warning("⏳ Database not ready, retrying %d/%d...", i + 1, retries)
            await asyncio.sleep(delay)
    raise RuntimeError("❌ Could not connect to the database")


# Create tables
async def create_db_and_tables(engine: AsyncEngine) -> None:
    from . import admin_model, models  # noqa: F401  registers the tables on SQLModel.metadata

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("✅ Tables created")
