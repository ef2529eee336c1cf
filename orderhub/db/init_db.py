import asyncio
import logging
from orderhub.core.database import engine, async_session_maker
from orderhub.models import *  # noqa: F401,F403 - register all models on the metadata
from orderhub.models.shared.enums import Base
from orderhub.db.seeds.status_catalog import seed_order_statuses

logger = logging.getLogger(__name__)

async def create_tables():
    """Create all database tables"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database tables created successfully")

    except Exception as e:
        logger.error(f"Error creating tables: {str(e)}")
        raise

async def init_db():
    """Initialize the database: tables plus reference data"""
    await create_tables()
    async with async_session_maker() as session:
        await seed_order_statuses(session)
    logger.info("Database initialization completed")

if __name__ == "__main__":
    asyncio.run(init_db())
