"""System initialization and setup utilities"""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine

from atscfg.core.config import settings
from atscfg.core.database import engine, Base
import atscfg.models  # Register all models

logger = logging.getLogger(__name__)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from settings"""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=settings.LOG_FORMAT,
    )


async def create_tables(bind: Optional[AsyncEngine] = None):
    """Create all database tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


async def init_system():
    """Initialize system on startup"""
    setup_logging()
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV})")
