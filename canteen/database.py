"""
Database Connection Module
Builds the SQLAlchemy async engine used by the SQL mirror table.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from canteen.core.config import get_settings


# Base class for all mirror tables
class Base(DeclarativeBase):
    pass


def create_mirror_engine(database_url: str = None) -> AsyncEngine:
    """
    Create the async engine for the mirror database.

    Pool sizing only applies to server databases; SQLite URLs keep the
    dialect's default pool.
    """
    settings = get_settings()
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug)

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
        pool_pre_ping=True,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all mirror tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
