"""
SQL Mirror Store

Production mirror backed by a single SQLAlchemy table keyed by
``(table_name, record_id)``. Each logical mirror table (orders, counters)
is a ``table_name`` partition; the record itself is kept as JSON.

Version: 1.0.0
"""

import logging
from typing import Any, Optional

from sqlalchemy import JSON, Column, DateTime, String, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from canteen.database import Base, create_mirror_engine, init_db
from canteen.models import utcnow
from canteen.services.mirror.base import BaseMirrorStore

logger = logging.getLogger(__name__)


class MirrorRecord(Base):
    """One mirrored record."""
    __tablename__ = "mirror_records"

    table_name = Column(String(100), primary_key=True)
    record_id = Column(String(100), primary_key=True)
    payload = Column(JSON, nullable=False)
    mirrored_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<MirrorRecord {self.table_name}/{self.record_id}>"


class SQLMirrorStore(BaseMirrorStore):
    """Mirror store writing through an async SQLAlchemy session."""

    def __init__(self, database_url: Optional[str] = None):
        self.engine = create_mirror_engine(database_url)
        self.session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._tables_ready = False
        logger.info("SQLMirrorStore initialized")

    @property
    def provider_name(self) -> str:
        return "sql"

    async def _ensure_tables(self) -> None:
        if not self._tables_ready:
            await init_db(self.engine)
            self._tables_ready = True

    async def _put(self, table: str, record_id: str, record: dict[str, Any]) -> None:
        await self._ensure_tables()

        async with self.session_maker() as session:
            await session.merge(
                MirrorRecord(
                    table_name=table,
                    record_id=record_id,
                    payload=record,
                    mirrored_at=utcnow(),
                )
            )
            await session.commit()

    async def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        await self._ensure_tables()

        async with self.session_maker() as session:
            row = await session.get(MirrorRecord, (table, record_id))
            return dict(row.payload) if row is not None else None

    async def health_check(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(select(1))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Mirror database health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
