import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from media_archive.db.archive_orm import ArchiveRecordORM
from media_archive.db.base import get_session
from media_archive.exceptions import DatabaseError, DuplicateRecordError
from media_archive.models.record import ArchiveRecord, ArchiveRecordCreate

logger = logging.getLogger(__name__)

# Новые записи первыми; id разрешает совпадения по времени
NEWEST_FIRST = (ArchiveRecordORM.created_at.desc(), ArchiveRecordORM.id.desc())
OLDEST_FIRST = (ArchiveRecordORM.created_at.asc(), ArchiveRecordORM.id.asc())


class ArchiveRepository:
    """
    Реестр записей архива. Только вставка, выборка и удаление:
    операции обновления у записи нет.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Проверяет соединение с базой данных, выполняя простой запрос."""
        logger.debug("Checking database connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
                logger.debug("Database connection successful.")
            except SQLAlchemyError as e:
                logger.error(f"Database connection failed: {e}")
                raise DatabaseError("Failed to connect to the database.") from e

    async def create(self, data: ArchiveRecordCreate) -> ArchiveRecord:
        async with get_session(self._session_factory) as session:
            orm = ArchiveRecordORM(**data.model_dump())
            try:
                session.add(orm)
                await session.commit()
                await session.refresh(orm)
                return orm.to_pydantic()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(
                    f"Record for hash {data.content_hash} already exists in channel {data.channel_id}"
                ) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save archive record: {e}") from e

    async def get_by_hash(self, channel_id: str, content_hash: str) -> Optional[ArchiveRecord]:
        stmt = select(ArchiveRecordORM).where(
            ArchiveRecordORM.channel_id == channel_id,
            ArchiveRecordORM.content_hash == content_hash,
        )
        async with get_session(self._session_factory) as session:
            try:
                orm = (await session.execute(stmt)).scalar_one_or_none()
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to look up hash {content_hash}: {e}") from e
            return orm.to_pydantic() if orm else None

    async def count(self, channel_id: str) -> int:
        stmt = select(func.count()).select_from(ArchiveRecordORM).where(ArchiveRecordORM.channel_id == channel_id)
        async with get_session(self._session_factory) as session:
            try:
                return (await session.execute(stmt)).scalar_one()
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to count records for channel {channel_id}: {e}") from e

    async def list_newest(self, channel_id: str, limit: int | None = None, offset: int = 0) -> List[ArchiveRecord]:
        """Записи канала, новые первыми. Можно пагинировать через limit/offset."""
        q = select(ArchiveRecordORM).where(ArchiveRecordORM.channel_id == channel_id).order_by(*NEWEST_FIRST)
        if offset:
            q = q.offset(offset)
        if limit:
            q = q.limit(limit)
        return await self._fetch_all(q)

    async def list_oldest(self, channel_id: str, limit: int) -> List[ArchiveRecord]:
        q = (
            select(ArchiveRecordORM)
            .where(ArchiveRecordORM.channel_id == channel_id)
            .order_by(*OLDEST_FIRST)
            .limit(limit)
        )
        return await self._fetch_all(q)

    async def get_at(self, channel_id: str, offset: int) -> Optional[ArchiveRecord]:
        """Запись на позиции offset (0 = самая новая)."""
        records = await self.list_newest(channel_id, limit=1, offset=offset)
        return records[0] if records else None

    async def delete(self, record_id: int) -> bool:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(delete(ArchiveRecordORM).where(ArchiveRecordORM.id == record_id))
                await session.commit()
                return res.rowcount > 0
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to delete record {record_id}: {e}") from e

    async def delete_channel(self, channel_id: str) -> int:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(
                    delete(ArchiveRecordORM).where(ArchiveRecordORM.channel_id == channel_id)
                )
                await session.commit()
                return res.rowcount
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to clear channel {channel_id}: {e}") from e

    async def _fetch_all(self, stmt) -> List[ArchiveRecord]:
        async with get_session(self._session_factory) as session:
            try:
                result = await session.execute(stmt)
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to select archive records: {e}") from e
            return [orm.to_pydantic() for orm in result.scalars().all()]
