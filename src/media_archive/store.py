import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

from media_archive.capacity import CapacityGovernor
from media_archive.db.archive_orm import utcnow
from media_archive.exceptions import DuplicateRecordError, IndexOutOfRange, StoreIOFailure
from media_archive.fingerprint import Fingerprint
from media_archive.models.record import ArchivePage, ArchiveRecord, ArchiveRecordCreate, IngestResult
from media_archive.repositories.blob_store import BlobStore, build_blob_key, stored_file_name
from media_archive.repositories.pg_repositoryArchive import ArchiveRepository

logger = logging.getLogger(__name__)


class ArchiveStore:
    """
    Архив канала: реестр записей + blob-ы + ограничение ёмкости.

    Проверка существования -> вытеснение -> запись blob -> вставка строки
    выполняются под замком канала. Разные каналы друг друга не блокируют.
    Чтение (list / get / read) замка не берёт.
    """

    def __init__(self, repository: ArchiveRepository, blobs: BlobStore, governor: CapacityGovernor):
        self._repo = repository
        self._blobs = blobs
        self._governor = governor
        self._channel_locks: Dict[str, asyncio.Lock] = {}

    @property
    def blobs(self) -> BlobStore:
        return self._blobs

    def _lock_for(self, channel_id: str) -> asyncio.Lock:
        # Без await между проверкой и вставкой, поэтому гонки внутри одного loop нет
        lock = self._channel_locks.get(channel_id)
        if lock is None:
            lock = self._channel_locks[channel_id] = asyncio.Lock()
        return lock

    async def exists(self, channel_id: str, content_hash: str) -> Optional[ArchiveRecord]:
        return await self._repo.get_by_hash(channel_id, content_hash)

    async def ingest(
        self,
        channel_id: str,
        content: bytes,
        fp: Fingerprint,
        uploader_id: str = "",
        source_message_id: str = "",
    ) -> IngestResult:
        async with self._lock_for(channel_id):
            existing = await self.exists(channel_id, fp.content_hash)
            if existing:
                logger.debug(f"Duplicate content {fp.short_hash} in {channel_id}, record {existing.id}")
                return IngestResult(record=existing, duplicate=True)

            await self._governor.make_room(channel_id)

            file_name = stored_file_name(fp.content_hash, fp.extension)
            key = build_blob_key(channel_id, file_name)
            # Blob пишется раньше строки: сбой между ними оставит сироту, а не висячую запись
            await self._blobs.put(key, content, content_type=fp.mime_type)
            logger.debug(f"Blob stored at {key}")

            data = ArchiveRecordCreate(
                channel_id=channel_id,
                content_hash=fp.content_hash,
                extension=fp.extension,
                mime_type=fp.mime_type,
                byte_size=fp.byte_size,
                is_animated=fp.is_animated,
                stored_file_name=file_name,
                blob_path=key,
                uploader_id=uploader_id or "",
                source_message_id=source_message_id or "",
                created_at=utcnow(),
            )
            try:
                record = await self._repo.create(data)
            except DuplicateRecordError:
                # Параллельная вставка из другого процесса опередила нас
                winner = await self.exists(channel_id, fp.content_hash)
                if winner is None:
                    raise
                if winner.blob_path != key:
                    await self._discard_blob(key)
                logger.info(f"Late duplicate for {fp.short_hash} in {channel_id}, record {winner.id}")
                return IngestResult(record=winner, duplicate=True)
            except StoreIOFailure:
                await self._discard_blob(key)
                raise

        logger.info(f"Archived {file_name} in {channel_id} as record {record.id}")
        return IngestResult(record=record)

    async def _discard_blob(self, key: str) -> None:
        try:
            await self._blobs.delete(key)
        except StoreIOFailure as e:
            logger.warning(f"Failed to remove orphan blob {key}: {e}")

    async def count(self, channel_id: str) -> int:
        return await self._repo.count(channel_id)

    async def list(self, channel_id: str, page: int = 1, page_size: int = 8) -> ArchivePage:
        if page < 1:
            raise ValueError(f"Page must be >= 1, got {page}")
        offset = (page - 1) * page_size
        records = await self._repo.list_newest(channel_id, limit=page_size, offset=offset)
        total = await self._repo.count(channel_id)
        return ArchivePage(records=records, total=total, page=page, page_size=page_size)

    async def get_by_index(self, channel_id: str, index: int) -> ArchiveRecord:
        """Запись по номеру (с 1) в порядке "новые первыми"."""
        total = await self._repo.count(channel_id)
        if index < 1 or index > total:
            raise IndexOutOfRange(index, total)
        record = await self._repo.get_at(channel_id, index - 1)
        if record is None:
            # Запись исчезла между подсчётом и выборкой
            raise IndexOutOfRange(index, await self._repo.count(channel_id))
        return record

    async def read(self, record: ArchiveRecord) -> bytes:
        return await self._blobs.get(record.blob_path)

    def local_path(self, record: ArchiveRecord) -> Optional[Path]:
        return self._blobs.local_path(record.blob_path)

    async def delete_by_index(self, channel_id: str, index: int) -> ArchiveRecord:
        async with self._lock_for(channel_id):
            record = await self.get_by_index(channel_id, index)
            await self._blobs.delete(record.blob_path)
            await self._repo.delete(record.id)
        logger.info(f"Deleted record {record.id} ({record.stored_file_name}) from {channel_id}")
        return record

    async def clear_channel(self, channel_id: str) -> int:
        async with self._lock_for(channel_id):
            records: List[ArchiveRecord] = await self._repo.list_newest(channel_id)
            for record in records:
                await self._blobs.delete(record.blob_path)
            removed = await self._repo.delete_channel(channel_id)
        logger.info(f"Cleared channel {channel_id}: {removed} record(s) removed")
        return removed
