import logging
from typing import List

from media_archive.exceptions import StoreIOFailure
from media_archive.models.record import ArchiveRecord
from media_archive.repositories.blob_store import BlobStore
from media_archive.repositories.pg_repositoryArchive import ArchiveRepository

logger = logging.getLogger(__name__)

MIN_CAPACITY = 5
MAX_CAPACITY = 100


def eviction_count(current: int, max_capacity: int) -> int:
    """Сколько записей удалить, чтобы осталось ровно одно свободное место."""
    return max(0, current - max_capacity + 1)


class CapacityGovernor:
    """
    Держит число записей канала в пределах ``max_capacity``.

    Вытеснение строго FIFO по ``created_at``: повторная отправка старой записи
    её не "освежает". Ошибки при удалении отдельной записи логируются и
    пропускаются, новая запись всё равно сохраняется.
    """

    def __init__(self, max_capacity: int, repository: ArchiveRepository, blobs: BlobStore):
        if not MIN_CAPACITY <= max_capacity <= MAX_CAPACITY:
            raise ValueError(f"max_capacity must be within {MIN_CAPACITY}..{MAX_CAPACITY}, got {max_capacity}")
        self.max_capacity = max_capacity
        self._repo = repository
        self._blobs = blobs

    async def make_room(self, channel_id: str) -> List[ArchiveRecord]:
        try:
            current = await self._repo.count(channel_id)
            to_evict = eviction_count(current, self.max_capacity)
            if not to_evict:
                return []
            logger.debug(f"Capacity check for {channel_id}: current={current} max={self.max_capacity} evict={to_evict}")
            victims = await self._repo.list_oldest(channel_id, to_evict)
        except StoreIOFailure as e:
            logger.warning(f"Capacity check for {channel_id} failed, skipping eviction: {e}")
            return []

        evicted: List[ArchiveRecord] = []
        for record in victims:
            try:
                await self._blobs.delete(record.blob_path)
                await self._repo.delete(record.id)
                evicted.append(record)
                logger.debug(f"Evicted record {record.id} ({record.stored_file_name})")
            except StoreIOFailure as e:
                logger.warning(f"Failed to evict record {record.id} from {channel_id}: {e}")

        logger.debug(f"Eviction finished for {channel_id}: {len(evicted)} removed")
        return evicted
