import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from media_archive.config import ArchiveConfig
from media_archive.confirmation import AwaitingConfirmation, ConfirmationDecision
from media_archive.delivery import DeliveryDispatcher, DeliveryItem
from media_archive.exceptions import (
    ArchiveDisabled,
    BlobMissingError,
    DatabaseError,
    DeliveryFailed,
    FetchError,
    NoQuotedMessage,
    StoreIOFailure,
    UnrecognizedContent,
)
from media_archive.fingerprint import Fingerprint, fingerprint
from media_archive.gateway import BlobFetcher, ChatSession, ImagePayload
from media_archive.models import (
    ArchivePage,
    ArchiveRecord,
    BatchReport,
    ClearResult,
    ItemOutcome,
    ItemStatus,
    MediaElement,
    QuotedMessage,
    normalize_elements,
)
from media_archive.permissions import PermissionGate
from media_archive.repositories.pg_repositoryArchive import ArchiveRepository
from media_archive.store import ArchiveStore

logger = logging.getLogger(__name__)

ElevatedCheck = Callable[[str], Awaitable[bool]]


def render_listing(page: ArchivePage) -> str:
    lines = [f"Media archive (page {page.page}/{page.total_pages}, {page.total} item(s) total)", ""]
    for number, record in enumerate(page.records, start=page.offset + 1):
        kind = "GIF" if record.is_animated else "IMG"
        lines.append(f"{number}. [{kind}] {record.stored_file_name} ({record.size_kb:.1f}KB)")
    lines.append("")
    lines.append('Use "send <number>" to resend an item')
    if page.has_next:
        lines.append(f'Use "view {page.page + 1}" for the next page')
    return "\n".join(lines)


class ArchiveClient:
    """
    Единая точка доступа для команд архива.

    Пакетные команды (archive / convert) никогда не падают целиком: каждый
    элемент получает свой ItemOutcome. Одиночные команды поднимают
    доменные исключения (IndexOutOfRange, PermissionDenied, ArchiveDisabled).
    """

    def __init__(
        self,
        config: ArchiveConfig,
        store: ArchiveStore,
        repository: ArchiveRepository,
        gate: PermissionGate,
        dispatcher: DeliveryDispatcher,
        fetcher: BlobFetcher,
        elevated_check: ElevatedCheck | None = None,
        engine: AsyncEngine | None = None,
    ):
        self.config = config
        self.store = store
        self.repo = repository
        self.gate = gate
        self.dispatcher = dispatcher
        self.fetcher = fetcher
        self._elevated_check = elevated_check
        self._engine = engine

    async def aclose(self):
        if self._engine is not None:
            await self._engine.dispose()

    async def check_connections(self) -> dict[str, str]:
        """
        Проверяет доступность БД и хранилища blob-ов.
        Возвращает словарь со статусами.
        """
        statuses = {}
        try:
            await self.repo.check_connection()
            statuses["database"] = "ok"
        except DatabaseError as e:
            statuses["database"] = f"failed: {e}"

        try:
            await self.store.blobs.check_connection()
            statuses["storage"] = "ok"
        except StoreIOFailure as e:
            statuses["storage"] = f"failed: {e}"
        return statuses

    # ――― guards ――― #

    def is_enabled_for(self, channel_id: str) -> bool:
        return self.config.is_enabled_for(channel_id)

    def _require_enabled(self, channel_id: str) -> None:
        if not self.is_enabled_for(channel_id):
            raise ArchiveDisabled(channel_id)

    async def permission_level(self, session: ChatSession) -> int:
        elevated = False
        if self._elevated_check is not None:
            elevated = await self._elevated_check(session.user_id)
        return self.gate.resolve_level(session.roles, session.is_direct, elevated)

    @staticmethod
    def _quoted_elements(session: ChatSession) -> tuple[QuotedMessage, List[MediaElement]]:
        quote = session.quote
        if quote is None:
            raise NoQuotedMessage("Reply to a message with images to use this command")
        elements = normalize_elements(quote.elements)
        logger.debug(
            f"Quoted message {quote.message_id}: {len(quote.elements)} element(s), {len(elements)} image-like"
        )
        if not elements:
            raise UnrecognizedContent("The quoted message contains no images")
        return quote, elements

    # ――― batch commands ――― #

    async def convert(self, session: ChatSession) -> BatchReport:
        """Отправляет изображения из цитируемого сообщения обратно, ничего не сохраняя."""
        _, elements = self._quoted_elements(session)
        report = BatchReport(verb="converted")
        for element in elements:
            outcome = await self._fetch_element(element)
            if isinstance(outcome, ItemOutcome):
                report.add(outcome)
                continue
            content, fp = outcome
            item = DeliveryItem(
                content=content,
                mime_type=fp.mime_type,
                is_animated=fp.is_animated,
                file_name=f"temp-{fp.short_hash}.{fp.extension}",
            )
            report.add(await self._deliver(session, item))
        return report

    async def archive(self, session: ChatSession) -> BatchReport:
        """Сохраняет изображения из цитируемого сообщения в архив канала и отправляет их обратно."""
        self._require_enabled(session.channel_id)
        quote, elements = self._quoted_elements(session)
        report = BatchReport(verb="archived")
        for element in elements:
            outcome = await self._fetch_element(element)
            if isinstance(outcome, ItemOutcome):
                report.add(outcome)
                continue
            content, fp = outcome
            report.add(await self._archive_one(session, quote, content, fp))
        return report

    async def _fetch_element(self, element: MediaElement) -> tuple[bytes, Fingerprint] | ItemOutcome:
        url = element.source_url
        if not url:
            logger.debug(f"Element without source url: {element!r}")
            return ItemOutcome(status=ItemStatus.invalid_source, message="Found an image without a usable link")
        try:
            content = await self.fetcher.fetch(url)
        except FetchError as e:
            logger.error(f"Failed to fetch {url}: {e}")
            return ItemOutcome(status=ItemStatus.fetch_failed, message=f"Download failed: {e}")
        fp = fingerprint(content)
        logger.debug(
            f"Fetched {element.kind} element: size={fp.byte_size} mime={fp.mime_type} hash={fp.short_hash}..."
        )
        return content, fp

    async def _archive_one(
        self, session: ChatSession, quote: QuotedMessage, content: bytes, fp: Fingerprint
    ) -> ItemOutcome:
        try:
            result = await self.store.ingest(
                session.channel_id,
                content,
                fp,
                uploader_id=session.user_id,
                source_message_id=quote.message_id,
            )
        except StoreIOFailure as e:
            logger.error(f"Failed to archive {fp.short_hash} in {session.channel_id}: {e}")
            return ItemOutcome(status=ItemStatus.store_failed, message=f"Archiving failed: {e}")

        record = result.record
        if result.duplicate:
            return ItemOutcome(
                status=ItemStatus.duplicate,
                message=f"Already in the archive (record #{record.id})",
                record_id=record.id,
                file_name=record.stored_file_name,
            )

        item = DeliveryItem(
            content=content,
            mime_type=record.mime_type,
            is_animated=record.is_animated,
            file_name=record.stored_file_name,
            persisted_path=self.store.local_path(record),
        )
        return await self._deliver(session, item, record)

    async def _deliver(
        self, session: ChatSession, item: DeliveryItem, record: ArchiveRecord | None = None
    ) -> ItemOutcome:
        record_id = record.id if record else None
        try:
            result = await self.dispatcher.deliver(item, session.send)
        except DeliveryFailed as e:
            logger.error(f"Delivery of {item.file_name} failed: {e}")
            return ItemOutcome(
                status=ItemStatus.delivery_failed,
                message=str(e),
                record_id=record_id,
                file_name=item.file_name,
            )
        return ItemOutcome(
            status=ItemStatus.degraded if result.degraded else ItemStatus.delivered,
            message=result.describe(),
            record_id=record_id,
            file_name=item.file_name,
        )

    # ――― album ――― #

    async def view(self, session: ChatSession, page: int = 1) -> ArchivePage:
        """Отправляет страницу архива текстом и (по настройке) превью каждой записи."""
        self._require_enabled(session.channel_id)
        archive_page = await self.store.list(session.channel_id, page, self.config.page_size)
        if not archive_page.records:
            if page == 1:
                await session.send("The archive is empty, archive some images first")
            else:
                await session.send("No more items")
            return archive_page

        await session.send(render_listing(archive_page))
        if self.config.show_previews:
            for record in archive_page.records:
                try:
                    data = await self.store.read(record)
                except StoreIOFailure as e:
                    logger.warning(f"Failed to read blob for preview {record.blob_path}: {e}")
                    continue
                # Сбой одного превью не должен отменять остальные
                try:
                    await session.send(ImagePayload(data=data, mime_type=record.mime_type))
                except Exception as e:
                    logger.warning(f"Failed to send preview of {record.stored_file_name}: {e}")
        return archive_page

    async def send(self, session: ChatSession, index: int) -> ItemOutcome:
        """Повторно отправляет запись по номеру, соблюдая способ доставки для её вида."""
        self._require_enabled(session.channel_id)
        record = await self.store.get_by_index(session.channel_id, index)
        try:
            content = await self.store.read(record)
        except BlobMissingError:
            logger.warning(f"Record {record.id} has no blob at {record.blob_path}")
            return ItemOutcome(
                status=ItemStatus.store_failed,
                message=f"File {record.stored_file_name} is missing, it may have been deleted",
                record_id=record.id,
                file_name=record.stored_file_name,
            )
        item = DeliveryItem(
            content=content,
            mime_type=record.mime_type,
            is_animated=record.is_animated,
            file_name=record.stored_file_name,
            persisted_path=self.store.local_path(record),
        )
        return await self._deliver(session, item, record)

    async def delete(self, session: ChatSession, index: int) -> ArchiveRecord:
        self._require_enabled(session.channel_id)
        self.gate.require(await self.permission_level(session), "delete")
        return await self.store.delete_by_index(session.channel_id, index)

    # ――― clear-all ――― #

    async def begin_clear(self, session: ChatSession) -> Optional[AwaitingConfirmation]:
        """
        Проверяет права и открывает ожидание подтверждения.
        Возвращает None, если канал уже пуст.
        """
        self._require_enabled(session.channel_id)
        self.gate.require(await self.permission_level(session), "clear")
        if await self.store.count(session.channel_id) == 0:
            return None
        return AwaitingConfirmation.start(
            session.channel_id,
            session.user_id,
            timeout=self.config.confirm_timeout,
            keyword=self.config.confirm_keyword,
        )

    async def clear(self, pending: AwaitingConfirmation, decision: ConfirmationDecision) -> ClearResult:
        """Очищает канал только при решении CONFIRMED; иначе ничего не трогает."""
        if decision is not ConfirmationDecision.confirmed:
            logger.info(f"Clear of {pending.channel_id} by {pending.actor_id} aborted: {decision.value}")
            return ClearResult(decision=decision)
        removed = await self.store.clear_channel(pending.channel_id)
        return ClearResult(decision=decision, removed=removed)

    async def clear_interactive(self, session: ChatSession) -> ClearResult:
        """Полный сценарий очистки: запрос подтверждения через сессию, ожидание ответа, очистка."""
        pending = await self.begin_clear(session)
        if pending is None:
            return ClearResult()
        await session.send(
            "Clear the whole archive? This cannot be undone.\n"
            f'Reply "{pending.keyword}" to continue, anything else cancels'
        )
        reply = await session.await_reply(pending.timeout_ms)
        return await self.clear(pending, pending.resolve(reply))
