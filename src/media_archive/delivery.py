import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from media_archive.config import DeliveryConfig, TransferMode
from media_archive.exceptions import DeliveryFailed
from media_archive.gateway import FilePayload, ImagePayload, Payload
from media_archive.utils.io_async import run_io_bound

logger = logging.getLogger(__name__)

Transport = Callable[[Payload], Awaitable[None]]


class DeliveryItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: bytes
    mime_type: str
    is_animated: bool
    file_name: str
    persisted_path: Optional[Path] = None


class DeliveryResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: TransferMode
    # True = хотели файлом, но пришлось отправить встроенным изображением
    degraded: bool = False
    file_name: str

    def describe(self) -> str:
        if self.degraded:
            return f"{self.file_name} delivered as image (fallback)"
        if self.mode is TransferMode.named_file:
            return f"{self.file_name} delivered as file"
        return f"{self.file_name} delivered as image"


class DeliveryDispatcher:
    """
    Выбирает способ отправки элемента и деградирует при сбое.

    ``named-file`` -> при любой ошибке повтор как ``embedded`` с теми же байтами
    (результат degraded). Ошибка самого ``embedded`` поднимается как DeliveryFailed.
    """

    def __init__(self, config: DeliveryConfig):
        self._config = config
        self._temp_dir: Optional[Path] = config.temp_dir
        self._cleanup_tasks: Set[asyncio.Task] = set()

    def mode_for(self, item: DeliveryItem) -> TransferMode:
        return self._config.mode_for(item.is_animated)

    async def deliver(self, item: DeliveryItem, transport: Transport) -> DeliveryResult:
        mode = self.mode_for(item)
        if mode is TransferMode.named_file:
            try:
                await self._send_named_file(item, transport)
                logger.debug(f"Delivered {item.file_name} as file")
                return DeliveryResult(mode=mode, file_name=item.file_name)
            except Exception as e:
                logger.warning(f"File delivery of {item.file_name} failed, falling back to image: {e}")
                await self._send_embedded(item, transport)
                return DeliveryResult(mode=TransferMode.embedded, degraded=True, file_name=item.file_name)

        await self._send_embedded(item, transport)
        logger.debug(f"Delivered {item.file_name} as image")
        return DeliveryResult(mode=mode, file_name=item.file_name)

    async def _send_embedded(self, item: DeliveryItem, transport: Transport) -> None:
        try:
            await transport(ImagePayload(data=item.content, mime_type=item.mime_type))
        except Exception as e:
            raise DeliveryFailed(f"Failed to send {item.file_name}: {e}") from e

    async def _send_named_file(self, item: DeliveryItem, transport: Transport) -> None:
        if item.persisted_path is not None:
            await transport(FilePayload(uri=item.persisted_path.as_uri(), file_name=item.file_name))
            return

        temp_path = await self._write_ephemeral(item)
        try:
            await transport(FilePayload(uri=temp_path.as_uri(), file_name=item.file_name))
        finally:
            self._schedule_cleanup(temp_path)

    def _ensure_temp_dir(self) -> Path:
        if self._temp_dir is None:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="media-archive-"))
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        return self._temp_dir

    async def _write_ephemeral(self, item: DeliveryItem) -> Path:
        temp_dir = await run_io_bound(self._ensure_temp_dir)
        temp_path = temp_dir / f"temp_{int(time.time() * 1000)}_{uuid4().hex[:8]}_{item.file_name}"
        await run_io_bound(temp_path.write_bytes, item.content)
        return temp_path

    def _schedule_cleanup(self, path: Path) -> None:
        # Удаление "по таймеру": гонка с завершением доставки допустима
        loop = asyncio.get_running_loop()
        loop.call_later(self._config.cleanup_delay, self._start_cleanup, path)

    def _start_cleanup(self, path: Path) -> None:
        task = asyncio.get_running_loop().create_task(_remove_quietly(path))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)


async def _remove_quietly(path: Path) -> None:
    try:
        await run_io_bound(os.unlink, path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to delete temporary file {path}: {e}")
