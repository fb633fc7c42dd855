import logging
import os
from pathlib import Path
from typing import Optional

from media_archive.exceptions import BlobMissingError, BlobStoreError
from media_archive.utils.io_async import run_io_bound

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Blob-ы в локальном каталоге. Путь к файлу доступен и процессу, и транспорту доставки."""

    def __init__(self, root: Path | str):
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise BlobStoreError(f"Blob key escapes storage root: {key}")
        return path

    def local_path(self, key: str) -> Optional[Path]:
        return self._path(key)

    async def ensure_ready(self) -> None:
        try:
            await run_io_bound(self._root.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise BlobStoreError(f"Cannot create storage root {self._root}: {e}") from e

    async def check_connection(self) -> None:
        """Проверяет, что корневой каталог существует и доступен на запись."""
        await self.ensure_ready()
        if not os.access(self._root, os.W_OK):
            raise BlobStoreError(f"Storage root {self._root} is not writable")

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        path = self._path(key)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            # Пишем во временный файл и переименовываем: частично записанный blob не виден
            tmp = path.with_name(f".{path.name}.part")
            tmp.write_bytes(data)
            os.replace(tmp, path)

        try:
            await run_io_bound(_write)
        except OSError as e:
            raise BlobStoreError(f"Failed to write blob {key}: {e}") from e

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await run_io_bound(path.read_bytes)
        except FileNotFoundError as e:
            raise BlobMissingError(f"Blob {key} is missing") from e
        except OSError as e:
            raise BlobStoreError(f"Failed to read blob {key}: {e}") from e

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            await run_io_bound(path.unlink)
            return True
        except FileNotFoundError:
            logger.debug(f"Blob {key} already gone")
            return False
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        return await run_io_bound(self._path(key).is_file)
