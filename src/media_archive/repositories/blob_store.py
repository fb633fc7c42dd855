import hashlib
import re
from datetime import date
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


@runtime_checkable
class BlobStore(Protocol):
    """
    Хранилище бинарного содержимого записей.

    Ключ: относительный путь вида ``<канал>/<дата>-<хэш>.<расширение>``.
    ``delete`` идемпотентен: отсутствующий объект не является ошибкой.
    """

    async def ensure_ready(self) -> None: ...

    async def check_connection(self) -> None: ...

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None: ...

    async def get(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    def local_path(self, key: str) -> Optional[Path]: ...


def channel_dir(channel_id: str) -> str:
    # Читаемый префикс + короткий хэш: "a:b" и "a_b" не должны попасть в один каталог
    slug = _UNSAFE.sub("_", channel_id).strip("._")[:48] or "channel"
    digest = hashlib.sha1(channel_id.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"


def stored_file_name(content_hash: str, extension: str, day: date | None = None) -> str:
    day = day or date.today()
    return f"{day.isoformat()}-{content_hash}.{extension}"


def build_blob_key(channel_id: str, file_name: str) -> str:
    return f"{channel_dir(channel_id)}/{file_name}"
