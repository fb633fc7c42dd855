from pathlib import Path
from typing import Optional

from media_archive.exceptions import BlobMissingError, BlobStoreError, FetchError
from media_archive.gateway import FilePayload, ImagePayload
from media_archive.models.element import QuotedMessage
from media_archive.models.record import ArchiveRecord, ArchiveRecordCreate

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
GIF_MAGIC = b"GIF89a"
JPEG_MAGIC = b"\xff\xd8\xff\xe0"


def png(n: int) -> bytes:
    return PNG_MAGIC + f"png-payload-{n}".encode()


def gif(n: int) -> bytes:
    return GIF_MAGIC + f"gif-payload-{n}".encode()


def as_create(record: ArchiveRecord, channel_id: str) -> ArchiveRecordCreate:
    data = record.model_dump(exclude={"id"})
    data["channel_id"] = channel_id
    return ArchiveRecordCreate(**data)


def quote_of(*urls: Optional[str], message_id: str = "msg-1", el_type: str = "img") -> QuotedMessage:
    return QuotedMessage(
        message_id=message_id,
        elements=[{"type": el_type, "attrs": {"src": url} if url else {}} for url in urls],
    )


class InMemoryBlobStore:
    """Фейковое хранилище blob-ов: логика дедупликации и вытеснения проверяется без диска."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_delete_for: set[str] = set()

    async def ensure_ready(self) -> None:
        return None

    async def check_connection(self) -> None:
        return None

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        self.objects[key] = data

    async def get(self, key: str) -> bytes:
        try:
            return self.objects[key]
        except KeyError as e:
            raise BlobMissingError(f"Blob {key} is missing") from e

    async def delete(self, key: str) -> bool:
        if key in self.fail_delete_for:
            raise BlobStoreError(f"cannot delete {key}")
        return self.objects.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self.objects

    def local_path(self, key: str) -> Optional[Path]:
        return None


class FakeFetcher:
    def __init__(self, responses: dict[str, bytes | Exception] | None = None):
        self.responses = responses or {}
        self.calls: list[str] = []

    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> bytes:
        self.calls.append(url)
        result = self.responses.get(url)
        if result is None:
            raise FetchError(f"HTTP 404 for {url}")
        if isinstance(result, Exception):
            raise result
        return result


class FakeSession:
    """Сессия чата: запоминает отправленное, умеет "ломать" отправку файлов."""

    def __init__(
        self,
        channel_id: str = "group-1",
        user_id: str = "user-1",
        roles: list[str] | None = None,
        is_direct: bool = False,
        quote: QuotedMessage | None = None,
        fail_files: bool = False,
        fail_all: bool = False,
        fail_images: int = 0,
        reply: str | None = None,
    ):
        self.channel_id = channel_id
        self.user_id = user_id
        self.roles = roles
        self.is_direct = is_direct
        self.quote = quote
        self.fail_files = fail_files
        self.fail_all = fail_all
        # Сколько первых ImagePayload отклонить
        self.fail_images = fail_images
        self.reply = reply
        self.sent: list = []
        self.reply_timeouts: list[int] = []

    async def send(self, payload) -> None:
        if self.fail_all:
            raise RuntimeError("transport is down")
        if self.fail_files and isinstance(payload, FilePayload):
            raise RuntimeError("file upload is not supported")
        if self.fail_images and isinstance(payload, ImagePayload):
            self.fail_images -= 1
            raise RuntimeError("image upload refused")
        self.sent.append(payload)

    async def await_reply(self, timeout_ms: int) -> str | None:
        self.reply_timeouts.append(timeout_ms)
        return self.reply

    def texts(self) -> list[str]:
        return [p for p in self.sent if isinstance(p, str)]
