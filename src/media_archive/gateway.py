"""
Граничные контракты, которые ядро потребляет, но не реализует
(кроме HTTP-загрузчика по умолчанию в ``fetcher``).
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict

from media_archive.models.element import QuotedMessage


class ImagePayload(BaseModel):
    """Встроенное изображение: байты передаются транспорту как есть."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str


class FilePayload(BaseModel):
    """Ссылка на файл с сохранением имени для получателя."""

    model_config = ConfigDict(frozen=True)

    uri: str
    file_name: str


Payload = Union[ImagePayload, FilePayload, str]


@runtime_checkable
class BlobFetcher(Protocol):
    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> bytes: ...


@runtime_checkable
class ChatSession(Protocol):
    user_id: str
    channel_id: str
    # None = сведений о ролях нет
    roles: Optional[Sequence[str]]
    is_direct: bool
    quote: Optional[QuotedMessage]

    async def send(self, payload: Payload) -> None: ...

    async def await_reply(self, timeout_ms: int) -> Optional[str]: ...
