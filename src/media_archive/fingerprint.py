import hashlib

from pydantic import BaseModel, ConfigDict

UNKNOWN_MIME = "image/unknown"
GIF_MIME = "image/gif"
DEFAULT_EXTENSION = "jpg"

# Префикс сигнатуры -> MIME. Проверяются первые 4 байта.
MAGIC_PREFIXES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", GIF_MIME),
    (b"RIFF", "image/webp"),
)

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


class Fingerprint(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_hash: str
    mime_type: str
    extension: str
    is_animated: bool
    byte_size: int

    @property
    def short_hash(self) -> str:
        return self.content_hash[:8]


def content_hash(content: bytes) -> str:
    # Ключ идентичности, а не криптографическая гарантия
    return hashlib.md5(content).hexdigest()


def detect_mime(content: bytes) -> str:
    head = content[:4]
    for prefix, mime in MAGIC_PREFIXES:
        if head.startswith(prefix):
            return mime
    return UNKNOWN_MIME


def extension_for(mime_type: str) -> str:
    return MIME_EXTENSIONS.get(mime_type, DEFAULT_EXTENSION)


def fingerprint(content: bytes) -> Fingerprint:
    """Идентичность и тип по сырым байтам. Никогда не падает: неизвестный формат тоже хранится."""
    mime = detect_mime(content)
    return Fingerprint(
        content_hash=content_hash(content),
        mime_type=mime,
        extension=extension_for(mime),
        is_animated=mime == GIF_MIME,
        byte_size=len(content),
    )
