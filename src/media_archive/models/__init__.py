from .record import ArchiveRecordCreate, ArchiveRecord, ArchivePage, IngestResult
from .element import StaticImage, AnimatedImage, StickerPack, MediaElement, QuotedMessage, normalize_elements
from .outcome import ItemStatus, ItemOutcome, BatchReport, ClearResult

__all__ = [
    "ArchiveRecordCreate", "ArchiveRecord", "ArchivePage", "IngestResult",
    "StaticImage", "AnimatedImage", "StickerPack", "MediaElement", "QuotedMessage", "normalize_elements",
    "ItemStatus", "ItemOutcome", "BatchReport", "ClearResult",
]
