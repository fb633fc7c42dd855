class ArchiveError(Exception):
    """Base class."""


class FetchError(ArchiveError):
    pass


class NoQuotedMessage(ArchiveError):
    pass


class UnrecognizedContent(ArchiveError):
    pass


class ArchiveDisabled(ArchiveError):
    def __init__(self, channel_id: str):
        super().__init__(f"Archive is not enabled for channel {channel_id}")
        self.channel_id = channel_id


class IndexOutOfRange(ArchiveError):
    def __init__(self, index: int, total: int):
        super().__init__(f"Invalid index {index}, the archive holds {total} item(s)")
        self.index = index
        self.total = total


class PermissionDenied(ArchiveError):
    def __init__(self, action: str, required: int, actual: int, required_name: str | None = None):
        needed = f"{required_name} (level {required})" if required_name else f"level {required}"
        super().__init__(f"Permission denied for '{action}': {needed} required, you have level {actual}")
        self.action = action
        self.required = required
        self.actual = actual


class DeliveryFailed(ArchiveError):
    pass


class StoreIOFailure(ArchiveError):
    pass


class DatabaseError(StoreIOFailure):
    pass


class DuplicateRecordError(DatabaseError):
    """Нарушение уникальности (channel_id, content_hash)."""


class BlobStoreError(StoreIOFailure):
    pass


class BlobMissingError(BlobStoreError):
    pass


class MinioError(BlobStoreError):
    pass
