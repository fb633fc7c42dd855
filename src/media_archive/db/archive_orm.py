from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from media_archive.db.base import Base
from media_archive.models.record import ArchiveRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArchiveRecordORM(Base):
    __tablename__ = "media_archive"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    extension: Mapped[str] = mapped_column(String(16), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(64), nullable=False)
    byte_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_animated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    stored_file_name: Mapped[str] = mapped_column(String, nullable=False)
    blob_path: Mapped[str] = mapped_column(String, nullable=False)

    uploader_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    source_message_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Время проставляет процесс (микросекунды), а не сервер: по нему идёт FIFO-вытеснение
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("channel_id", "content_hash", name="uq_media_archive_channel_hash"),
        Index("idx_media_archive_channel_created", "channel_id", "created_at"),
        # без AUTOINCREMENT SQLite может переиспользовать id удалённых строк
        {"sqlite_autoincrement": True},
    )

    def to_pydantic(self) -> ArchiveRecord:
        return ArchiveRecord.model_validate(self)
