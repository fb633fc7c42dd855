# Файл: media_archive/models/record.py

from __future__ import annotations

from datetime import datetime
from math import ceil
from typing import List

from pydantic import BaseModel, ConfigDict, Field


# Схема для создания записи (всё, что известно до вставки строки)
class ArchiveRecordCreate(BaseModel):
    channel_id: str
    content_hash: str
    extension: str
    mime_type: str
    byte_size: int = Field(..., ge=0)
    is_animated: bool = False
    stored_file_name: str
    blob_path: str
    uploader_id: str = ""
    source_message_id: str = ""
    created_at: datetime


# Запись, возвращаемая из БД. Неизменяема после создания.
class ArchiveRecord(ArchiveRecordCreate):
    id: int

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def size_kb(self) -> float:
        return self.byte_size / 1024


class ArchivePage(BaseModel):
    records: List[ArchiveRecord] = []
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return max(1, ceil(self.total / self.page_size))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class IngestResult(BaseModel):
    record: ArchiveRecord
    # True = такой контент уже был в канале, ничего не записано
    duplicate: bool = False
