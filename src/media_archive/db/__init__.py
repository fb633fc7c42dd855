# media_archive/db/__init__.py

from .base import Base, get_session
from .archive_orm import ArchiveRecordORM

__all__ = [
    "Base",
    "get_session",
    "ArchiveRecordORM",
]
