from .blob_store import BlobStore, build_blob_key, channel_dir, stored_file_name
from .fs_repository import LocalBlobStore
from .minio_repository import MinioBlobStore
from .pg_repositoryArchive import ArchiveRepository

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "MinioBlobStore",
    "ArchiveRepository",
    "build_blob_key",
    "channel_dir",
    "stored_file_name",
]
