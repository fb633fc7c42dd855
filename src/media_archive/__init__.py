# Файл: src/media_archive/__init__.py

from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .capacity import CapacityGovernor
from .client import ArchiveClient, ElevatedCheck
from .config import (
    ArchiveClientConfig,
    ArchiveConfig,
    DatabaseConfig,
    DeliveryConfig,
    FetchConfig,
    MinioConfig,
    StorageConfig,
    TransferMode,
    get_settings,
)
from .confirmation import AwaitingConfirmation, ConfirmationDecision
from .delivery import DeliveryDispatcher
from .fetcher import HttpBlobFetcher
from .gateway import BlobFetcher
from .logging import set_debug
from .permissions import PermissionGate
from .repositories import ArchiveRepository, BlobStore, LocalBlobStore, MinioBlobStore
from .store import ArchiveStore

from .exceptions import *


def create_engine_for(config: DatabaseConfig):
    kwargs = {"pool_pre_ping": True}
    if config.is_postgres():
        kwargs.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
            connect_args={"server_settings": {"application_name": config.application_name}},
        )
    return create_async_engine(config.get_dsn(), **kwargs)


def create_blob_store(config: ArchiveClientConfig) -> BlobStore:
    if config.storage.backend == "minio":
        return MinioBlobStore(config.minio)
    return LocalBlobStore(config.storage.root)


def create_archive_client(
    config: Optional[ArchiveClientConfig] = None,
    fetcher: Optional[BlobFetcher] = None,
    blobs: Optional[BlobStore] = None,
    elevated_check: Optional[ElevatedCheck] = None,
) -> ArchiveClient:
    """
    Фабричная функция для создания и конфигурации ArchiveClient.

    :param config: Единый объект с настройками.
                   Если не предоставлен, используются переменные окружения.
    :param fetcher: Загрузчик по URL; по умолчанию HTTP (httpx).
    :param blobs: Хранилище blob-ов; по умолчанию выбирается по config.storage.backend.
    :param elevated_check: Внешняя проверка оператора (уровень 5) по user_id.
    :return: Сконфигурированный экземпляр ArchiveClient.
    """
    if config is None:
        config = get_settings().to_client_config()

    set_debug(config.debug)

    engine = create_engine_for(config.database)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    repository = ArchiveRepository(session_factory)
    blobs = blobs or create_blob_store(config)
    governor = CapacityGovernor(config.archive.max_capacity, repository, blobs)
    store = ArchiveStore(repository, blobs, governor)

    return ArchiveClient(
        config=config.archive,
        store=store,
        repository=repository,
        gate=PermissionGate(config.archive.delete_permission_level),
        dispatcher=DeliveryDispatcher(config.delivery),
        fetcher=fetcher or HttpBlobFetcher(config.fetch),
        elevated_check=elevated_check,
        engine=engine,
    )


__all__ = [
    "ArchiveClient", "create_archive_client", "create_engine_for", "create_blob_store",
    "ArchiveClientConfig", "ArchiveConfig", "DatabaseConfig", "DeliveryConfig", "FetchConfig",
    "MinioConfig", "StorageConfig", "TransferMode",
    "ArchiveStore", "ArchiveRepository", "CapacityGovernor", "PermissionGate", "DeliveryDispatcher",
    "LocalBlobStore", "MinioBlobStore", "HttpBlobFetcher",
    "AwaitingConfirmation", "ConfirmationDecision",
    "ArchiveError", "FetchError", "NoQuotedMessage", "UnrecognizedContent", "ArchiveDisabled",
    "IndexOutOfRange", "PermissionDenied", "DeliveryFailed",
    "StoreIOFailure", "DatabaseError", "DuplicateRecordError", "BlobStoreError", "BlobMissingError", "MinioError",
]
