from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from media_archive import ArchiveClient, create_archive_client
from media_archive.capacity import CapacityGovernor
from media_archive.config import ArchiveClientConfig, ArchiveConfig, DatabaseConfig, DeliveryConfig, StorageConfig
from media_archive.db.base import Base
from media_archive.repositories.pg_repositoryArchive import ArchiveRepository
from media_archive.store import ArchiveStore
from tests.fakes import FakeFetcher, InMemoryBlobStore


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "archive.db"


@pytest_asyncio.fixture(scope="function")
async def db_engine(db_path):
    """
    Движок для тестовой БД (SQLite-файл) с созданными таблицами.
    Каждый тест получает свежую базу.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def repository(db_engine) -> ArchiveRepository:
    return ArchiveRepository(async_sessionmaker(bind=db_engine, expire_on_commit=False))


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def make_store(repository, blobs):
    def _make(max_capacity: int = 20, blob_store=None) -> ArchiveStore:
        store_blobs = blob_store or blobs
        return ArchiveStore(repository, store_blobs, CapacityGovernor(max_capacity, repository, store_blobs))

    return _make


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest_asyncio.fixture(scope="function")
async def make_client(db_engine, db_path, tmp_path, fetcher):
    """
    Собирает ArchiveClient через фабрику create_archive_client,
    чтобы тесты работали как реальное приложение.
    """
    created: list[ArchiveClient] = []

    def _make(archive: ArchiveConfig | None = None, delivery: DeliveryConfig | None = None, **kwargs) -> ArchiveClient:
        config = ArchiveClientConfig(
            database=DatabaseConfig(dsn=f"sqlite+aiosqlite:///{db_path}"),
            storage=StorageConfig(backend="local", root=tmp_path / "blobs"),
            archive=archive or ArchiveConfig(),
            delivery=delivery or DeliveryConfig(temp_dir=tmp_path / "tmp", cleanup_delay=0.05),
        )
        kwargs.setdefault("fetcher", fetcher)
        client = create_archive_client(config, **kwargs)
        created.append(client)
        return client

    yield _make
    for client in created:
        await client.aclose()
