# Файл: src/media_archive/config.py

import enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransferMode(str, enum.Enum):
    embedded = "embedded"
    named_file = "named-file"


# --- 1. База данных (реестр записей) ---
class DatabaseConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "media_archive"
    # Полный DSN перекрывает поля выше (например, sqlite+aiosqlite для локального запуска)
    dsn: Optional[str] = None

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    application_name: str = "media_archive"

    def get_dsn(self) -> str:
        """Собирает DSN для SQLAlchemy из полей этого объекта."""
        if self.dsn:
            return self.dsn
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"

    def is_postgres(self) -> bool:
        return self.get_dsn().startswith("postgresql")


# --- 2. Хранилище blob-ов ---
class StorageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    backend: Literal["local", "minio"] = "local"
    root: Path = Path("data/media-archive")


class MinioConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint: str = "localhost:9000"
    accesskey: str = "minioadmin"
    secretkey: str = "minioadmin"
    bucket: str = "media-archive"
    secure: bool = False


# --- 3. Правила архива ---
class ArchiveConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    # Пустой список = архив включён во всех каналах
    enabled_channels: list[str] = Field(default_factory=list)
    max_capacity: int = Field(20, ge=5, le=100)
    page_size: int = Field(8, ge=1, le=50)
    show_previews: bool = True
    delete_permission_level: int = Field(3, ge=1, le=5)
    confirm_timeout: float = Field(30.0, gt=0, le=30)
    confirm_keyword: str = "confirm"

    def is_enabled_for(self, channel_id: str) -> bool:
        if not self.enabled:
            return False
        if not self.enabled_channels:
            return True
        return channel_id in self.enabled_channels


class DeliveryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    static_mode: TransferMode = TransferMode.embedded
    animated_mode: TransferMode = TransferMode.named_file
    # None = отдельный каталог в системном tmp на время жизни процесса
    temp_dir: Optional[Path] = None
    cleanup_delay: float = Field(5.0, ge=0)

    def mode_for(self, is_animated: bool) -> TransferMode:
        return self.animated_mode if is_animated else self.static_mode


class FetchConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout: float = Field(30.0, gt=0)
    user_agent: str = "media-archive/0.1"


# --- 4. Единый объект для явной передачи конфигурации ---
class ArchiveClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    debug: bool = False


# --- 5. Чтение из .env / окружения ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    debug: bool = False

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)

    def to_client_config(self) -> ArchiveClientConfig:
        return ArchiveClientConfig(
            database=self.database,
            storage=self.storage,
            minio=self.minio,
            archive=self.archive,
            delivery=self.delivery,
            fetch=self.fetch,
            debug=self.debug,
        )


_cached_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Возвращает синглтон-экземпляр настроек, создавая его при первом вызове.
    Это предотвращает ошибки валидации при импорте.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def reset_settings() -> None:
    global _cached_settings
    _cached_settings = None
