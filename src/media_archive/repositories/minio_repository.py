import logging
from io import BytesIO
from pathlib import Path
from typing import Optional

import urllib3
from minio import Minio
from minio.error import S3Error

from media_archive.config import MinioConfig
from media_archive.exceptions import BlobMissingError, MinioError
from media_archive.utils.io_async import run_io_bound

logger = logging.getLogger(__name__)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

MISSING_CODES = {"NoSuchKey", "NoSuchObject", "ResourceNotFound"}


class MinioBlobStore:
    """
    Blob-ы в бакете MinIO. Локального пути нет, поэтому доставка файлом
    всегда идёт через временную копию.
    """

    def __init__(self, settings: MinioConfig, client: Minio | None = None):
        if client is None:
            http_client = None
            if settings.secure:
                http_client = urllib3.PoolManager(cert_reqs="CERT_NONE")
            client = Minio(
                endpoint=settings.endpoint,
                access_key=settings.accesskey,
                secret_key=settings.secretkey,
                secure=settings.secure,
                http_client=http_client,
            )
        self._client = client
        self._bucket = settings.bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def local_path(self, key: str) -> Optional[Path]:
        return None

    async def ensure_ready(self) -> None:
        try:
            exists = await run_io_bound(self._client.bucket_exists, self._bucket)
            if not exists:
                await run_io_bound(self._client.make_bucket, self._bucket)
        except S3Error as e:
            raise MinioError(str(e)) from e

    async def check_connection(self) -> None:
        """Проверяет соединение с MinIO и наличие бакета."""
        logger.debug(f"Checking MinIO connection and bucket '{self._bucket}' existence...")
        try:
            await self.ensure_ready()
            logger.debug("MinIO connection and bucket presence confirmed.")
        except MinioError as e:
            logger.error(f"MinIO connection failed: {e}")
            raise

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        try:
            await run_io_bound(
                self._client.put_object,
                self._bucket,
                key,
                BytesIO(data),
                len(data),
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as e:
            raise MinioError(str(e)) from e

    async def get(self, key: str) -> bytes:
        def _read():
            resp = self._client.get_object(self._bucket, key)
            try:
                return resp.read()
            finally:
                resp.close()
                resp.release_conn()

        try:
            return await run_io_bound(_read)
        except S3Error as e:
            if getattr(e, "code", None) in MISSING_CODES:
                raise BlobMissingError(f"Blob {key} is missing") from e
            raise MinioError(str(e)) from e

    async def delete(self, key: str) -> bool:
        # remove_object в MinIO идемпотентен
        try:
            await run_io_bound(self._client.remove_object, self._bucket, key)
            return True
        except S3Error as e:
            if getattr(e, "code", None) in MISSING_CODES:
                return False
            raise MinioError(str(e)) from e

    async def exists(self, key: str) -> bool:
        try:
            await run_io_bound(self._client.stat_object, self._bucket, key)
            return True
        except S3Error as e:
            if getattr(e, "code", None) in MISSING_CODES:
                return False
            raise MinioError(str(e)) from e
