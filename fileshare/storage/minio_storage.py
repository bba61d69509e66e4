"""
Object-store backend on top of the MinIO SDK (sync API wrapped in asyncio)

Works against MinIO and any S3-compatible endpoint. Objects are written with
server-side encryption and a configurable storage class.
"""
import asyncio
import logging
import tempfile
from typing import Any, Dict, Optional

from minio import Minio
from minio.error import MinioException, S3Error
from minio.sse import SseS3
from urllib3.exceptions import HTTPError

from fileshare.storage.base import (
    ByteSource,
    ByteStream,
    ObjectInfo,
    StorageBackend,
    StoredLocation,
    iter_source,
)
from fileshare.storage.exceptions import (
    ObjectExistsError,
    ObjectNotFoundError,
    StorageBackendError,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket", "ResourceNotFound"}

# Небольшие загрузки держим в памяти, большие уходят на диск
SPOOL_MAX_MEMORY = 8 * 1024 * 1024


def _is_not_found(error: Exception) -> bool:
    return isinstance(error, S3Error) and error.code in NOT_FOUND_CODES


class MinIOStorage(StorageBackend):
    """Клиент MinIO: загрузка, потоковое чтение, удаление, stat."""

    name = "object-store"

    def __init__(
        self,
        client: Minio,
        bucket_name: str,
        prefix: str = "uploads/",
        server_side_encryption: bool = True,
        storage_class: Optional[str] = "STANDARD_IA",
        chunk_size: int = 65536,
    ):
        self.client = client
        self.bucket_name = bucket_name
        self.prefix = prefix
        self.sse = SseS3() if server_side_encryption else None
        self.storage_class = storage_class
        self.chunk_size = chunk_size

    @classmethod
    def from_settings(cls, settings) -> "MinIOStorage":
        client = Minio(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
            region=settings.MINIO_REGION or None,
        )
        return cls(
            client=client,
            bucket_name=settings.MINIO_BUCKET_NAME,
            prefix=settings.OBJECT_STORE_PREFIX,
            server_side_encryption=settings.OBJECT_STORE_SSE,
            storage_class=settings.OBJECT_STORE_STORAGE_CLASS or None,
            chunk_size=settings.STORAGE_CHUNK_SIZE,
        )

    async def ensure_bucket(self) -> None:
        """Создать бакет, если его нет."""
        try:
            exists = await asyncio.to_thread(self.client.bucket_exists, self.bucket_name)
            if not exists:
                await asyncio.to_thread(self.client.make_bucket, self.bucket_name)
                logger.info(f"Created bucket {self.bucket_name}")
        except (MinioException, HTTPError) as e:
            raise StorageBackendError(f"Bucket check failed: {e}") from e

    def object_name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _object_headers(self) -> Dict[str, Any]:
        if self.storage_class:
            return {"x-amz-storage-class": self.storage_class}
        return {}

    async def store(self, source: ByteSource, key: str, mime_type: str) -> StoredLocation:
        object_name = self.object_name(key)
        if await self.exists(object_name):
            raise ObjectExistsError(f"Key already exists: {key}")

        # put_object needs a sync readable with known length
        spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY)
        try:
            size = 0
            async for chunk in iter_source(source):
                await asyncio.to_thread(spool.write, chunk)
                size += len(chunk)
            spool.seek(0)
            await asyncio.to_thread(
                self.client.put_object,
                self.bucket_name,
                object_name,
                spool,
                size,
                content_type=mime_type,
                metadata=self._object_headers(),
                sse=self.sse,
            )
        except (MinioException, HTTPError, OSError) as e:
            raise StorageBackendError(f"Upload of {object_name} failed: {e}") from e
        finally:
            spool.close()

        logger.debug(
            "Stored %d bytes in bucket %s", size, self.bucket_name,
            extra={"storage_backend": self.name},
        )
        return StoredLocation(backend=self.name, key=key, location=object_name, size=size)

    async def retrieve(self, location: str) -> ByteStream:
        try:
            response = await asyncio.to_thread(
                self.client.get_object,
                self.bucket_name,
                location,
            )
        except (MinioException, HTTPError) as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(f"No such object: {location}") from e
            raise StorageBackendError(f"Download of {location} failed: {e}") from e

        def _chunks():
            try:
                yield from response.stream(self.chunk_size)
            except HTTPError as e:
                raise StorageBackendError(f"Read of {location} failed: {e}") from e

        def _close() -> None:
            response.close()
            response.release_conn()

        return ByteStream(_chunks(), _close)

    async def delete(self, location: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.remove_object,
                self.bucket_name,
                location,
            )
        except (MinioException, HTTPError) as e:
            if _is_not_found(e):
                return
            raise StorageBackendError(f"Delete of {location} failed: {e}") from e

    async def describe(self, location: str) -> ObjectInfo:
        try:
            stat = await asyncio.to_thread(
                self.client.stat_object,
                self.bucket_name,
                location,
            )
        except (MinioException, HTTPError) as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(f"No such object: {location}") from e
            raise StorageBackendError(f"Stat of {location} failed: {e}") from e
        return ObjectInfo(size=stat.size, last_modified=stat.last_modified)
