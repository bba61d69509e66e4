"""
Local filesystem storage backend
"""
import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator

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


class LocalStorage(StorageBackend):
    """Хранение файлов на локальном диске: UPLOAD_DIR/<key>."""

    name = "local"

    def __init__(self, root: str, chunk_size: int = 65536):
        self.root = Path(root).resolve()
        self.chunk_size = chunk_size
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        """Путь внутри root; ключи, выходящие за root, отклоняются."""
        if not key or key.startswith(("/", "\\")) or "\x00" in key:
            raise StorageBackendError(f"Invalid storage key: {key!r}")
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise StorageBackendError(f"Storage key escapes upload root: {key!r}")
        return path

    async def store(self, source: ByteSource, key: str, mime_type: str) -> StoredLocation:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            handle: BinaryIO = await asyncio.to_thread(open, path, "xb")
        except FileExistsError as e:
            raise ObjectExistsError(f"Key already exists: {key}") from e
        except OSError as e:
            raise StorageBackendError(f"Cannot create {key}: {e}") from e

        written = 0
        try:
            async for chunk in iter_source(source):
                await asyncio.to_thread(handle.write, chunk)
                written += len(chunk)
            await asyncio.to_thread(handle.flush)
        except BaseException as e:
            handle.close()
            await asyncio.to_thread(self._unlink, path)
            if isinstance(e, OSError):
                raise StorageBackendError(f"Write failed for {key}: {e}") from e
            raise
        handle.close()

        logger.debug(
            "Stored %d bytes locally", written,
            extra={"storage_backend": self.name},
        )
        return StoredLocation(backend=self.name, key=key, location=key, size=written)

    def _read_chunks(self, handle: BinaryIO) -> Iterator[bytes]:
        while True:
            chunk = handle.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    async def retrieve(self, location: str) -> ByteStream:
        path = self._path(location)
        try:
            handle: BinaryIO = await asyncio.to_thread(open, path, "rb")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise ObjectNotFoundError(f"No such file: {location}") from e
        except OSError as e:
            raise StorageBackendError(f"Cannot open {location}: {e}") from e
        return ByteStream(self._read_chunks(handle), handle.close)

    @staticmethod
    def _unlink(path: Path) -> None:
        path.unlink(missing_ok=True)

    async def delete(self, location: str) -> None:
        path = self._path(location)
        try:
            await asyncio.to_thread(self._unlink, path)
        except OSError as e:
            raise StorageBackendError(f"Cannot delete {location}: {e}") from e

    async def describe(self, location: str) -> ObjectInfo:
        path = self._path(location)
        try:
            stat = await asyncio.to_thread(os.stat, path)
        except FileNotFoundError as e:
            raise ObjectNotFoundError(f"No such file: {location}") from e
        except OSError as e:
            raise StorageBackendError(f"Cannot stat {location}: {e}") from e
        return ObjectInfo(
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
