"""
Storage backend contract shared by the local and object-store backends
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterable, AsyncIterator, Callable, Iterator, Optional, Union

from fileshare.storage.exceptions import ObjectNotFoundError, StorageBackendError

# Байты целиком или асинхронный поток чанков (UploadFile и т.п.)
ByteSource = Union[bytes, AsyncIterable[bytes]]


@dataclass(frozen=True)
class StoredLocation:
    """Результат store(): где и сколько байт сохранено."""

    backend: str
    key: str
    location: str
    size: int


@dataclass(frozen=True)
class ObjectInfo:
    """Метаданные объекта без чтения содержимого."""

    size: int
    last_modified: Optional[datetime]


class ByteStream:
    """
    Lazily-read, single-use async stream of bytes.

    Wraps a blocking chunk iterator; every read runs in a worker thread.
    The underlying resource is released by aclose(), on exhaustion, or on
    the first read error.
    """

    def __init__(self, chunks: Iterator[bytes], close: Callable[[], None]):
        self._chunks = chunks
        self._close = close
        self._closed = False
        self._started = False

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._started:
            raise RuntimeError("ByteStream can only be iterated once")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await asyncio.to_thread(next, self._chunks, None)
                if chunk is None:
                    break
                if chunk:
                    yield chunk
        except StorageBackendError:
            raise
        except OSError as e:
            raise StorageBackendError(f"Read failed: {e}") from e
        finally:
            await self.aclose()

    async def read(self) -> bytes:
        """Дочитать поток целиком (для небольших файлов и тестов)."""
        parts = []
        async for chunk in self:
            parts.append(chunk)
        return b"".join(parts)

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._close)

    async def __aenter__(self) -> "ByteStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


async def iter_source(source: ByteSource) -> AsyncIterator[bytes]:
    """Единый async-итератор по bytes или async-потоку чанков."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield bytes(source)
        return
    async for chunk in source:
        if chunk:
            yield chunk


class StorageBackend(ABC):
    """
    Persist raw bytes under a key and read them back.

    Implementations must refuse to overwrite an existing key, make delete()
    idempotent and translate their native errors to
    fileshare.storage.exceptions.
    """

    #: value stored in File.storage_backend
    name: str = ""

    @abstractmethod
    async def store(self, source: ByteSource, key: str, mime_type: str) -> StoredLocation:
        """
        Сохранить содержимое под ключом key.

        Raises:
            ObjectExistsError: key already present
            StorageBackendError: I/O failure
        """

    @abstractmethod
    async def retrieve(self, location: str) -> ByteStream:
        """
        Открыть поток чтения.

        Raises:
            ObjectNotFoundError: nothing stored at location
            StorageBackendError: I/O failure
        """

    @abstractmethod
    async def delete(self, location: str) -> None:
        """Удалить объект; отсутствие объекта не ошибка."""

    @abstractmethod
    async def describe(self, location: str) -> ObjectInfo:
        """
        Размер и время изменения без чтения содержимого.

        Raises:
            ObjectNotFoundError: nothing stored at location
        """

    async def exists(self, location: str) -> bool:
        try:
            await self.describe(location)
            return True
        except ObjectNotFoundError:
            return False
