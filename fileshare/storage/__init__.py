"""
File storage backends
"""
from fileshare.storage.base import ByteStream, ObjectInfo, StorageBackend, StoredLocation
from fileshare.storage.exceptions import (
    ObjectExistsError,
    ObjectNotFoundError,
    StorageBackendError,
    StorageError,
)
from fileshare.storage.local_storage import LocalStorage
from fileshare.storage.manager import StorageManager, build_storage_manager, get_storage_manager

__all__ = [
    "ByteStream",
    "ObjectInfo",
    "StorageBackend",
    "StoredLocation",
    "ObjectExistsError",
    "ObjectNotFoundError",
    "StorageBackendError",
    "StorageError",
    "LocalStorage",
    "StorageManager",
    "build_storage_manager",
    "get_storage_manager",
]
