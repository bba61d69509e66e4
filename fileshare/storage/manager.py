"""
Storage manager: active backend for new uploads, lookup by name for reads
"""
from typing import Dict, Optional

from fileshare.config import get_settings
from fileshare.storage.base import StorageBackend
from fileshare.storage.exceptions import StorageBackendError


class StorageManager:
    """
    Registry of configured storage backends.

    Records remember which backend stored their bytes, so reads and deletes
    go to that backend even after STORAGE_BACKEND changes.
    """

    def __init__(self, backends: Dict[str, StorageBackend], active: str):
        if active not in backends:
            raise ValueError(f"Unknown storage backend: {active}")
        self._backends = dict(backends)
        self._active = active

    @property
    def active(self) -> StorageBackend:
        return self._backends[self._active]

    def get(self, name: str) -> StorageBackend:
        """
        Backend by name (значение File.storage_backend).

        Raises:
            StorageBackendError: backend not configured in this process
        """
        try:
            return self._backends[name]
        except KeyError:
            raise StorageBackendError(f"Storage backend '{name}' is not configured")


_manager: Optional[StorageManager] = None


def build_storage_manager(settings=None) -> StorageManager:
    """
    Собрать менеджер из настроек.

    Both backends are registered (the MinIO client does not connect until
    first use) so records written before a backend switch stay readable.
    """
    from fileshare.storage.local_storage import LocalStorage
    from fileshare.storage.minio_storage import MinIOStorage

    settings = settings or get_settings()
    backends: Dict[str, StorageBackend] = {
        LocalStorage.name: LocalStorage(settings.UPLOAD_DIR, chunk_size=settings.STORAGE_CHUNK_SIZE),
        MinIOStorage.name: MinIOStorage.from_settings(settings),
    }
    return StorageManager(backends, active=settings.STORAGE_BACKEND)


def get_storage_manager() -> StorageManager:
    """Процессный singleton (для API dependency и Celery задач)."""
    global _manager
    if _manager is None:
        _manager = build_storage_manager()
    return _manager
