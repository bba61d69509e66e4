"""
Storage backend exceptions
"""


class StorageError(Exception):
    """Базовое исключение хранилища."""

    pass


class ObjectNotFoundError(StorageError):
    """Объект с таким ключом отсутствует."""

    pass


class ObjectExistsError(StorageError):
    """Объект с таким ключом уже существует (перезапись запрещена)."""

    pass


class StorageBackendError(StorageError):
    """Ошибка ввода-вывода бэкенда (диск, сеть, S3)."""

    pass
