"""
File lifecycle exceptions
"""
from typing import List, Optional


class FileShareError(Exception):
    """Базовое исключение жизненного цикла файла."""

    code = "FILE_SHARE_ERROR"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ValidationFailedError(FileShareError):
    """File validation failed"""

    code = "VALIDATION_FAILED"

    def __init__(self, errors: List[str], message: str = "File validation failed"):
        super().__init__(message)
        self.errors = list(errors)


class NotFoundError(FileShareError):
    """File not found"""

    code = "NOT_FOUND"


class ExpiredError(FileShareError):
    """File has expired"""

    code = "EXPIRED"


class PasswordRequiredError(FileShareError):
    """Password required"""

    code = "PASSWORD_REQUIRED"


class InvalidPasswordError(FileShareError):
    """Invalid password"""

    code = "INVALID_PASSWORD"


class NotPreviewableError(FileShareError):
    """File cannot be previewed"""

    code = "NOT_PREVIEWABLE"


class AccessDeniedError(FileShareError):
    """Access denied"""

    code = "ACCESS_DENIED"


class ConflictError(FileShareError):
    """Resource already exists"""

    code = "CONFLICT"


class StorageFailureError(FileShareError):
    """Storage backend failure; safe to retry."""

    code = "STORAGE_FAILURE"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message or "Failed to access file storage")
        self.cause = cause
