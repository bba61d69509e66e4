"""
File Pydantic schemas for API request/response
"""
from datetime import datetime
from typing import List, Literal, Optional, TYPE_CHECKING, Union

from pydantic import BaseModel, Field, computed_field

from fileshare.utils.file_utils import format_file_size

if TYPE_CHECKING:
    from fileshare.database.models.file import File


class FileRecord(BaseModel):
    """Полная запись о файле (FileRecord value type)."""

    id: str
    original_name: str
    # internal locators: never serialized, absent when re-validated from a dump
    stored_key: Optional[str] = Field(default=None, exclude=True)
    mime_type: str
    size_bytes: int
    owner_id: Optional[str] = None
    storage_backend: Optional[Literal["local", "object-store"]] = Field(default=None, exclude=True)
    storage_location: Optional[str] = Field(default=None, exclude=True)
    is_public: bool
    is_password_protected: bool
    download_count: int
    created_at: datetime
    last_accessed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_expired: bool = False

    @computed_field
    @property
    def size_formatted(self) -> str:
        return format_file_size(self.size_bytes)

    @classmethod
    def from_model(cls, file: "File", now: datetime) -> "FileRecord":
        """Снимок ORM-записи на момент now (naive UTC)."""
        return cls(
            id=file.id,
            original_name=file.original_name,
            stored_key=file.stored_key,
            mime_type=file.mime_type,
            size_bytes=file.size_bytes,
            owner_id=file.owner_id,
            storage_backend=file.storage_backend,
            storage_location=file.storage_location,
            is_public=file.is_public,
            is_password_protected=file.is_password_protected,
            download_count=file.download_count,
            created_at=file.created_at,
            last_accessed_at=file.last_accessed_at,
            expires_at=file.expires_at,
            is_expired=file.is_expired(now),
        )


class FileSummary(BaseModel):
    """
    Reduced projection for password-protected files.

    Carries no size or owner fields; the UI uses it to prompt for a password.
    """

    id: str
    original_name: str
    is_password_protected: bool = True
    created_at: datetime
    expires_at: Optional[datetime] = None


class FileInfoResponse(BaseModel):
    """Ответ на запрос информации о файле."""

    success: bool = True
    file: Union[FileRecord, FileSummary] = Field(union_mode="left_to_right")
    can_preview: bool = False
    requires_password: bool = False


class FileUploadResponse(BaseModel):
    """Ответ после загрузки файла."""

    success: bool = True
    message: str = "File uploaded successfully"
    file: FileRecord
    shareable_link: str
    can_preview: bool


class FailedUpload(BaseModel):
    """Ошибка одного файла в пакетной загрузке."""

    file: str
    errors: List[str]


class MultipleUploadResponse(BaseModel):
    """Ответ пакетной загрузки."""

    success: bool = True
    message: str
    uploaded_files: List[FileUploadResponse]
    errors: List[FailedUpload] = []


class FileUpdate(BaseModel):
    """Изменяемые владельцем поля; отсутствующие поля не трогаются."""

    original_name: Optional[str] = Field(default=None, min_length=1, max_length=1024)
    is_public: Optional[bool] = None
    expires_at: Optional[datetime] = None


class FileUpdateResponse(BaseModel):
    success: bool = True
    message: str = "File updated successfully"
    file: FileRecord


class PasswordBody(BaseModel):
    """Тело POST-запросов к защищённым файлам."""

    password: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    count: int
    has_more: bool
    total: int


class FileListResponse(BaseModel):
    """Список файлов владельца с пагинацией."""

    success: bool = True
    files: List[FileRecord]
    pagination: Pagination
    storage_used: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class PublicFileListResponse(BaseModel):
    """Публичные файлы (сокращённые записи)."""

    success: bool = True
    files: List[FileSummary]
    page: int
    limit: int
    has_more: bool
