"""
Pydantic schemas for API request/response
"""
from fileshare.schemas.file import (
    FailedUpload,
    FileInfoResponse,
    FileListResponse,
    FileRecord,
    FileSummary,
    FileUpdate,
    FileUpdateResponse,
    FileUploadResponse,
    MessageResponse,
    MultipleUploadResponse,
    Pagination,
    PasswordBody,
    PublicFileListResponse,
)
from fileshare.schemas.user import RefreshTokenRequest, Token, UserRegister, UserResponse

__all__ = [
    "FailedUpload",
    "FileInfoResponse",
    "FileListResponse",
    "FileRecord",
    "FileSummary",
    "FileUpdate",
    "FileUpdateResponse",
    "FileUploadResponse",
    "MessageResponse",
    "MultipleUploadResponse",
    "Pagination",
    "PasswordBody",
    "PublicFileListResponse",
    "RefreshTokenRequest",
    "Token",
    "UserRegister",
    "UserResponse",
]
