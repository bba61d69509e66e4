"""
File model
"""
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fileshare.database.models.base import BaseModel

if TYPE_CHECKING:
    from fileshare.database.models.user import User


class StorageBackendType:
    """Значения колонки storage_backend."""

    LOCAL = "local"
    OBJECT_STORE = "object-store"

    ALL = (LOCAL, OBJECT_STORE)


class File(BaseModel):
    """
    Shared file record
    
    Attributes:
        id: Primary key (UUID)
        original_name: Sanitized display name
        stored_key: Unique system-generated storage key
        mime_type: Declared content type
        size_bytes: Stored size in bytes
        owner_id: Owning user (NULL for anonymous uploads)
        upload_ip: Uploader address
        storage_backend: Backend that persisted the bytes (local | object-store)
        storage_location: Backend-specific locator (path or object key)
        is_public: Accessible without ownership checks
        password_hash: BCrypt hash, set iff the file is password-protected
        download_count: Number of successful content accesses
        expires_at: Expiration timestamp
        last_accessed_at: Last successful download or preview
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """
    
    __tablename__ = "files"
    
    original_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )
    stored_key: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False
    )
    mime_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="application/octet-stream"
    )
    size_bytes: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False
    )
    # weak reference: deleting the account nulls ownership instead of cascading
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    upload_ip: Mapped[Optional[str]] = mapped_column(
        String(45),
        nullable=True
    )
    storage_backend: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=StorageBackendType.LOCAL
    )
    storage_location: Mapped[str] = mapped_column(
        String(500),
        nullable=False
    )
    is_public: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )
    download_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        nullable=False
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )
    last_accessed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )
    
    # Relationships
    owner: Mapped[Optional["User"]] = relationship(
        "User",
        back_populates="files"
    )
    
    # Indexes
    __table_args__ = (
        Index("ix_files_owner_id", "owner_id"),
        Index("ix_files_expires_at", "expires_at"),
        Index("ix_files_created_at", "created_at"),
    )
    
    @property
    def is_password_protected(self) -> bool:
        return self.password_hash is not None
    
    def is_expired(self, now: datetime) -> bool:
        """Истёк ли срок действия ссылки на момент now (naive UTC)."""
        return self.expires_at is not None and self.expires_at < now
    
    def __repr__(self) -> str:
        return f"<File(id={self.id}, owner_id={self.owner_id}, original_name='{self.original_name}')>"
