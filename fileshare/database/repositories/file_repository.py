"""
File repository: the file record store
"""
import asyncio
from datetime import datetime, timedelta
from typing import Any, Collection, List, Optional

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.auth.security import SecurityService
from fileshare.config import get_settings
from fileshare.database.models.file import File
from fileshare.database.repositories.base import BaseRepository
from fileshare.utils.timeutils import utcnow

# Поля, которые можно менять после создания записи
MUTABLE_FIELDS = frozenset({"original_name", "is_public", "expires_at"})


class FileRepository(BaseRepository[File]):
    """
    Repository for File model operations
    """

    def __init__(self, session: AsyncSession, security: Optional[SecurityService] = None):
        """
        Initialize FileRepository

        Args:
            session: Async database session
            security: Password hashing service (default: bcrypt at PASSWORD_HASH_ROUNDS)
        """
        super().__init__(File, session)
        self.security = security or SecurityService()

    async def create(
        self,
        original_name: str,
        stored_key: str,
        size_bytes: int,
        storage_backend: str,
        storage_location: str,
        mime_type: str = "application/octet-stream",
        owner_id: Optional[str] = None,
        is_public: bool = True,
        password: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        upload_ip: Optional[str] = None,
        **kwargs: Any
    ) -> File:
        """
        Create a new file record

        Args:
            original_name: Sanitized display name
            stored_key: Unique storage key
            size_bytes: File size in bytes
            storage_backend: Backend name that stored the bytes
            storage_location: Backend-specific locator
            mime_type: MIME type
            owner_id: Owning user ID (None for anonymous uploads)
            is_public: Public visibility flag
            password: Plain text password (will be hashed)
            expires_at: Expiration (default: now + LINK_EXPIRY_DAYS)
            upload_ip: Uploader address
            **kwargs: Additional file fields

        Returns:
            Created file instance
        """
        password_hash = None
        if password:
            # bcrypt runs in a worker thread
            password_hash = await asyncio.to_thread(self.security.hash_password, password)

        if expires_at is None:
            expires_at = utcnow() + timedelta(days=get_settings().LINK_EXPIRY_DAYS)

        file = File(
            original_name=original_name,
            stored_key=stored_key,
            mime_type=mime_type or "application/octet-stream",
            size_bytes=size_bytes,
            owner_id=owner_id,
            upload_ip=upload_ip,
            storage_backend=storage_backend,
            storage_location=storage_location,
            is_public=is_public,
            password_hash=password_hash,
            download_count=0,
            expires_at=expires_at,
            **kwargs
        )
        self.session.add(file)
        await self.session.flush()
        await self.session.refresh(file)
        return file

    async def get_by_stored_key(self, stored_key: str) -> Optional[File]:
        """
        Get file by storage key

        Args:
            stored_key: Storage key

        Returns:
            File instance or None if not found
        """
        stmt = select(File).where(File.stored_key == stored_key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_owner(
        self,
        owner_id: str,
        offset: int = 0,
        limit: int = 20
    ) -> List[File]:
        """
        Get files of an owner, newest first

        Args:
            owner_id: User ID
            offset: Number of files to skip
            limit: Maximum number of files to return

        Returns:
            List of file instances
        """
        stmt = (
            select(File)
            .where(File.owner_id == owner_id)
            .order_by(File.created_at.desc(), File.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_owner(self, owner_id: str) -> int:
        """Количество файлов пользователя."""
        return await self.count(owner_id=owner_id)

    async def get_owner_storage_usage(self, owner_id: str) -> int:
        """
        Get total storage usage for an owner

        Args:
            owner_id: User ID

        Returns:
            Total storage usage in bytes
        """
        stmt = select(func.sum(File.size_bytes)).where(File.owner_id == owner_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def update_fields(self, file_id: str, **fields: Any) -> Optional[File]:
        """
        Update mutable fields of a file record

        Args:
            file_id: File ID
            **fields: original_name, is_public and/or expires_at

        Returns:
            Updated file instance or None if not found

        Raises:
            ValueError: If an immutable field is passed
        """
        immutable = set(fields) - MUTABLE_FIELDS
        if immutable:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(immutable))}")
        if not fields:
            return await self.get_by_id(file_id)
        return await self.update_by_id(file_id, updated_at=utcnow(), **fields)

    async def increment_download(self, file_id: str) -> Optional[File]:
        """
        Atomically increment download_count and stamp last_accessed_at

        Single UPDATE statement, so concurrent callers never lose increments.

        Args:
            file_id: File ID

        Returns:
            Updated file instance or None if not found
        """
        return await self.update_by_id(
            file_id,
            download_count=File.download_count + 1,
            last_accessed_at=utcnow(),
        )

    async def get_expired(
        self,
        now: Optional[datetime] = None,
        limit: int = 500,
        exclude_ids: Optional[Collection[str]] = None,
    ) -> List[File]:
        """
        Записи с истёкшим expires_at (для sweep), самые старые первыми.

        Args:
            now: Reference time (default: current UTC time)
            limit: Batch size
            exclude_ids: Records to skip (e.g. ones that already failed in this sweep)
        """
        now = now or utcnow()
        stmt = select(File).where(and_(File.expires_at.is_not(None), File.expires_at < now))
        if exclude_ids:
            stmt = stmt.where(File.id.not_in(list(exclude_ids)))
        stmt = stmt.order_by(File.expires_at.asc(), File.id.asc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_public(
        self,
        now: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 20
    ) -> List[File]:
        """
        Get public, not yet expired files, newest first

        Args:
            now: Reference time (default: current UTC time)
            offset: Number of files to skip
            limit: Maximum number of files to return

        Returns:
            List of file instances
        """
        now = now or utcnow()
        stmt = (
            select(File)
            .where(
                File.is_public.is_(True),
                or_(File.expires_at.is_(None), File.expires_at >= now),
            )
            .order_by(File.created_at.desc(), File.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_expired(self, now: Optional[datetime] = None) -> List[File]:
        """
        Bulk delete of expired records

        Removes metadata only; blobs are the caller's concern.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            Deleted file records
        """
        now = now or utcnow()
        stmt = (
            delete(File)
            .where(and_(File.expires_at.is_not(None), File.expires_at < now))
            .returning(File)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def clear_owner(self, owner_id: str) -> int:
        """
        Отвязать файлы от удаляемого пользователя (owner_id = NULL).

        Returns:
            Number of detached files
        """
        stmt = (
            update(File)
            .where(File.owner_id == owner_id)
            .values(owner_id=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def verify_password(self, file: File, candidate: Optional[str]) -> bool:
        """
        Check a candidate password against the file's hash

        Always True for files without a password. The bcrypt check runs
        in a worker thread.
        """
        if not file.password_hash:
            return True
        if candidate is None:
            return False
        return await asyncio.to_thread(
            self.security.verify_password, candidate, file.password_hash
        )
