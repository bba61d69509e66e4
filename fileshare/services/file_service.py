"""
File lifecycle service: upload, info, download/preview, owner management, expiry sweep
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.config import get_settings
from fileshare.database.models.file import File
from fileshare.database.repositories.file_repository import FileRepository
from fileshare.exceptions import (
    AccessDeniedError,
    ConflictError,
    ExpiredError,
    InvalidPasswordError,
    NotFoundError,
    NotPreviewableError,
    PasswordRequiredError,
    StorageFailureError,
    ValidationFailedError,
)
from fileshare.monitoring.metrics import (
    track_access,
    track_rejection,
    track_storage_error,
    track_swept,
    track_upload,
)
from fileshare.schemas.file import FileRecord, FileSummary, FileUpdate
from fileshare.storage.base import ByteSource, ByteStream, StorageBackend
from fileshare.storage.exceptions import ObjectExistsError, ObjectNotFoundError, StorageError
from fileshare.storage.manager import StorageManager, get_storage_manager
from fileshare.utils.file_utils import (
    build_shareable_link,
    format_file_size,
    generate_stored_key,
    is_previewable,
    normalize_mime_type,
    sanitize_filename,
    validate_upload,
)
from fileshare.utils.timeutils import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

DOWNLOAD = "download"
PREVIEW = "preview"


@dataclass
class UploadResult:
    """Результат загрузки: запись, ссылка, можно ли предпросматривать."""

    record: FileRecord
    shareable_link: str
    can_preview: bool


@dataclass
class FileContent:
    """
    Содержимое для отдачи клиенту.

    disposition is "attachment" for downloads and "inline" for previews;
    filename is only set for attachments.
    """

    stream: ByteStream
    mime_type: str
    size_bytes: int
    disposition: str
    filename: Optional[str] = None


@dataclass
class UploadItem:
    """Один файл пакетной загрузки."""

    content: ByteSource
    filename: Optional[str]
    mime_type: Optional[str]
    size: Optional[int]


@dataclass
class BatchUploadResult:
    uploaded: List[UploadResult] = field(default_factory=list)
    failed: List[tuple] = field(default_factory=list)  # (filename, [errors])


@dataclass
class FileListPage:
    """Страница файлов владельца; has_more: эвристика len(files) == limit."""

    files: List[FileRecord]
    page: int
    limit: int
    has_more: bool
    total: int
    storage_used: int

    @property
    def count(self) -> int:
        return len(self.files)


@dataclass
class PublicFilePage:
    files: List[FileSummary]
    page: int
    limit: int
    has_more: bool


class FileService:
    """Сервис жизненного цикла файла поверх record store и storage backends."""

    def __init__(
        self,
        session: AsyncSession,
        storage: Optional[StorageManager] = None,
        repository: Optional[FileRepository] = None,
    ):
        self._session = session
        self._repo = repository or FileRepository(session)
        self._storage = storage or get_storage_manager()
        self._settings = get_settings()

    # ----- helpers -----

    def _backend_for(self, file: File) -> StorageBackend:
        try:
            return self._storage.get(file.storage_backend)
        except StorageError as e:
            raise StorageFailureError(str(e), cause=e)

    async def _get_or_404(self, file_id: str) -> File:
        try:
            file = await self._repo.get_by_id(file_id)
        except SQLAlchemyError as e:
            logger.error(f"Record lookup failed for {file_id}: {e}")
            raise StorageFailureError("Failed to read file record", cause=e)
        if file is None:
            raise NotFoundError()
        return file

    def _ensure_not_expired(self, file: File, now: datetime) -> None:
        # lazy check: the record is left untouched, the sweep removes it later
        if file.is_expired(now):
            track_rejection("expired")
            raise ExpiredError()

    async def _check_password(self, file: File, password: Optional[str]) -> None:
        if not file.is_password_protected:
            return
        if not password:
            track_rejection("password_required")
            raise PasswordRequiredError()
        if not await self._repo.verify_password(file, password):
            track_rejection("invalid_password")
            logger.info("Invalid password for file", extra={"file_id": file.id})
            raise InvalidPasswordError()

    @staticmethod
    def _ensure_visible(file: File, caller_id: Optional[str]) -> None:
        # private files are reachable by their owner only
        if file.is_public:
            return
        if caller_id is None or file.owner_id != caller_id:
            track_rejection("private")
            raise AccessDeniedError("This file is private")

    @staticmethod
    def _ensure_owner(file: File, caller_id: Optional[str]) -> None:
        # anonymous uploads have no owner and are never manageable
        if caller_id is None or file.owner_id is None or file.owner_id != caller_id:
            track_rejection("access_denied")
            raise AccessDeniedError()

    async def _commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError("Resource already exists") from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StorageFailureError("Failed to persist file record", cause=e)

    # ----- upload -----

    async def upload(
        self,
        content: ByteSource,
        filename: Optional[str],
        mime_type: Optional[str],
        size: Optional[int],
        owner_id: Optional[str] = None,
        is_public: bool = True,
        password: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        upload_ip: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> UploadResult:
        """
        Загрузка: валидация -> хранилище -> запись в БД -> ссылка.

        Args:
            content: Bytes or async iterable of chunks
            filename: User-supplied name
            mime_type: Declared content type
            size: Declared size in bytes
            owner_id: Authenticated uploader (None for anonymous)
            is_public: Public visibility
            password: Optional access password (stored hashed)
            expires_at: Expiration (default: now + LINK_EXPIRY_DAYS)
            upload_ip: Client address
            base_url: Origin for the shareable link (default: FRONTEND_URL)

        Returns:
            UploadResult

        Raises:
            ValidationFailedError: every violated rule is listed
            StorageFailureError: backend I/O failure
            ConflictError: storage key collision
        """
        settings = self._settings
        mime_type = normalize_mime_type(mime_type, filename)
        errors = validate_upload(
            filename,
            mime_type,
            size,
            max_size=settings.MAX_UPLOAD_SIZE,
            blocked_mime_types=settings.BLOCKED_MIME_TYPES,
            blocked_extensions=settings.BLOCKED_EXTENSIONS,
        )
        if not is_public and owner_id is None:
            errors.append("Private files require an authenticated uploader")
        if errors:
            logger.info(f"Upload rejected: {'; '.join(errors)}")
            raise ValidationFailedError(errors)

        original_name = sanitize_filename(filename, settings.MAX_FILENAME_LENGTH)
        stored_key = generate_stored_key(original_name)
        backend = self._storage.active

        try:
            stored = await backend.store(content, stored_key, mime_type)
        except ObjectExistsError as e:
            raise ConflictError("Storage key already exists") from e
        except StorageError as e:
            track_storage_error(backend.name, "store")
            logger.error(f"Failed to store upload: {e}", extra={"storage_backend": backend.name})
            raise StorageFailureError("Failed to store file", cause=e)

        if stored.size > settings.MAX_UPLOAD_SIZE:
            await self._discard_blob(backend, stored.location)
            raise ValidationFailedError([
                f"File too large. Maximum size is {format_file_size(settings.MAX_UPLOAD_SIZE)}",
            ])

        try:
            file = await self._repo.create(
                original_name=original_name,
                stored_key=stored_key,
                mime_type=mime_type,
                size_bytes=stored.size,
                owner_id=owner_id,
                upload_ip=upload_ip,
                storage_backend=stored.backend,
                storage_location=stored.location,
                is_public=is_public,
                password=password,
                expires_at=to_naive_utc(expires_at),
            )
            await self._commit()
        except (ConflictError, StorageFailureError):
            await self._discard_blob(backend, stored.location)
            raise
        except IntegrityError as e:
            await self._session.rollback()
            await self._discard_blob(backend, stored.location)
            raise ConflictError("Resource already exists") from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            await self._discard_blob(backend, stored.location)
            raise StorageFailureError("Failed to create file record", cause=e)

        track_upload(stored.backend, stored.size)
        logger.info(
            f"File uploaded: {stored.size} bytes",
            extra={"file_id": file.id, "user_id": owner_id, "storage_backend": stored.backend},
        )
        record = FileRecord.from_model(file, utcnow())
        return UploadResult(
            record=record,
            shareable_link=build_shareable_link(base_url or settings.FRONTEND_URL, file.id),
            can_preview=is_previewable(file.mime_type),
        )

    async def _discard_blob(self, backend: StorageBackend, location: str) -> None:
        """Удаление блоба, для которого не получилось создать запись."""
        try:
            await backend.delete(location)
        except StorageError as e:
            # orphaned blob without metadata; tolerated
            logger.warning(f"Failed to remove orphaned blob {location}: {e}")

    async def upload_many(
        self,
        items: List[UploadItem],
        **options,
    ) -> BatchUploadResult:
        """
        Пакетная загрузка: ошибка одного файла не прерывает остальные.

        Args:
            items: Files to upload
            **options: owner_id, is_public, password, expires_at, upload_ip, base_url

        Returns:
            BatchUploadResult
        """
        result = BatchUploadResult()
        for item in items:
            try:
                uploaded = await self.upload(
                    item.content,
                    item.filename,
                    item.mime_type,
                    item.size,
                    **options,
                )
                result.uploaded.append(uploaded)
            except ValidationFailedError as e:
                result.failed.append((item.filename or "", e.errors))
            except (StorageFailureError, ConflictError) as e:
                logger.error(f"Batch upload of {item.filename!r} failed: {e.message}")
                result.failed.append((item.filename or "", [e.message]))
        return result

    # ----- access -----

    async def get_info(
        self,
        file_id: str,
        password: Optional[str] = None,
        caller_id: Optional[str] = None,
    ) -> Union[FileRecord, FileSummary]:
        """
        Информация о файле; счётчики не меняются.

        Returns:
            FileSummary when the file is protected and no password was given,
            FileRecord otherwise

        Raises:
            NotFoundError, AccessDeniedError, ExpiredError, InvalidPasswordError
        """
        file = await self._get_or_404(file_id)
        self._ensure_visible(file, caller_id)
        now = utcnow()
        self._ensure_not_expired(file, now)

        if file.is_password_protected:
            if not password:
                return FileSummary(
                    id=file.id,
                    original_name=file.original_name,
                    created_at=file.created_at,
                    expires_at=file.expires_at,
                )
            if not await self._repo.verify_password(file, password):
                track_rejection("invalid_password")
                raise InvalidPasswordError()

        return FileRecord.from_model(file, now)

    async def get_content(
        self,
        file_id: str,
        mode: str = DOWNLOAD,
        password: Optional[str] = None,
        caller_id: Optional[str] = None,
    ) -> FileContent:
        """
        Скачивание или предпросмотр.

        On success the download counter is incremented exactly once and
        last_accessed_at is stamped. The caller must close the returned stream.

        Raises:
            NotFoundError, AccessDeniedError, ExpiredError, NotPreviewableError,
            PasswordRequiredError, InvalidPasswordError, StorageFailureError
        """
        if mode not in (DOWNLOAD, PREVIEW):
            raise ValueError(f"Unknown content mode: {mode}")

        file = await self._get_or_404(file_id)
        self._ensure_visible(file, caller_id)
        self._ensure_not_expired(file, utcnow())

        if mode == PREVIEW and not is_previewable(file.mime_type):
            track_rejection("not_previewable")
            raise NotPreviewableError()

        await self._check_password(file, password)

        backend = self._backend_for(file)
        try:
            stream = await backend.retrieve(file.storage_location)
        except ObjectNotFoundError as e:
            logger.error(
                "Blob missing for existing record",
                extra={"file_id": file.id, "storage_backend": file.storage_backend},
            )
            raise NotFoundError("File content not found") from e
        except StorageError as e:
            track_storage_error(file.storage_backend, "retrieve")
            raise StorageFailureError("Failed to retrieve file", cause=e)

        try:
            updated = await self._repo.increment_download(file.id)
            await self._commit()
        except BaseException:
            await stream.aclose()
            raise
        if updated is None:
            # deleted between lookup and increment
            await stream.aclose()
            raise NotFoundError()

        disposition = "attachment" if mode == DOWNLOAD else "inline"
        track_access(disposition)
        logger.info(f"File served ({mode})", extra={"file_id": file.id})
        return FileContent(
            stream=stream,
            mime_type=file.mime_type,
            size_bytes=file.size_bytes,
            disposition=disposition,
            filename=file.original_name if mode == DOWNLOAD else None,
        )

    # ----- owner management -----

    async def update_file(
        self,
        file_id: str,
        caller_id: Optional[str],
        changes: FileUpdate,
    ) -> FileRecord:
        """
        Переименование / видимость / срок действия (только владелец).

        Raises:
            NotFoundError, AccessDeniedError, ExpiredError, ValidationFailedError
        """
        file = await self._get_or_404(file_id)
        self._ensure_owner(file, caller_id)
        now = utcnow()
        self._ensure_not_expired(file, now)

        fields = changes.model_dump(exclude_unset=True)
        if "original_name" in fields:
            if fields["original_name"] is None:
                raise ValidationFailedError(["Filename cannot be empty"])
            fields["original_name"] = sanitize_filename(
                fields["original_name"], self._settings.MAX_FILENAME_LENGTH
            )
        if "is_public" in fields and fields["is_public"] is None:
            raise ValidationFailedError(["is_public must be a boolean"])
        if "expires_at" in fields:
            fields["expires_at"] = to_naive_utc(fields["expires_at"])

        try:
            updated = await self._repo.update_fields(file.id, **fields)
            await self._commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StorageFailureError("Failed to update file record", cause=e)
        if updated is None:
            raise NotFoundError()

        logger.info(
            f"File updated: {', '.join(sorted(fields)) or 'no changes'}",
            extra={"file_id": file.id, "user_id": caller_id},
        )
        return FileRecord.from_model(updated, now)

    async def delete_file(self, file_id: str, caller_id: Optional[str]) -> None:
        """
        Удаление (только владелец): сначала байты, потом запись.

        If the bytes cannot be deleted the record is kept, so metadata never
        points at nothing.

        Raises:
            NotFoundError, AccessDeniedError, StorageFailureError
        """
        file = await self._get_or_404(file_id)
        self._ensure_owner(file, caller_id)
        if not await self._remove(file):
            # removed concurrently by another delete or the sweep
            raise NotFoundError()
        logger.info("File deleted by owner", extra={"file_id": file_id, "user_id": caller_id})

    async def _remove(self, file: File) -> bool:
        backend = self._backend_for(file)
        try:
            await backend.delete(file.storage_location)
        except StorageError as e:
            track_storage_error(file.storage_backend, "delete")
            raise StorageFailureError("Failed to delete file content", cause=e)

        try:
            deleted = await self._repo.delete_by_id(file.id)
            await self._commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StorageFailureError("Failed to delete file record", cause=e)
        return deleted

    async def list_by_owner(self, owner_id: str, page: int = 1, limit: int = 20) -> FileListPage:
        """Файлы владельца, новые первыми; page >= 1, 1 <= limit <= 100."""
        page = max(1, page)
        limit = min(100, max(1, limit))
        offset = (page - 1) * limit

        files = await self._repo.get_by_owner(owner_id, offset=offset, limit=limit)
        total = await self._repo.count_by_owner(owner_id)
        storage_used = await self._repo.get_owner_storage_usage(owner_id)

        now = utcnow()
        return FileListPage(
            files=[FileRecord.from_model(f, now) for f in files],
            page=page,
            limit=limit,
            has_more=len(files) == limit,
            total=total,
            storage_used=storage_used,
        )

    async def list_public(self, page: int = 1, limit: int = 20) -> PublicFilePage:
        """
        Публичные активные файлы, новые первыми.

        Entries are reduced projections, so protected files leak no size or owner.
        """
        page = max(1, page)
        limit = min(100, max(1, limit))

        files = await self._repo.get_public(utcnow(), offset=(page - 1) * limit, limit=limit)
        return PublicFilePage(
            files=[
                FileSummary(
                    id=f.id,
                    original_name=f.original_name,
                    is_password_protected=f.is_password_protected,
                    created_at=f.created_at,
                    expires_at=f.expires_at,
                )
                for f in files
            ],
            page=page,
            limit=limit,
            has_more=len(files) == limit,
        )

    # ----- expiry sweep -----

    async def sweep_expired(self, batch_size: Optional[int] = None) -> int:
        """
        Удаление просроченных файлов: байты, затем запись.

        Batches are fetched until the backlog is drained. A failure on one
        record is logged, the record is skipped for the rest of this run and
        retried by the next one.

        Args:
            batch_size: Records per query (default: SWEEP_BATCH_SIZE)

        Returns:
            Number of records deleted
        """
        batch_size = batch_size or self._settings.SWEEP_BATCH_SIZE
        now = utcnow()
        failed = set()
        deleted = 0
        seen = 0

        while True:
            expired = await self._repo.get_expired(now, limit=batch_size, exclude_ids=failed)
            # end the read transaction before per-record deletes
            await self._session.commit()

            for file in expired:
                file_id = file.id
                try:
                    if await self._remove(file):
                        deleted += 1
                except (StorageFailureError, ConflictError) as e:
                    failed.add(file_id)
                    logger.error(
                        f"Sweep failed for expired file: {e.message}",
                        extra={"file_id": file_id},
                    )

            seen += len(expired)
            if len(expired) < batch_size:
                break

        track_swept(deleted)
        if seen:
            logger.info(f"Expiry sweep removed {deleted} of {seen} expired files")
        return deleted
