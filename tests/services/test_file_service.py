"""
Unit tests for FileService (file lifecycle)
"""
import asyncio
from datetime import timedelta

import pytest

from fileshare.database.repositories.file_repository import FileRepository
from fileshare.exceptions import (
    AccessDeniedError,
    ExpiredError,
    InvalidPasswordError,
    NotFoundError,
    NotPreviewableError,
    PasswordRequiredError,
    StorageFailureError,
    ValidationFailedError,
)
from fileshare.schemas.file import FileRecord, FileSummary, FileUpdate
from fileshare.services.file_service import DOWNLOAD, PREVIEW, FileService, UploadItem
from fileshare.storage.manager import StorageManager
from fileshare.storage.minio_storage import MinIOStorage
from fileshare.utils.timeutils import utcnow


async def _upload(service, content=b"hello", filename="a.txt", mime_type="text/plain", **kwargs):
    return await service.upload(content, filename, mime_type, len(content), **kwargs)


class TestUpload:
    """Загрузка файлов"""

    @pytest.mark.asyncio
    async def test_fresh_upload(self, file_service, local_storage):
        result = await _upload(file_service, b"hello world", "notes.txt")
        record = result.record

        assert record.download_count == 0
        assert record.last_accessed_at is None
        assert record.original_name == "notes.txt"
        assert record.size_bytes == 11
        assert record.size_formatted == "11 Bytes"
        assert record.storage_backend == "local"
        assert record.is_public is True
        assert not record.is_password_protected
        assert not record.is_expired
        assert result.can_preview is True
        assert result.shareable_link == f"https://share.example.com/download/{record.id}"

        stream = await local_storage.retrieve(record.storage_location)
        assert await stream.read() == b"hello world"

    @pytest.mark.asyncio
    async def test_internal_fields_not_serialized(self, file_service):
        result = await _upload(file_service)
        payload = result.record.model_dump()

        assert "stored_key" not in payload
        assert "storage_location" not in payload
        assert "storage_backend" not in payload
        assert "password_hash" not in payload

    @pytest.mark.asyncio
    async def test_owner_and_custom_base_url(self, file_service, sample_user):
        result = await _upload(
            file_service, owner_id=sample_user.id, base_url="http://localhost:5173/"
        )

        assert result.record.owner_id == sample_user.id
        assert result.shareable_link.startswith("http://localhost:5173/download/")

    @pytest.mark.asyncio
    async def test_filename_sanitized(self, file_service):
        result = await _upload(file_service, filename="../../evil<name>.txt")

        assert result.record.original_name == "_.._evil_name_.txt"

    @pytest.mark.asyncio
    async def test_password_is_never_in_link(self, file_service):
        result = await _upload(file_service, password="secret123")

        assert "secret123" not in result.shareable_link
        assert result.record.is_password_protected

    @pytest.mark.asyncio
    async def test_validation_collects_all_errors(self, file_service, monkeypatch):
        monkeypatch.setattr(file_service._settings, "MAX_UPLOAD_SIZE", 4)

        with pytest.raises(ValidationFailedError, match="File validation failed") as exc_info:
            await _upload(file_service, b"too big", "run.exe", "application/x-msdownload")

        assert len(exc_info.value.errors) == 3

    @pytest.mark.asyncio
    async def test_streamed_size_limit(self, file_service, local_storage, monkeypatch):
        monkeypatch.setattr(file_service._settings, "MAX_UPLOAD_SIZE", 4)

        async def chunks():
            yield b"123"
            yield b"456"

        with pytest.raises(ValidationFailedError):
            await file_service.upload(chunks(), "a.txt", "text/plain", None)

        assert not any(local_storage.root.iterdir())

    @pytest.mark.asyncio
    async def test_storage_failure_creates_no_record(self, test_db, memory_storage, memory_storage_manager):
        service = FileService(test_db, storage=memory_storage_manager)
        memory_storage.fail_on.add("store")

        with pytest.raises(StorageFailureError):
            await _upload(service)

        assert await FileRepository(test_db).count() == 0

    @pytest.mark.asyncio
    async def test_upload_many_isolates_failures(self, file_service):
        batch = await file_service.upload_many([
            UploadItem(content=b"ok", filename="ok.txt", mime_type="text/plain", size=2),
            UploadItem(content=b"MZ", filename="bad.exe", mime_type="application/octet-stream", size=2),
            UploadItem(content=b"ok2", filename="ok2.txt", mime_type="text/plain", size=3),
        ])

        assert [r.record.original_name for r in batch.uploaded] == ["ok.txt", "ok2.txt"]
        assert batch.failed == [("bad.exe", ["File extension not allowed for security reasons: .exe"])]

    @pytest.mark.asyncio
    async def test_object_store_round_trip(self, test_db, mock_minio):
        backend = MinIOStorage(mock_minio, "fileshare-files", chunk_size=3)
        service = FileService(test_db, storage=StorageManager({backend.name: backend}, backend.name))

        result = await _upload(service, b"object bytes", "obj.bin", "application/octet-stream")
        assert result.record.storage_backend == "object-store"

        content = await service.get_content(result.record.id)
        assert await content.stream.read() == b"object bytes"


class TestInfo:
    """Информация о файле"""

    @pytest.mark.asyncio
    async def test_unprotected_ignores_password(self, file_service):
        result = await _upload(file_service)

        for password in (None, "", "whatever"):
            info = await file_service.get_info(result.record.id, password)
            assert isinstance(info, FileRecord)
            assert info.download_count == 0

    @pytest.mark.asyncio
    async def test_protected_without_password_is_summary(self, file_service):
        result = await _upload(file_service, password="secret123")

        info = await file_service.get_info(result.record.id)

        assert isinstance(info, FileSummary)
        assert info.is_password_protected
        assert not hasattr(info, "size_bytes")

    @pytest.mark.asyncio
    async def test_protected_password_checks(self, file_service):
        result = await _upload(file_service, password="secret123")

        with pytest.raises(InvalidPasswordError):
            await file_service.get_info(result.record.id, "wrong")

        info = await file_service.get_info(result.record.id, "secret123")
        assert isinstance(info, FileRecord)
        assert info.download_count == 0

    @pytest.mark.asyncio
    async def test_not_found(self, file_service):
        with pytest.raises(NotFoundError):
            await file_service.get_info("does-not-exist")


class TestContent:
    """Скачивание и предпросмотр"""

    @pytest.mark.asyncio
    async def test_download(self, file_service):
        result = await _upload(file_service, b"payload", "report.txt")

        content = await file_service.get_content(result.record.id, DOWNLOAD)

        assert await content.stream.read() == b"payload"
        assert content.disposition == "attachment"
        assert content.filename == "report.txt"
        assert content.mime_type == "text/plain"
        assert content.size_bytes == 7

        info = await file_service.get_info(result.record.id)
        assert info.download_count == 1
        assert info.last_accessed_at is not None

    @pytest.mark.asyncio
    async def test_preview_text_file(self, file_service):
        result = await _upload(file_service, b"hello", "a.txt", "text/plain")

        content = await file_service.get_content(result.record.id, PREVIEW)

        assert await content.stream.read() == b"hello"
        assert content.disposition == "inline"
        assert content.filename is None
        assert (await file_service.get_info(result.record.id)).download_count == 1

    @pytest.mark.asyncio
    async def test_preview_not_allowed(self, file_service):
        result = await _upload(file_service, b"PK", "archive.zip", "application/zip")

        with pytest.raises(NotPreviewableError):
            await file_service.get_content(result.record.id, PREVIEW)

        assert (await file_service.get_info(result.record.id)).download_count == 0

    @pytest.mark.asyncio
    async def test_password_protected_download(self, file_service):
        result = await _upload(file_service, b"classified", "plan.txt", password="secret123")
        file_id = result.record.id

        with pytest.raises(PasswordRequiredError):
            await file_service.get_content(file_id)
        with pytest.raises(InvalidPasswordError):
            await file_service.get_content(file_id, password="wrong")

        content = await file_service.get_content(file_id, password="secret123")
        assert await content.stream.read() == b"classified"

        info = await file_service.get_info(file_id, "secret123")
        assert info.download_count == 1

    @pytest.mark.asyncio
    async def test_expired_file_rejects_every_access(self, file_service, test_db):
        result = await _upload(file_service, expires_at=utcnow() - timedelta(days=1))
        file_id = result.record.id

        with pytest.raises(ExpiredError):
            await file_service.get_info(file_id)
        with pytest.raises(ExpiredError):
            await file_service.get_content(file_id, DOWNLOAD)
        with pytest.raises(ExpiredError):
            await file_service.get_content(file_id, PREVIEW)

        record = await FileRepository(test_db).get_by_id(file_id)
        assert record is not None
        assert record.download_count == 0

    @pytest.mark.asyncio
    async def test_retrieve_failure_keeps_counter(self, test_db, memory_storage, memory_storage_manager):
        service = FileService(test_db, storage=memory_storage_manager)
        result = await _upload(service)
        memory_storage.fail_on.add("retrieve")

        with pytest.raises(StorageFailureError):
            await service.get_content(result.record.id)

        assert (await service.get_info(result.record.id)).download_count == 0

    @pytest.mark.asyncio
    async def test_missing_blob_is_not_found(self, test_db, memory_storage, memory_storage_manager):
        service = FileService(test_db, storage=memory_storage_manager)
        result = await _upload(service)
        memory_storage.objects.clear()

        with pytest.raises(NotFoundError):
            await service.get_content(result.record.id)

    @pytest.mark.asyncio
    async def test_concurrent_downloads_are_all_counted(self, session_maker, storage_manager):
        async with session_maker() as session:
            result = await _upload(FileService(session, storage=storage_manager), b"shared")
        file_id = result.record.id

        async def download():
            async with session_maker() as session:
                content = await FileService(session, storage=storage_manager).get_content(file_id)
                return await content.stream.read()

        bodies = await asyncio.gather(*(download() for _ in range(8)))

        assert bodies == [b"shared"] * 8
        async with session_maker() as session:
            info = await FileService(session, storage=storage_manager).get_info(file_id)
        assert info.download_count == 8


class TestVisibility:
    """Приватные и публичные файлы"""

    @pytest.mark.asyncio
    async def test_private_file_is_owner_only(self, file_service, sample_user, other_user):
        result = await _upload(file_service, owner_id=sample_user.id, is_public=False)
        file_id = result.record.id

        for caller_id in (None, other_user.id):
            with pytest.raises(AccessDeniedError):
                await file_service.get_info(file_id, caller_id=caller_id)
            with pytest.raises(AccessDeniedError):
                await file_service.get_content(file_id, DOWNLOAD, caller_id=caller_id)

        info = await file_service.get_info(file_id, caller_id=sample_user.id)
        assert info.download_count == 0

        content = await file_service.get_content(file_id, PREVIEW, caller_id=sample_user.id)
        assert await content.stream.read() == b"hello"
        assert (await file_service.get_info(file_id, caller_id=sample_user.id)).download_count == 1

    @pytest.mark.asyncio
    async def test_private_file_still_needs_password(self, file_service, sample_user):
        result = await _upload(
            file_service, owner_id=sample_user.id, is_public=False, password="secret123"
        )

        with pytest.raises(PasswordRequiredError):
            await file_service.get_content(result.record.id, caller_id=sample_user.id)

    @pytest.mark.asyncio
    async def test_anonymous_private_upload_rejected(self, file_service):
        with pytest.raises(ValidationFailedError) as exc_info:
            await _upload(file_service, is_public=False)

        assert "Private files require an authenticated uploader" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_list_public(self, file_service, sample_user):
        await _upload(file_service, filename="private.txt", owner_id=sample_user.id, is_public=False)
        await _upload(file_service, filename="gone.txt", expires_at=utcnow() - timedelta(minutes=1))
        await _upload(file_service, filename="open.txt")
        await _upload(file_service, filename="locked.txt", password="secret123")

        page = await file_service.list_public()

        assert {f.original_name: f.is_password_protected for f in page.files} == {
            "open.txt": False,
            "locked.txt": True,
        }
        assert all(isinstance(f, FileSummary) for f in page.files)
        assert page.has_more is False


class TestOwnerOperations:
    """Изменение, удаление и список файлов владельца"""

    @pytest.mark.asyncio
    async def test_update(self, file_service, sample_user):
        result = await _upload(file_service, owner_id=sample_user.id)
        new_expiry = utcnow() + timedelta(days=30)

        updated = await file_service.update_file(
            result.record.id,
            sample_user.id,
            FileUpdate(original_name="new:name.txt", is_public=False, expires_at=new_expiry),
        )

        assert updated.original_name == "new_name.txt"
        assert updated.is_public is False
        assert updated.expires_at == new_expiry
        assert updated.stored_key == result.record.stored_key

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, file_service, sample_user):
        result = await _upload(file_service, owner_id=sample_user.id)

        updated = await file_service.update_file(
            result.record.id, sample_user.id, FileUpdate(is_public=False)
        )

        assert updated.original_name == "a.txt"
        assert updated.expires_at == result.record.expires_at

    @pytest.mark.asyncio
    async def test_update_by_non_owner(self, file_service, sample_user, other_user):
        result = await _upload(file_service, owner_id=sample_user.id)

        with pytest.raises(AccessDeniedError):
            await file_service.update_file(result.record.id, other_user.id, FileUpdate(is_public=False))

    @pytest.mark.asyncio
    async def test_anonymous_file_is_not_manageable(self, file_service, sample_user):
        result = await _upload(file_service)

        with pytest.raises(AccessDeniedError):
            await file_service.update_file(result.record.id, sample_user.id, FileUpdate(is_public=False))
        with pytest.raises(AccessDeniedError):
            await file_service.delete_file(result.record.id, None)

    @pytest.mark.asyncio
    async def test_update_expired(self, file_service, sample_user):
        result = await _upload(
            file_service, owner_id=sample_user.id, expires_at=utcnow() - timedelta(hours=1)
        )

        with pytest.raises(ExpiredError):
            await file_service.update_file(
                result.record.id, sample_user.id, FileUpdate(expires_at=utcnow() + timedelta(days=1))
            )

    @pytest.mark.asyncio
    async def test_delete_by_non_owner(self, file_service, sample_user, other_user, local_storage):
        result = await _upload(file_service, owner_id=sample_user.id)

        with pytest.raises(AccessDeniedError):
            await file_service.delete_file(result.record.id, other_user.id)

        assert await local_storage.exists(result.record.storage_location)
        assert isinstance(await file_service.get_info(result.record.id), FileRecord)

    @pytest.mark.asyncio
    async def test_delete_by_owner(self, file_service, sample_user, local_storage):
        result = await _upload(file_service, owner_id=sample_user.id)

        await file_service.delete_file(result.record.id, sample_user.id)

        assert not await local_storage.exists(result.record.storage_location)
        with pytest.raises(NotFoundError):
            await file_service.get_info(result.record.id)

    @pytest.mark.asyncio
    async def test_delete_expired_file(self, file_service, sample_user):
        result = await _upload(
            file_service, owner_id=sample_user.id, expires_at=utcnow() - timedelta(hours=1)
        )

        await file_service.delete_file(result.record.id, sample_user.id)

        with pytest.raises(NotFoundError):
            await file_service.get_info(result.record.id)

    @pytest.mark.asyncio
    async def test_delete_storage_failure_keeps_record(
        self, test_db, sample_user, memory_storage, memory_storage_manager
    ):
        service = FileService(test_db, storage=memory_storage_manager)
        result = await _upload(service, owner_id=sample_user.id)
        memory_storage.fail_on.add("delete")

        with pytest.raises(StorageFailureError):
            await service.delete_file(result.record.id, sample_user.id)

        assert await FileRepository(test_db).get_by_id(result.record.id) is not None

    @pytest.mark.asyncio
    async def test_delete_after_concurrent_removal(
        self, test_db, sample_user, memory_storage, memory_storage_manager
    ):
        service = FileService(test_db, storage=memory_storage_manager)
        result = await _upload(service, owner_id=sample_user.id)
        original_delete = memory_storage.delete

        async def delete_racing_sweep(location):
            # the record disappears while the bytes are being deleted
            await FileRepository(test_db).delete_by_id(result.record.id)
            await original_delete(location)

        memory_storage.delete = delete_racing_sweep

        with pytest.raises(NotFoundError):
            await service.delete_file(result.record.id, sample_user.id)

    @pytest.mark.asyncio
    async def test_list_by_owner(self, file_service, sample_user, other_user):
        for i in range(3):
            await _upload(file_service, f"file {i}".encode(), f"{i}.txt", owner_id=sample_user.id)
        await _upload(file_service, owner_id=other_user.id)

        first = await file_service.list_by_owner(sample_user.id, page=1, limit=2)
        second = await file_service.list_by_owner(sample_user.id, page=2, limit=2)

        assert first.count == 2
        assert first.has_more is True
        assert first.total == 3
        assert second.count == 1
        assert second.has_more is False
        assert first.storage_used == 18
        assert {f.owner_id for f in first.files + second.files} == {sample_user.id}

    @pytest.mark.asyncio
    async def test_list_limits_are_clamped(self, file_service, sample_user):
        page = await file_service.list_by_owner(sample_user.id, page=0, limit=1000)

        assert page.page == 1
        assert page.limit == 100
        assert page.files == []


class TestSweep:
    """Удаление просроченных файлов"""

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired(self, file_service, local_storage):
        past = utcnow() - timedelta(minutes=5)
        expired = [await _upload(file_service, expires_at=past) for _ in range(2)]
        active = await _upload(file_service)

        assert await file_service.sweep_expired() == 2

        for result in expired:
            assert not await local_storage.exists(result.record.storage_location)
            with pytest.raises(NotFoundError):
                await file_service.get_info(result.record.id)
        assert isinstance(await file_service.get_info(active.record.id), FileRecord)

    @pytest.mark.asyncio
    async def test_second_sweep_deletes_nothing(self, file_service):
        await _upload(file_service, expires_at=utcnow() - timedelta(minutes=5))

        assert await file_service.sweep_expired() == 1
        assert await file_service.sweep_expired() == 0

    @pytest.mark.asyncio
    async def test_sweep_drains_backlog_larger_than_batch(self, file_service):
        for _ in range(5):
            await _upload(file_service, expires_at=utcnow() - timedelta(minutes=5))
        active = await _upload(file_service)

        assert await file_service.sweep_expired(batch_size=2) == 5
        assert await file_service.sweep_expired(batch_size=2) == 0
        assert isinstance(await file_service.get_info(active.record.id), FileRecord)

    @pytest.mark.asyncio
    async def test_failing_oldest_record_does_not_block_newer(
        self, test_db, memory_storage, memory_storage_manager
    ):
        service = FileService(test_db, storage=memory_storage_manager)
        stuck = await _upload(service, expires_at=utcnow() - timedelta(hours=2))
        newer = await _upload(service, expires_at=utcnow() - timedelta(hours=1))
        memory_storage.fail_locations.add(stuck.record.storage_location)

        assert await service.sweep_expired(batch_size=1) == 1

        repo = FileRepository(test_db)
        assert await repo.get_by_id(newer.record.id) is None
        assert newer.record.storage_location not in memory_storage.objects
        assert await repo.get_by_id(stuck.record.id) is not None

        memory_storage.fail_locations.clear()
        assert await service.sweep_expired(batch_size=1) == 1
        assert await repo.get_by_id(stuck.record.id) is None

    @pytest.mark.asyncio
    async def test_sweep_skips_failures(self, test_db, memory_storage, memory_storage_manager):
        service = FileService(test_db, storage=memory_storage_manager)
        result = await _upload(service, expires_at=utcnow() - timedelta(minutes=5))
        memory_storage.fail_on.add("delete")

        assert await service.sweep_expired() == 0
        assert await FileRepository(test_db).get_by_id(result.record.id) is not None

        memory_storage.fail_on.clear()
        assert await service.sweep_expired() == 1
