"""
Files API: upload, info, download, preview, owner management
"""
from datetime import datetime
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.background import BackgroundTask

from fileshare.auth.dependencies import get_current_active_user, get_optional_current_user
from fileshare.config import settings
from fileshare.database.connection import get_db
from fileshare.database.models.user import User
from fileshare.exceptions import ValidationFailedError
from fileshare.schemas.file import (
    FailedUpload,
    FileInfoResponse,
    FileListResponse,
    FileRecord,
    FileUpdate,
    FileUpdateResponse,
    FileUploadResponse,
    MessageResponse,
    MultipleUploadResponse,
    Pagination,
    PasswordBody,
    PublicFileListResponse,
)
from fileshare.services.file_service import (
    DOWNLOAD,
    PREVIEW,
    FileService,
    UploadItem,
    UploadResult,
)
from fileshare.storage.manager import get_storage_manager
from fileshare.utils.file_utils import content_disposition, is_previewable

router = APIRouter()


async def get_file_service(db: AsyncSession = Depends(get_db)) -> FileService:
    return FileService(db, storage=get_storage_manager())


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _caller_id(user: Optional[User]) -> Optional[str]:
    return user.id if user else None


def _pick_password(*candidates: Optional[str]) -> Optional[str]:
    """Первый непустой пароль: заголовок, query, тело."""
    for candidate in candidates:
        if candidate:
            return candidate
    return None


async def _iter_upload(upload: UploadFile) -> AsyncIterator[bytes]:
    """Чтение UploadFile чанками без загрузки целиком в память."""
    while True:
        chunk = await upload.read(settings.STORAGE_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


def _upload_response(result: UploadResult) -> FileUploadResponse:
    return FileUploadResponse(
        file=result.record,
        shareable_link=result.shareable_link,
        can_preview=result.can_preview,
    )


def _content_response(service_result) -> StreamingResponse:
    stream = service_result.stream
    return StreamingResponse(
        stream,
        media_type=service_result.mime_type,
        headers={
            "Content-Disposition": content_disposition(
                service_result.disposition, service_result.filename
            ),
            "Content-Length": str(service_result.size_bytes),
        },
        # stream closes itself when drained; this covers aborted responses
        background=BackgroundTask(stream.aclose),
    )


@router.post(
    "/upload",
    response_model=FileUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    password: Optional[str] = Form(None),
    is_public: bool = Form(True),
    expires_at: Optional[datetime] = Form(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: FileService = Depends(get_file_service),
):
    """Загрузка файла (multipart/form-data); аноним или владелец по токену."""
    result = await service.upload(
        _iter_upload(file),
        filename=file.filename,
        mime_type=file.content_type,
        size=file.size,
        owner_id=_caller_id(current_user),
        is_public=is_public,
        password=password or None,
        expires_at=expires_at,
        upload_ip=_client_ip(request),
    )
    return _upload_response(result)


@router.post(
    "/upload-multiple",
    response_model=MultipleUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_multiple_files(
    request: Request,
    files: List[UploadFile] = File(...),
    password: Optional[str] = Form(None),
    is_public: bool = Form(True),
    expires_at: Optional[datetime] = Form(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: FileService = Depends(get_file_service),
):
    """Пакетная загрузка; ошибки отдельных файлов возвращаются в errors."""
    if len(files) > settings.MAX_FILES_PER_REQUEST:
        raise ValidationFailedError(
            [f"Too many files. Maximum is {settings.MAX_FILES_PER_REQUEST} per request"]
        )

    items = [
        UploadItem(
            content=_iter_upload(f),
            filename=f.filename,
            mime_type=f.content_type,
            size=f.size,
        )
        for f in files
    ]
    batch = await service.upload_many(
        items,
        owner_id=_caller_id(current_user),
        is_public=is_public,
        password=password or None,
        expires_at=expires_at,
        upload_ip=_client_ip(request),
    )
    return MultipleUploadResponse(
        message=f"{len(batch.uploaded)} files uploaded successfully",
        uploaded_files=[_upload_response(r) for r in batch.uploaded],
        errors=[FailedUpload(file=name, errors=errors) for name, errors in batch.failed],
    )


@router.get("/public", response_model=PublicFileListResponse)
async def list_public_files(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: FileService = Depends(get_file_service),
):
    """Публичные активные файлы, новые первыми."""
    result = await service.list_public(page=page, limit=limit)
    return PublicFileListResponse(
        files=result.files,
        page=result.page,
        limit=result.limit,
        has_more=result.has_more,
    )


async def _file_info(
    service: FileService,
    file_id: str,
    password: Optional[str],
    caller: Optional[User],
) -> FileInfoResponse:
    info = await service.get_info(file_id, password, caller_id=_caller_id(caller))
    if isinstance(info, FileRecord):
        return FileInfoResponse(
            file=info,
            can_preview=is_previewable(info.mime_type),
            requires_password=False,
        )
    return FileInfoResponse(file=info, can_preview=False, requires_password=True)


@router.get("/{file_id}/info", response_model=FileInfoResponse)
async def get_file_info(
    file_id: str,
    password: Optional[str] = Query(None),
    x_file_password: Optional[str] = Header(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: FileService = Depends(get_file_service),
):
    """Информация о файле; для защищённых без пароля сокращённая."""
    return await _file_info(
        service, file_id, _pick_password(x_file_password, password), current_user
    )


@router.post("/{file_id}/info", response_model=FileInfoResponse)
async def get_file_info_with_password(
    file_id: str,
    body: Optional[PasswordBody] = None,
    x_file_password: Optional[str] = Header(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: FileService = Depends(get_file_service),
):
    """Информация о защищённом файле (пароль в теле запроса)."""
    return await _file_info(
        service, file_id, _pick_password(x_file_password, body.password if body else None),
        current_user,
    )


@router.get("/{file_id}/download")
async def download_file(
    file_id: str,
    password: Optional[str] = Query(None),
    x_file_password: Optional[str] = Header(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: FileService = Depends(get_file_service),
):
    """Скачивание файла (stream, attachment)."""
    content = await service.get_content(
        file_id, DOWNLOAD, _pick_password(x_file_password, password),
        caller_id=_caller_id(current_user),
    )
    return _content_response(content)


@router.post("/{file_id}/download")
async def download_file_with_password(
    file_id: str,
    body: Optional[PasswordBody] = None,
    x_file_password: Optional[str] = Header(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: FileService = Depends(get_file_service),
):
    """Скачивание защищённого файла (пароль в теле запроса)."""
    content = await service.get_content(
        file_id, DOWNLOAD, _pick_password(x_file_password, body.password if body else None),
        caller_id=_caller_id(current_user),
    )
    return _content_response(content)


@router.get("/{file_id}/preview")
async def preview_file(
    file_id: str,
    password: Optional[str] = Query(None),
    x_file_password: Optional[str] = Header(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    service: FileService = Depends(get_file_service),
):
    """Предпросмотр (inline) для изображений, текста, видео, аудио и PDF."""
    content = await service.get_content(
        file_id, PREVIEW, _pick_password(x_file_password, password),
        caller_id=_caller_id(current_user),
    )
    return _content_response(content)


@router.patch("/{file_id}", response_model=FileUpdateResponse)
@router.put("/{file_id}", response_model=FileUpdateResponse)
async def update_file(
    file_id: str,
    changes: FileUpdate,
    current_user: User = Depends(get_current_active_user),
    service: FileService = Depends(get_file_service),
):
    """Изменение имени, видимости или срока действия (только владелец)."""
    record = await service.update_file(file_id, current_user.id, changes)
    return FileUpdateResponse(file=record)


@router.delete("/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: str,
    current_user: User = Depends(get_current_active_user),
    service: FileService = Depends(get_file_service),
):
    """Удаление файла (только владелец)."""
    await service.delete_file(file_id, current_user.id)
    return MessageResponse(message="File deleted successfully")


@router.get("", response_model=FileListResponse)
async def list_files(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: FileService = Depends(get_file_service),
):
    """Список файлов пользователя с пагинацией."""
    result = await service.list_by_owner(current_user.id, page=page, limit=limit)
    return FileListResponse(
        files=result.files,
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            count=result.count,
            has_more=result.has_more,
            total=result.total,
        ),
        storage_used=result.storage_used,
    )
