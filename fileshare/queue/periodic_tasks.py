"""
Celery periodic tasks (Beat): удаление просроченных файлов.
"""
import asyncio
import logging
from typing import Optional

from fileshare.queue.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _async_sweep_expired(batch_size: Optional[int] = None) -> int:
    """Один проход sweep'а: БД + хранилище, до batch_size записей."""
    from fileshare.database.connection import close_db, get_session_maker
    from fileshare.services.file_service import FileService
    from fileshare.storage.manager import get_storage_manager

    try:
        async with get_session_maker()() as session:
            service = FileService(session, storage=get_storage_manager())
            return await service.sweep_expired(batch_size)
    finally:
        # each asyncio.run() gets a fresh event loop; pooled connections can't cross it
        await close_db()


@celery_app.task(name="fileshare.queue.periodic_tasks.sweep_expired_files", bind=True)
def sweep_expired_files(self, batch_size: Optional[int] = None) -> str:
    """
    Периодическое удаление просроченных файлов.
    batch_size: из settings.SWEEP_BATCH_SIZE если не передан.
    """
    task_id = getattr(self.request, "id", None)
    try:
        deleted = asyncio.run(_async_sweep_expired(batch_size))
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}", exc_info=True, extra={"task_id": task_id})
        raise
    logger.info(f"Expiry sweep deleted {deleted} files", extra={"task_id": task_id})
    return f"Deleted {deleted} expired files"
