"""
Health check endpoints
"""
from fastapi import APIRouter

from fileshare.config import settings
from fileshare.storage.manager import get_storage_manager

router = APIRouter()


@router.get("/")
async def health_check():
    """Проверка здоровья приложения"""
    return {
        "success": True,
        "status": "healthy",
        "message": f"{settings.PROJECT_NAME} is running",
        "storage_backend": get_storage_manager().active.name,
    }
