"""
API v1 Router
"""
from fastapi import APIRouter

from fileshare.api.v1.auth import router as auth_router
from fileshare.api.v1.files import router as files_router
from fileshare.api.v1.health import router as health_router

api_router = APIRouter()

# Подключение роутеров
api_router.include_router(health_router, prefix="/health", tags=["Health"])
api_router.include_router(files_router, prefix="/files", tags=["Files"])
api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])
