"""
Главное приложение FastAPI
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from fileshare.api.v1.router import api_router
from fileshare.config import settings
from fileshare.database.connection import close_db, init_db
from fileshare.exceptions import (
    AccessDeniedError,
    ConflictError,
    ExpiredError,
    FileShareError,
    InvalidPasswordError,
    NotFoundError,
    NotPreviewableError,
    PasswordRequiredError,
    StorageFailureError,
    ValidationFailedError,
)
from fileshare.logging_config import setup_logging
from fileshare.middleware.logging_middleware import LoggingMiddleware
from fileshare.monitoring.metrics import setup_metrics
from fileshare.storage.manager import get_storage_manager
from fileshare.storage.minio_storage import MinIOStorage

logger = logging.getLogger(__name__)

# HTTP-статусы для ошибок жизненного цикла файла
ERROR_STATUS = {
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ExpiredError: status.HTTP_410_GONE,
    PasswordRequiredError: status.HTTP_401_UNAUTHORIZED,
    InvalidPasswordError: status.HTTP_401_UNAUTHORIZED,
    NotPreviewableError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    StorageFailureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan события приложения"""
    setup_logging(use_json=settings.LOG_JSON, level=settings.LOG_LEVEL)
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    await init_db(create_tables=settings.DATABASE_CREATE_TABLES)

    backend = get_storage_manager().active
    if isinstance(backend, MinIOStorage):
        await backend.ensure_bucket()
    logger.info(f"Storage backend: {backend.name}", extra={"storage_backend": backend.name})

    yield

    logger.info(f"Shutting down {settings.PROJECT_NAME}...")
    await close_db()


# Создание приложения
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="REST API сервис для обмена файлами по ссылке",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)

# Gzip Middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Custom Middleware
app.add_middleware(LoggingMiddleware)

# Настройка метрик
if settings.ENABLE_METRICS:
    setup_metrics(app)


# Обработка исключений
@app.exception_handler(FileShareError)
async def file_share_exception_handler(request: Request, exc: FileShareError):
    """Ошибки жизненного цикла файла -> HTTP статус + единый формат"""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    error = {"code": exc.code, "message": exc.message}
    if isinstance(exc, ValidationFailedError):
        error["details"] = exc.errors
    if isinstance(exc, StorageFailureError):
        logger.error(f"Storage failure on {request.url.path}: {exc.cause or exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Глобальный обработчик исключений"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "Internal server error" if not settings.DEBUG else str(exc)
            }
        }
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Проверка здоровья приложения"""
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION
    }


# API Routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Корневой endpoint"""
    return {
        "message": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": "/docs" if settings.DEBUG else "disabled",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fileshare.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else 4
    )
