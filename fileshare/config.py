from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Настройки приложения"""

    # Database
    POSTGRES_DB: str = "fileshare"
    POSTGRES_USER: str = "postgres_user"
    POSTGRES_PASSWORD: str = "postgres_password"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    # create_all on startup (no migrations tool)
    DATABASE_CREATE_TABLES: bool = True

    # Redis (Celery broker)
    REDIS_URL: str = "redis://redis:6379/0"

    # Storage backend selection: "local" or "object-store"
    STORAGE_BACKEND: str = "local"
    UPLOAD_DIR: str = "./uploads"
    STORAGE_CHUNK_SIZE: int = 65536

    # MinIO / S3-compatible object store
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_BUCKET_NAME: str = "fileshare-files"
    MINIO_SECURE: bool = False
    MINIO_REGION: str = ""
    OBJECT_STORE_PREFIX: str = "uploads/"
    OBJECT_STORE_SSE: bool = True
    OBJECT_STORE_STORAGE_CLASS: str = "STANDARD_IA"

    # JWT
    JWT_SECRET: str = "change-this-secret-key-minimum-32-characters"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Password hashing (bcrypt work factor, used for accounts and file passwords)
    PASSWORD_HASH_ROUNDS: int = 12

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "File Share Service"
    VERSION: str = "1.0.0"
    FRONTEND_URL: str = "http://localhost:3000"

    # Upload settings
    MAX_UPLOAD_SIZE: int = 104857600  # 100MB
    MAX_FILES_PER_REQUEST: int = 10
    MAX_FILENAME_LENGTH: int = 255
    BLOCKED_MIME_TYPES: List[str] = [
        "application/x-msdownload",
        "application/x-msdos-program",
        "application/x-executable",
        "application/x-dosexec",
        "application/vnd.microsoft.portable-executable",
        "application/x-sh",
        "application/x-bat",
        "application/x-msi",
        "application/java-archive",
    ]
    BLOCKED_EXTENSIONS: List[str] = ["exe", "bat", "cmd", "com", "scr", "vbs", "js", "jar"]

    # Links
    LINK_EXPIRY_DAYS: int = 7

    # Expiry sweep
    SWEEP_INTERVAL_MINUTES: int = 60
    SWEEP_BATCH_SIZE: int = 500

    # Celery
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"
    CELERY_TASK_TIME_LIMIT: int = 1800
    CELERY_TASK_SOFT_TIME_LIMIT: int = 1500

    # Monitoring
    ENABLE_METRICS: bool = True

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def database_url(self) -> str:
        """Формирование URL для базы данных"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


@lru_cache()
def get_settings() -> Settings:
    """Получить настройки (кэшированные)"""
    return Settings()


settings = get_settings()
