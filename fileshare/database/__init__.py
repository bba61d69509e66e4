"""
Database package
"""
from fileshare.database.connection import get_engine, get_session_maker, get_db, init_db, close_db
from fileshare.database.models import (
    BaseModel,
    User,
    File,
    StorageBackendType,
)
from fileshare.database.repositories import (
    BaseRepository,
    UserRepository,
    FileRepository,
)

__all__ = [
    # Connection
    "get_engine",
    "get_session_maker",
    "get_db",
    "init_db",
    "close_db",
    # Models
    "BaseModel",
    "User",
    "File",
    "StorageBackendType",
    # Repositories
    "BaseRepository",
    "UserRepository",
    "FileRepository",
]
