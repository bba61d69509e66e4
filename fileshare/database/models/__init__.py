"""
Database models
"""
from fileshare.database.models.base import BaseModel
from fileshare.database.models.user import User
from fileshare.database.models.file import File, StorageBackendType

__all__ = [
    "BaseModel",
    "User",
    "File",
    "StorageBackendType",
]
