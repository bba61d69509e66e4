"""
Database repositories
"""
from fileshare.database.repositories.base import BaseRepository
from fileshare.database.repositories.user_repository import UserRepository
from fileshare.database.repositories.file_repository import FileRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "FileRepository",
]
