"""
User model
"""
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fileshare.database.models.base import BaseModel

if TYPE_CHECKING:
    from fileshare.database.models.file import File


class User(BaseModel):
    """
    User model for authentication
    
    Attributes:
        id: Primary key (UUID)
        email: Unique email address
        name: Display name
        hashed_password: BCrypt hashed password
        is_active: Active status flag
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """
    
    __tablename__ = "users"
    
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False
    )
    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )
    
    # Relationships (no cascade: files outlive their owner)
    files: Mapped[list["File"]] = relationship(
        "File",
        back_populates="owner",
        passive_deletes=True
    )
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
