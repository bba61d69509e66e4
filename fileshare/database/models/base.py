"""
Base model for all SQLAlchemy models
"""
import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from fileshare.utils.timeutils import utcnow


def generate_uuid() -> str:
    """Opaque record identifier."""
    return str(uuid.uuid4())


class BaseModel(DeclarativeBase):
    """Base model with common fields for all models"""
    
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, 
        default=utcnow, 
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, 
        default=utcnow, 
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False
    )
