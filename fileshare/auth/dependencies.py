"""Authentication dependencies for FastAPI"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.auth.jwt import JWTService
from fileshare.auth.security import SecurityService
from fileshare.config import settings
from fileshare.database.connection import get_db
from fileshare.database.models.user import User
from fileshare.database.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# OAuth2 scheme for token extraction
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/login")
# Anonymous access allowed (upload, public downloads)
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login",
    auto_error=False,
)

# Initialize services
jwt_service = JWTService(
    secret_key=settings.JWT_SECRET,
    algorithm=settings.JWT_ALGORITHM,
    access_expire_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    refresh_expire_days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS,
)

security_service = SecurityService()


async def _load_user(token: str, db: AsyncSession) -> User:
    try:
        user_id = jwt_service.get_user_id_from_token(token)
    except JWTError as e:
        logger.info(f"Rejected token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await UserRepository(db, security_service).get_by_id(user_id)
    if user is None:
        logger.warning(f"Token for unknown user {user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get current authenticated user from JWT token

    Raises:
        HTTPException: If token is invalid or user not found
    """
    return await _load_user(token, db)


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Dependency to get current active user

    Raises:
        HTTPException: If user is inactive
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )
    return current_user


async def get_optional_current_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    Dependency to optionally get current user

    Returns None if no valid token is provided
    """
    if not token:
        return None

    try:
        user = await _load_user(token, db)
    except HTTPException:
        return None
    return user if user.is_active else None
