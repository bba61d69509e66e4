"""Authentication endpoints"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.auth.dependencies import get_current_active_user, jwt_service, security_service
from fileshare.config import settings
from fileshare.database.connection import get_db
from fileshare.database.models.user import User
from fileshare.database.repositories.user_repository import UserRepository
from fileshare.schemas.file import MessageResponse
from fileshare.schemas.user import RefreshTokenRequest, Token, UserRegister, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_tokens(user_id: str, refresh_token: str = None) -> Token:
    return Token(
        access_token=jwt_service.create_access_token(user_id),
        refresh_token=refresh_token or jwt_service.create_refresh_token(user_id),
        token_type="bearer",
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new user

    - **email**: Valid email address
    - **password**: At least 8 characters, letters and digits
    - **name**: Optional display name
    """
    user_repo = UserRepository(db, security_service)

    if await user_repo.get_by_email(user_data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    try:
        security_service.validate_password_strength(user_data.password)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    user = await user_repo.create(
        email=user_data.email,
        password=user_data.password,
        name=user_data.name,
    )
    await db.commit()
    logger.info("User registered", extra={"user_id": user.id})
    return UserResponse.model_validate(user)


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate user and return tokens

    Uses OAuth2 password flow; username is the email
    """
    user = await UserRepository(db, security_service).authenticate(
        form_data.username, form_data.password
    )
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )
    return _issue_tokens(user.id)


@router.post("/refresh", response_model=Token)
async def refresh(
    refresh_request: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Refresh access token using refresh token

    Returns new access token and the same refresh token
    """
    try:
        user_id = jwt_service.get_user_id_from_token(
            refresh_request.refresh_token, token_type="refresh"
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )

    user = await UserRepository(db, security_service).get_by_id(user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )
    return _issue_tokens(user.id, refresh_request.refresh_token)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(get_current_active_user)
):
    """Get current user information"""
    return UserResponse.model_validate(current_user)


@router.delete("/me", response_model=MessageResponse)
async def delete_me(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete the current account

    Uploaded files are kept until they expire, without an owner
    """
    await UserRepository(db, security_service).delete_account(current_user.id)
    await db.commit()
    logger.info("User account deleted", extra={"user_id": current_user.id})
    return MessageResponse(message="Account deleted successfully")
