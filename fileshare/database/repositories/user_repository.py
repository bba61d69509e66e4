"""
User repository for user-related database operations
"""
import asyncio
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.auth.security import SecurityService
from fileshare.database.models.user import User
from fileshare.database.repositories.base import BaseRepository
from fileshare.database.repositories.file_repository import FileRepository


class UserRepository(BaseRepository[User]):
    """
    Repository for User model operations
    """
    
    def __init__(self, session: AsyncSession, security: Optional[SecurityService] = None):
        """
        Initialize UserRepository
        
        Args:
            session: Async database session
            security: Password hashing service
        """
        super().__init__(User, session)
        self.security = security or SecurityService()
    
    async def create(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        **kwargs: Any
    ) -> User:
        """
        Create a new user with hashed password
        
        Args:
            email: Email address
            password: Plain text password (will be hashed)
            name: Display name
            **kwargs: Additional user fields
            
        Returns:
            Created user instance
        """
        hashed_password = await asyncio.to_thread(self.security.hash_password, password)
        user = User(
            email=email.lower(),
            name=name,
            hashed_password=hashed_password,
            **kwargs
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user
    
    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email
        
        Args:
            email: Email address
            
        Returns:
            User instance or None if not found
        """
        stmt = select(User).where(User.email == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
    
    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """
        Check credentials
        
        Returns:
            User if email and password match, None otherwise
        """
        user = await self.get_by_email(email)
        if user is None:
            return None
        if not await asyncio.to_thread(
            self.security.verify_password, password, user.hashed_password
        ):
            return None
        return user
    
    async def delete_account(self, user_id: str) -> bool:
        """
        Delete a user; their files stay and become ownerless
        
        Args:
            user_id: User ID
            
        Returns:
            True if the user existed
        """
        await FileRepository(self.session, self.security).clear_owner(user_id)
        return await self.delete_by_id(user_id)
