"""JWT service for token creation and validation"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from jose import JWTError, jwt
from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Token payload model"""
    user_id: str
    exp: datetime
    iat: datetime
    type: str = "access"  # access or refresh


class JWTService:
    """Service for JWT token operations"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_expire_minutes: int = 30,
        refresh_expire_days: int = 7,
    ):
        """
        Initialize JWT service

        Args:
            secret_key: Secret key for signing tokens
            algorithm: Algorithm to use for token encoding (default: HS256)
            access_expire_minutes: Default access token lifetime
            refresh_expire_days: Default refresh token lifetime
        """
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_expire = timedelta(minutes=access_expire_minutes)
        self.refresh_expire = timedelta(days=refresh_expire_days)

    def _create_token(self, user_id: str, token_type: str, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = {
            "user_id": user_id,
            "exp": now + expires_delta,
            "iat": now,
            "type": token_type,
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def create_access_token(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create an access token

        Args:
            user_id: User ID
            expires_delta: Custom expiration time (default: JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

        Returns:
            JWT access token string
        """
        return self._create_token(user_id, "access", expires_delta or self.access_expire)

    def create_refresh_token(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create a refresh token

        Args:
            user_id: User ID
            expires_delta: Custom expiration time (default: JWT_REFRESH_TOKEN_EXPIRE_DAYS)

        Returns:
            JWT refresh token string
        """
        return self._create_token(user_id, "refresh", expires_delta or self.refresh_expire)

    def verify_token(self, token: str) -> TokenPayload:
        """
        Verify and decode a token

        Raises:
            JWTError: If token is invalid or expired
        """
        payload = self.decode_token(token)
        try:
            return TokenPayload(**payload)
        except ValueError as e:
            raise JWTError(f"Invalid token payload: {str(e)}")

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode a token

        Raises:
            JWTError: If token is invalid or expired
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise JWTError(f"Could not validate credentials: {str(e)}")

    def get_user_id_from_token(self, token: str, token_type: str = "access") -> str:
        """
        Extract user ID from token of the given type

        Raises:
            JWTError: If token is invalid, of another type or user_id not found
        """
        payload = self.verify_token(token)
        if payload.type != token_type:
            raise JWTError(f"Expected {token_type} token, got {payload.type}")
        return payload.user_id
