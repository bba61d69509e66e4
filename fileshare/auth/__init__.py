"""
Authentication: JWT tokens and password hashing
"""
from fileshare.auth.jwt import JWTService, TokenPayload
from fileshare.auth.security import SecurityService

__all__ = ["JWTService", "TokenPayload", "SecurityService"]
