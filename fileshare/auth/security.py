"""Security service for password hashing"""
import re
from typing import Optional

from passlib.context import CryptContext

# bcrypt only uses the first 72 bytes of the password
BCRYPT_MAX_BYTES = 72


class SecurityService:
    """Service for security operations"""

    # Common weak passwords to check against
    WEAK_PASSWORDS = [
        "password", "123456", "12345678", "qwerty", "abc123",
        "monkey", "password1", "password123", "1234567890", "admin",
        "welcome", "login", "letmein", "password!", "qwertyuiop",
        "111111", "123123", "123qwe", "qwerty123", "admin123",
    ]

    def __init__(self, rounds: Optional[int] = None):
        """
        Initialize security service with bcrypt context

        Args:
            rounds: bcrypt work factor (default: PASSWORD_HASH_ROUNDS setting)
        """
        if rounds is None:
            from fileshare.config import get_settings
            rounds = get_settings().PASSWORD_HASH_ROUNDS
        self.rounds = rounds
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    @staticmethod
    def _truncate(password: str) -> str:
        password_bytes = password.encode("utf-8")
        if len(password_bytes) > BCRYPT_MAX_BYTES:
            password = password_bytes[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")
        return password

    def hash_password(self, password: str, check_strength: bool = False) -> str:
        """
        Hash a password using bcrypt

        Args:
            password: Plain text password
            check_strength: Validate account password rules before hashing

        Returns:
            Hashed password string

        Raises:
            ValueError: If check_strength is set and the password is too weak
        """
        if check_strength:
            self.validate_password_strength(password)
        return self.pwd_context.hash(self._truncate(password))

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against a hashed password

        bcrypt comparison runs over the full hash regardless of where the
        candidate differs.

        Args:
            plain_password: Plain text password
            hashed_password: Hashed password

        Returns:
            True if password matches, False otherwise
        """
        if plain_password is None:
            return False
        try:
            return self.pwd_context.verify(self._truncate(plain_password), hashed_password)
        except ValueError:
            # malformed or unknown hash
            return False

    def validate_password_strength(self, password: str) -> None:
        """
        Validate account password strength

        Args:
            password: Password to validate

        Raises:
            ValueError: If password doesn't meet requirements
        """
        errors = []

        if len(password) < 8:
            errors.append("Password must be at least 8 characters long")

        if not re.search(r'[A-Za-z]', password):
            errors.append("Password must contain at least one letter")

        if not re.search(r'\d', password):
            errors.append("Password must contain at least one digit")

        if password.lower() in self.WEAK_PASSWORDS:
            errors.append("Password is too common and weak")

        if errors:
            raise ValueError("; ".join(errors))
