"""Unit tests for SecurityService (bcrypt hashing, password rules)"""
import pytest

from fileshare.auth.security import SecurityService


class TestSecurityService:
    """Tests for SecurityService"""

    def test_hash_and_verify(self, security):
        hashed = security.hash_password("secret123")

        assert hashed.startswith("$2b$04$")
        assert security.verify_password("secret123", hashed)
        assert not security.verify_password("secret124", hashed)

    def test_salted(self, security):
        assert security.hash_password("same") != security.hash_password("same")

    def test_rounds_from_settings(self):
        assert SecurityService().rounds == 4

    def test_verify_none_and_malformed(self, security):
        assert not security.verify_password(None, security.hash_password("x"))
        assert not security.verify_password("x", "not-a-bcrypt-hash")

    def test_long_passwords_truncated_to_72_bytes(self, security):
        base = "a" * 72
        hashed = security.hash_password(base + "tail")

        assert security.verify_password(base + "other-tail", hashed)

    @pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678901", "password1"])
    def test_weak_account_passwords(self, security, password):
        with pytest.raises(ValueError):
            security.hash_password(password, check_strength=True)

    def test_strong_account_password(self, security):
        security.validate_password_strength("Sunflower2024")
