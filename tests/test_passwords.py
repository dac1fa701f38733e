"""Tests for one-time password generation."""

from __future__ import annotations

import pytest

from pesthub.passwords import DIGITS, LOWERCASE, SYMBOLS, UPPERCASE, generate_secure_password


class TestGenerateSecurePassword:
    def test_default_length(self):
        assert len(generate_secure_password()) == 12

    @pytest.mark.parametrize("length", [4, 16, 64])
    def test_custom_length(self, length):
        assert len(generate_secure_password(length)) == length

    def test_every_category_present(self):
        for _ in range(50):
            password = generate_secure_password()
            assert any(c in LOWERCASE for c in password)
            assert any(c in UPPERCASE for c in password)
            assert any(c in DIGITS for c in password)
            assert any(c in SYMBOLS for c in password)

    def test_only_allowed_characters(self):
        allowed = set(LOWERCASE + UPPERCASE + DIGITS + SYMBOLS)
        assert set(generate_secure_password(128)) <= allowed

    def test_passwords_differ(self):
        assert len({generate_secure_password() for _ in range(20)}) == 20

    def test_too_short_rejected(self):
        with pytest.raises(ValueError, match="at least 4"):
            generate_secure_password(3)
