"""
Tests for the demo login and bearer tokens.
"""
from datetime import timedelta

from auth import authenticate, can_access, create_access_token, decode_access_token, get_user
from schemas import LoginCredentials


class TestAuthenticate:
    def test_success(self):
        result = authenticate(LoginCredentials(username="kasir", password="kasir123"))
        assert result.success is True
        assert result.user.id == "kasir-1"
        assert result.error is None

    def test_wrong_password(self):
        result = authenticate(LoginCredentials(username="admin", password="nope"))
        assert result.success is False
        assert result.error == "Invalid username or password"
        assert result.user is None

    def test_unknown_user(self):
        result = authenticate(LoginCredentials(username="ghost", password="admin123"))
        assert result.success is False

    def test_get_user(self):
        assert get_user("admin").role == "admin"
        assert get_user("ghost") is None


class TestCanAccess:
    def test_roles(self):
        kasir = get_user("kasir")
        assert can_access(kasir, ["admin", "kasir"])
        assert not can_access(kasir, ["admin"])
        assert can_access(get_user("admin"), ["admin"])

    def test_anonymous(self):
        assert can_access(None, ["admin", "kasir"]) is False


class TestTokens:
    def test_round_trip(self):
        token = create_access_token({"sub": "kasir"}, "secret")
        assert decode_access_token(token, "secret") == "kasir"

    def test_wrong_secret(self):
        token = create_access_token({"sub": "kasir"}, "secret")
        assert decode_access_token(token, "other") is None

    def test_expired(self):
        token = create_access_token({"sub": "kasir"}, "secret", expires_delta=timedelta(minutes=-1))
        assert decode_access_token(token, "secret") is None
