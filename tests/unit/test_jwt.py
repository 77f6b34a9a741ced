"""Access token verification."""

from datetime import timedelta

import jwt
import pytest

from skillpath.auth.jwt import create_access_token, verify_token
from skillpath.config import get_settings


@pytest.fixture(autouse=True)
def _secret(monkeypatch):
    monkeypatch.setenv("SKILLPATH_JWT_SECRET", "unit-test-secret-for-skillpath-tokens-0123456789")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestVerifyToken:
    def test_round_trip(self):
        payload = verify_token(create_access_token(42, "admin"))
        assert payload["sub"] == "42"
        assert payload["role"] == "admin"
        assert payload["type"] == "access"

    def test_expired(self):
        token = create_access_token(42, expires_in=timedelta(seconds=-5))
        with pytest.raises(jwt.InvalidTokenError, match="Token has expired"):
            verify_token(token)

    def test_wrong_secret(self):
        token = jwt.encode(
            {"sub": "42", "exp": 9999999999, "iss": get_settings().jwt_issuer},
            "another-secret-that-is-long-enough-0123456789",
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_unknown_role(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "42", "exp": 9999999999, "iss": settings.jwt_issuer, "role": "root"},
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError, match="Unknown role"):
            verify_token(token)

    def test_subject_must_be_numeric(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "alice", "exp": 9999999999, "iss": settings.jwt_issuer},
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError, match="user id"):
            verify_token(token)

    def test_refresh_token_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "42", "exp": 9999999999, "iss": settings.jwt_issuer, "type": "refresh"},
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token)
