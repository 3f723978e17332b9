"""Tests for access token issuance and verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from meetup.auth.jwt import create_access_token, verify_token
from meetup.config import get_settings


def _encode(**overrides):
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "1",
        "email": "a@example.com",
        "roles": ["participant"],
        "iat": now,
        "exp": now + timedelta(hours=1),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "type": "access",
    }
    payload.update(overrides)
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


class TestAccessToken:
    def test_round_trip_claims(self):
        token = create_access_token(42, "org@example.com", ["organizer", "participant"])
        payload = verify_token(token)
        assert payload["sub"] == "42"
        assert payload["email"] == "org@example.com"
        assert payload["roles"] == ["organizer", "participant"]
        assert payload["type"] == "access"

    def test_lifetime_is_configured_hours(self):
        payload = verify_token(create_access_token(1, "a@example.com", []))
        lifetime = payload["exp"] - payload["iat"]
        assert lifetime == get_settings().jwt_access_token_expire_hours * 3600

    def test_expired_token_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = _encode(iat=past, exp=past + timedelta(hours=1))
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_wrong_audience_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(_encode(aud="SomeoneElse"))

    def test_wrong_issuer_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(_encode(iss="SomeoneElse"))

    def test_wrong_type_rejected(self):
        with pytest.raises(jwt.InvalidTokenError, match="token type"):
            verify_token(_encode(type="refresh"))

    def test_tampered_signature_rejected(self):
        token = create_access_token(1, "a@example.com", ["admin"])
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))
