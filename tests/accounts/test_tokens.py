"""
Unit tests for the token service.
Tests issuing, verification, expiry, tampering, and clock skew.
"""

import base64
import json
from datetime import timedelta

import jwt
import pytest

from accounts.errors import Unauthenticated
from accounts.models import Principal
from accounts.tokens import TokenService
from tests.conftest import TEST_SECRET


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


class TestTokenService:
    """Test cases for TokenService."""

    @pytest.fixture
    def tokens(self, clock):
        return TokenService(secret_key=TEST_SECRET, clock=clock)

    def test_issue_and_verify(self, tokens):
        """A freshly issued token verifies to its subject."""
        access_token = tokens.issue("user-1", "alice")

        assert access_token.subject_id == "user-1"
        assert access_token.token_type == "bearer"
        assert access_token.expires_at - access_token.issued_at == timedelta(hours=2)
        assert tokens.verify(access_token.token) == Principal(user_id="user-1")

    def test_claims_are_signed_jwt(self, tokens, clock):
        access_token = tokens.issue("user-1", "alice")

        claims = jwt.decode(
            access_token.token, TEST_SECRET, algorithms=["HS256"], options={"verify_exp": False}
        )
        assert claims["sub"] == "user-1"
        assert claims["username"] == "alice"
        assert claims["exp"] - claims["iat"] == 7200

    def test_expired_token_rejected(self, tokens, clock):
        """A token whose expiry passed one second ago fails verification."""
        access_token = tokens.issue("user-1")
        clock.advance(hours=2, seconds=1)

        with pytest.raises(Unauthenticated) as exc_info:
            tokens.verify(access_token.token)

        assert "expired" in exc_info.value.message

    def test_token_valid_until_expiry(self, tokens, clock):
        access_token = tokens.issue("user-1")
        clock.advance(hours=1, minutes=59)

        assert tokens.verify(access_token.token).user_id == "user-1"

    def test_tampered_subject_rejected(self, tokens):
        """Changing the subject invalidates the signature."""
        header, payload, signature = tokens.issue("user-1").token.split(".")
        claims = json.loads(_b64decode(payload))
        claims["sub"] = "user-2"
        forged_payload = _b64encode(json.dumps(claims).encode("utf-8"))

        with pytest.raises(Unauthenticated):
            tokens.verify(f"{header}.{forged_payload}.{signature}")

    def test_tampered_expiry_rejected(self, tokens):
        header, payload, signature = tokens.issue("user-1").token.split(".")
        claims = json.loads(_b64decode(payload))
        claims["exp"] = claims["exp"] + 86400
        forged_payload = _b64encode(json.dumps(claims).encode("utf-8"))

        with pytest.raises(Unauthenticated):
            tokens.verify(f"{header}.{forged_payload}.{signature}")

    def test_wrong_secret_rejected(self, tokens, clock):
        other = TokenService(secret_key="another-secret-key-with-enough-length", clock=clock)

        with pytest.raises(Unauthenticated):
            tokens.verify(other.issue("user-1").token)

    @pytest.mark.parametrize("token", [None, "", "   ", "not-a-token", "a.b.c"])
    def test_missing_or_malformed_token_rejected(self, tokens, token):
        with pytest.raises(Unauthenticated):
            tokens.verify(token)

    def test_missing_subject_rejected(self, tokens, clock):
        token = jwt.encode(
            {"iat": clock.now, "exp": clock.now + timedelta(hours=1)},
            TEST_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(Unauthenticated):
            tokens.verify(token)

    def test_future_issued_at_within_skew_accepted(self, tokens, clock):
        token = jwt.encode(
            {"sub": "user-1", "iat": clock.now + timedelta(seconds=30), "exp": clock.now + timedelta(hours=1)},
            TEST_SECRET,
            algorithm="HS256",
        )

        assert tokens.verify(token).user_id == "user-1"

    def test_future_issued_at_beyond_skew_rejected(self, tokens, clock):
        """Tokens issued too far in the future point at clock manipulation."""
        token = jwt.encode(
            {"sub": "user-1", "iat": clock.now + timedelta(minutes=5), "exp": clock.now + timedelta(hours=1)},
            TEST_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(Unauthenticated):
            tokens.verify(token)

    def test_configurable_lifetime(self, clock):
        tokens = TokenService(secret_key=TEST_SECRET, expires_in=timedelta(minutes=15), clock=clock)
        access_token = tokens.issue("user-1")

        clock.advance(minutes=15)
        with pytest.raises(Unauthenticated):
            tokens.verify(access_token.token)

    def test_from_config(self):
        class Settings:
            secret_key = TEST_SECRET
            algorithm = "HS256"
            access_token_expire_minutes = 30
            token_clock_skew_seconds = 10

        tokens = TokenService.from_config(Settings())

        assert tokens.expires_in == timedelta(minutes=30)
        assert tokens.clock_skew == timedelta(seconds=10)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService(secret_key="")
