"""
ClipSync Backend — Token Issuer Unit Tests
===========================================

What we test:
    ✅ Issue → verify returns the identity claims
    ✅ Expired, tampered and foreign-key tokens are rejected
    ✅ Refresh only within the last hour of lifetime
    ✅ Two tokens issued back to back differ
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from clipsync.exceptions import InvalidTokenError, NotRefreshableError
from clipsync.services.token_service import ISSUER, TokenService

SECRET = "unit-test-signing-key-0123456789"


class TestIssueAndVerify:
    def setup_method(self):
        self.service = TokenService(secret=SECRET, algorithm="HS256", lifetime=timedelta(hours=168))

    def test_round_trip_claims(self):
        issued = self.service.issue("user-1", "alice", "alice@example.com")
        claims = self.service.verify(issued.token)

        assert claims.user_id == "user-1"
        assert claims.username == "alice"
        assert claims.email == "alice@example.com"
        assert claims.expires_at == issued.expires_at
        assert timedelta(hours=167) < claims.remaining() <= timedelta(hours=168)

    def test_tokens_are_unique(self):
        first = self.service.issue("user-1", "alice", "alice@example.com")
        second = self.service.issue("user-1", "alice", "alice@example.com")
        assert first.token != second.token

    def test_expired_token_rejected(self):
        expired = TokenService(secret=SECRET, lifetime=timedelta(seconds=-10))
        issued = expired.issue("user-1", "alice", "alice@example.com")
        with pytest.raises(InvalidTokenError, match="expired"):
            self.service.verify(issued.token)

    def test_wrong_key_rejected(self):
        other = TokenService(secret="another-signing-key-9876543210")
        issued = other.issue("user-1", "alice", "alice@example.com")
        with pytest.raises(InvalidTokenError):
            self.service.verify(issued.token)

    def test_garbage_and_empty_rejected(self):
        with pytest.raises(InvalidTokenError):
            self.service.verify("not.a.token")
        with pytest.raises(InvalidTokenError):
            self.service.verify("")

    def test_missing_identity_claims_rejected(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "user-1",
                "iss": ISSUER,
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(hours=1)).timestamp()),
            },
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError, match="identity"):
            self.service.verify(token)


class TestRefresh:
    def test_fresh_token_not_refreshable(self):
        service = TokenService(secret=SECRET, lifetime=timedelta(hours=168))
        issued = service.issue("user-1", "alice", "alice@example.com")
        with pytest.raises(NotRefreshableError) as exc_info:
            service.refresh(issued.token)
        assert exc_info.value.remaining_seconds > 3600

    def test_token_near_expiry_is_refreshed(self):
        service = TokenService(secret=SECRET, lifetime=timedelta(minutes=30))
        issued = service.issue("user-1", "alice", "alice@example.com")

        refreshed = service.refresh(issued.token)

        assert refreshed.expires_at >= issued.expires_at
        claims = service.verify(refreshed.token)
        assert claims.user_id == "user-1"
        assert claims.email == "alice@example.com"
