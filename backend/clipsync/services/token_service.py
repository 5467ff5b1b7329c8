"""
ClipSync Backend — Token Issuer
================================

What:  Issues and verifies signed, self-contained session tokens (JWT, HS256).
Why:   Route handlers authenticate a request from the token alone, with no
       store round-trip, so authorization failures short-circuit before any
       query runs.
How:   python-jose encodes/decodes the claims below; expiry is checked by
       jose during decode.

Claims:
    user_id, username, email   identity
    sub                        user id (standard subject claim)
    iss                        "clipboard-sync-server"
    iat, exp                   issue time / expiry (seconds)
    jti                        random id, so two tokens issued in the same
                               second for the same user still differ

Refresh window:
    A token may be refreshed only when it has less than REFRESH_THRESHOLD
    (1 hour) of lifetime left. Earlier attempts raise NotRefreshableError.

Known limitation:
    Tokens are stateless. The user row keeps the last issued token for
    bookkeeping, and logout clears it, but a bearer holding the signed value
    can keep using it until it expires.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from clipsync.config import settings
from clipsync.exceptions import InvalidTokenError, NotRefreshableError

logger = logging.getLogger(__name__)

ISSUER = "clipboard-sync-server"
REFRESH_THRESHOLD = timedelta(hours=1)


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    username: str
    email: str
    issued_at: datetime
    expires_at: datetime

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        return self.expires_at - (now or datetime.now(timezone.utc))


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenService:
    """
    Args:
        secret:    HMAC signing key (default settings.jwt_secret)
        algorithm: JWS algorithm (default settings.jwt_algorithm)
        lifetime:  token lifetime (default settings.jwt_expire_hours)
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        lifetime: Optional[timedelta] = None,
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.lifetime = lifetime or timedelta(hours=settings.jwt_expire_hours)

    def issue(self, user_id: str, username: str, email: str) -> IssuedToken:
        now = datetime.now(timezone.utc)
        expires_at = now + self.lifetime
        payload = {
            "user_id": user_id,
            "username": username,
            "email": email,
            "sub": user_id,
            "iss": ISSUER,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return IssuedToken(
            token=token,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def verify(self, token: str) -> TokenClaims:
        """
        Check signature, issuer and expiry.

        Raises:
            InvalidTokenError: any check failed or identity claims are missing
        """
        if not token:
            raise InvalidTokenError("missing token")
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=ISSUER,
                options={"verify_aud": False},
            )
        except ExpiredSignatureError:
            raise InvalidTokenError("token has expired")
        except JWTError as e:
            logger.debug("Token rejected: %s", e)
            raise InvalidTokenError()

        try:
            return TokenClaims(
                user_id=str(payload["user_id"]),
                username=str(payload["username"]),
                email=str(payload["email"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError("token is missing identity claims")

    def refresh(self, token: str) -> IssuedToken:
        """
        Re-issue a token close to expiry with the same identity claims.

        Raises:
            InvalidTokenError:   the presented token does not verify
            NotRefreshableError: more than REFRESH_THRESHOLD of lifetime remains
        """
        claims = self.verify(token)
        remaining = claims.remaining()
        if remaining > REFRESH_THRESHOLD:
            raise NotRefreshableError(remaining_seconds=int(remaining.total_seconds()))
        return self.issue(claims.user_id, claims.username, claims.email)


token_service = TokenService()
