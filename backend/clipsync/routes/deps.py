"""
ClipSync Backend — Route Dependencies
======================================

What:  Bearer-token authentication for protected routes.
How:   The token is verified with the signing key only; no store access. A
       failure raises an AuthError subclass before the handler (and thus any
       query) runs.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clipsync.exceptions import AuthError
from clipsync.schemas.auth import AuthenticatedUser
from clipsync.services.token_service import token_service

bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthError("missing bearer token")
    return credentials.credentials


def get_current_user(token: str = Depends(get_bearer_token)) -> AuthenticatedUser:
    claims = token_service.verify(token)
    return AuthenticatedUser(
        user_id=claims.user_id,
        username=claims.username,
        email=claims.email,
        expires_at=claims.expires_at,
    )
