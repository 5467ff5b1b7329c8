"""
ClipSync Backend — Account Route Handlers
==========================================

What:  Registration, login, token refresh (/api/v1/auth) and the
       authenticated profile endpoints (/api/v1/user).
How:   Thin handlers; AuthService owns every rule.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clipsync.database import get_db_session
from clipsync.routes.deps import get_bearer_token, get_current_user
from clipsync.schemas.auth import (
    AuthenticatedUser,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshResponse,
    RegisterRequest,
    UserResponse,
)
from clipsync.schemas.common import ErrorResponse, MessageResponse
from clipsync.services.auth_service import auth_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
auth_router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])
user_router = APIRouter(prefix="/api/v1/user", tags=["User"])


@auth_router.post(
    "/register",
    status_code=201,
    response_model=LoginResponse,
    responses={
        400: {"description": "Invalid username, email or password", "model": ErrorResponse},
        409: {"description": "Username or email already exists", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    return await auth_service.register(db, body.username, body.email, body.password)


@auth_router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        403: {"description": "Account disabled", "model": ErrorResponse},
    },
    summary="Log in with username or email",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    return await auth_service.login(db, body.username, body.password)


@auth_router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={401: {"description": "Invalid token or not yet refreshable", "model": ErrorResponse}},
    summary="Re-issue a token that is close to expiry",
    description="Only tokens with less than one hour of lifetime left can be refreshed.",
)
async def refresh(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> RefreshResponse:
    return await auth_service.refresh(db, token)


@user_router.get("/profile", response_model=UserResponse, summary="Current user's profile")
async def profile(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await auth_service.get_profile(db, current_user.user_id)


@user_router.post("/logout", response_model=MessageResponse, summary="Log out")
async def logout(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """
    Clears the stored session token. Tokens are stateless, so an already
    issued token stays usable until it expires; clients should discard it.
    """
    await auth_service.logout(db, current_user.user_id)
    return MessageResponse(message="logged out successfully")


@user_router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={
        400: {"description": "New password invalid", "model": ErrorResponse},
        401: {"description": "Current password incorrect", "model": ErrorResponse},
    },
    summary="Change password",
)
async def change_password(
    body: ChangePasswordRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.change_password(
        db, current_user.user_id, body.current_password, body.new_password
    )
    return MessageResponse(message="password changed successfully")
