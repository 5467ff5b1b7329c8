"""
ClipSync Backend — Account Service
===================================

What:  Registration, login (with legacy hash upgrade), token refresh, logout,
       profile, password change, and administrative password reset.
Who:   /auth and /user route handlers; the `clipsync-admin` CLI.

Login flow:
    ┌──────────┐   ┌──────────┐   ┌──────────┐   ┌──────────────┐   ┌───────┐
    │  Lookup  │──▶│  Verify  │──▶│  Active? │──▶│ Legacy hash? │──▶│ Issue │
    │ name|mail│   │ password │   │          │   │  upgrade     │   │ token │
    └──────────┘   └──────────┘   └──────────┘   └──────────────┘   └───────┘

    Unknown user and wrong password produce the same AuthError message.

Legacy upgrade:
    A user with an empty salt carries a pre-salt bcrypt hash. After the
    plaintext verifies, a fresh salt + salted hash replace it inside a
    SAVEPOINT. If that write fails the login still succeeds; the upgrade is
    retried on the next login.
"""

import logging
import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clipsync.exceptions import (
    AccountDisabledError,
    AuthError,
    ConflictError,
    DatabaseError,
    HashingError,
    NotFoundError,
    ValidationError,
)
from clipsync.models.user import User
from clipsync.schemas.auth import LoginResponse, RefreshResponse, UserResponse
from clipsync.services.credential_service import credential_service
from clipsync.services.token_service import token_service

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,50}$")
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 100

INVALID_CREDENTIALS = "invalid credentials"


def validate_username(username: str) -> str:
    if not USERNAME_PATTERN.match(username or ""):
        raise ValidationError(
            "username must be 3-50 characters of letters, digits, '_' or '-'",
            field="username",
        )
    return username


def validate_password(password: str, field: str = "password") -> str:
    if not PASSWORD_MIN_LENGTH <= len(password or "") <= PASSWORD_MAX_LENGTH:
        raise ValidationError(
            f"password must be {PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters",
            field=field,
        )
    return password


def normalize_email(email: str) -> str:
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(str(e), field="email")


class AuthService:
    async def _get_user(self, db: AsyncSession, user_id: Optional[str]) -> User:
        if not user_id:
            raise AuthError()
        try:
            user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading user: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})
        if user is None:
            raise NotFoundError(resource="user")
        return user

    async def _store_session_token(self, db: AsyncSession, user_id: str, token: Optional[str]) -> int:
        try:
            result = await db.execute(
                update(User).where(User.id == user_id).values(session_token=token)
            )
        except SQLAlchemyError as e:
            logger.error("Database error storing session token: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})
        return result.rowcount

    async def _persist_upgraded_credentials(
        self, db: AsyncSession, user_id: str, salt: str, hashed: str
    ) -> None:
        async with db.begin_nested():
            await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(password_salt=salt, password_hash=hashed)
            )

    # ── Registration / login ──────────────────────────────────────────────

    async def register(
        self,
        db: AsyncSession,
        username: str,
        email: str,
        password: str,
    ) -> LoginResponse:
        """
        Create an account with a fresh salted hash and log it in.

        Raises:
            ValidationError: bad username, email or password shape
            ConflictError:   username or email already taken
            HashingError:    salt generation or hashing failed
        """
        validate_username(username)
        email = normalize_email(email)
        validate_password(password)

        try:
            taken = await db.execute(select(User.id).where(User.username == username))
            if taken.first() is not None:
                raise ConflictError("username already exists", field="username")
            taken = await db.execute(select(User.id).where(User.email == email))
            if taken.first() is not None:
                raise ConflictError("email already exists", field="email")
        except SQLAlchemyError as e:
            logger.error("Database error checking registration conflicts: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})

        salt, hashed = credential_service.new_credentials(password)
        user = User(username=username, email=email, password_salt=salt, password_hash=hashed)

        try:
            async with db.begin_nested():
                db.add(user)
        except IntegrityError:
            # Lost a race with a concurrent registration
            raise ConflictError("username or email already exists")
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        profile = UserResponse.model_validate(user)
        issued = token_service.issue(user.id, user.username, user.email)
        await self._store_session_token(db, user.id, issued.token)

        logger.info("User registered: %s", user.id)
        return LoginResponse(token=issued.token, expires_at=issued.expires_at, user=profile)

    async def login(self, db: AsyncSession, login: str, password: str) -> LoginResponse:
        """
        Authenticate by username or email.

        Raises:
            AuthError:            unknown user or wrong password
            AccountDisabledError: correct credentials, inactive account
        """
        try:
            user = (
                await db.execute(select(User).where(or_(User.username == login, User.email == login)))
            ).scalars().first()
        except SQLAlchemyError as e:
            logger.error("Database error during login lookup: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})

        if user is None:
            raise AuthError(INVALID_CREDENTIALS)
        if not credential_service.verify_user_password(password, user.password_salt, user.password_hash):
            logger.info("Failed login for user %s", user.id)
            raise AuthError(INVALID_CREDENTIALS)
        if not user.is_active:
            raise AccountDisabledError()

        profile = UserResponse.model_validate(user)

        if user.has_legacy_hash:
            try:
                salt, hashed = credential_service.new_credentials(password)
                await self._persist_upgraded_credentials(db, user.id, salt, hashed)
                logger.info("Upgraded legacy password hash for user %s", user.id)
            except (SQLAlchemyError, HashingError) as e:
                logger.warning("Legacy hash upgrade failed for user %s: %s", user.id, e)

        issued = token_service.issue(user.id, user.username, user.email)
        await self._store_session_token(db, user.id, issued.token)

        logger.info("User logged in: %s", user.id)
        return LoginResponse(token=issued.token, expires_at=issued.expires_at, user=profile)

    # ── Token lifecycle ───────────────────────────────────────────────────

    async def refresh(self, db: AsyncSession, token: str) -> RefreshResponse:
        """
        Raises:
            InvalidTokenError:   token does not verify
            NotRefreshableError: token is not close enough to expiry
            AuthError:           the account no longer exists
        """
        claims = token_service.verify(token)
        issued = token_service.refresh(token)
        if await self._store_session_token(db, claims.user_id, issued.token) == 0:
            raise AuthError("user no longer exists")
        logger.info("Token refreshed for user %s", claims.user_id)
        return RefreshResponse(token=issued.token, expires_at=issued.expires_at)

    async def logout(self, db: AsyncSession, user_id: Optional[str]) -> None:
        """Clears the stored token. Advisory only: issued tokens stay valid until expiry."""
        if not user_id:
            raise AuthError()
        await self._store_session_token(db, user_id, None)
        logger.info("User logged out: %s", user_id)

    # ── Profile / passwords ───────────────────────────────────────────────

    async def get_profile(self, db: AsyncSession, user_id: Optional[str]) -> UserResponse:
        return UserResponse.model_validate(await self._get_user(db, user_id))

    async def change_password(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        current_password: str,
        new_password: str,
    ) -> None:
        user = await self._get_user(db, user_id)
        if not credential_service.verify_user_password(
            current_password, user.password_salt, user.password_hash
        ):
            raise AuthError("current password is incorrect")
        validate_password(new_password, field="new_password")

        user.password_salt, user.password_hash = credential_service.new_credentials(new_password)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error changing password: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        logger.info("Password changed for user %s", user.id)

    async def reset_password(self, db: AsyncSession, username: str, new_password: str) -> User:
        """Administrative reset: no current password required."""
        validate_password(new_password)
        try:
            user = (
                await db.execute(select(User).where(User.username == username))
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading user for reset: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})
        if user is None:
            raise NotFoundError(resource="user")

        user.password_salt, user.password_hash = credential_service.new_credentials(new_password)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error resetting password: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        logger.info("Password reset for user %s", user.id)
        return user


auth_service = AuthService()
