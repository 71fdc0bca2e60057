"""
User lifecycle: creation, credential checks, bearer tokens, soft delete.

Every query here excludes soft-deleted rows unless the method says
otherwise.
"""

from __future__ import annotations

from datetime import timedelta

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tilapp.core.errors import ConflictError, ErrorCode, NotFoundError
from tilapp.core.security import (
    generate_bearer_token,
    generate_placeholder_password,
    hash_password,
    verify_password,
)
from tilapp.db.base import utcnow
from tilapp.db.models.user import Token, User, UserType

_log = structlog.get_logger(__name__)


class UserService:
    """Service for user accounts and their bearer tokens."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ── Lookups ───────────────────────────────────────────────────────── #

    async def get(self, user_id: str, *, include_deleted: bool = False) -> User:
        query = select(User).where(User.id == user_id)
        if not include_deleted:
            query = query.where(User.deleted_at.is_(None))
        user = (await self._db.execute(query)).scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", user_id, code=ErrorCode.USER_NOT_FOUND)
        return user

    async def find_by_username(self, username: str) -> User | None:
        result = await self._db.execute(
            select(User).where(User.username == username, User.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> User | None:
        result = await self._db.execute(
            select(User).where(User.email == email, User.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[User]:
        result = await self._db.execute(
            select(User).where(User.deleted_at.is_(None)).order_by(User.username)
        )
        return list(result.scalars().all())

    async def list_with_acronyms(self) -> list[User]:
        """All users with their acronyms loaded in one extra query, not one per user."""
        result = await self._db.execute(
            select(User)
            .options(selectinload(User.acronyms))
            .where(User.deleted_at.is_(None))
            .order_by(User.username)
        )
        return list(result.scalars().all())

    # ── Creation ──────────────────────────────────────────────────────── #

    async def create(
        self,
        *,
        name: str,
        username: str,
        email: str,
        password: str,
        twitter_url: str | None = None,
        user_type: UserType = UserType.STANDARD,
    ) -> User:
        """
        Create a user with a hashed password.

        Raises ConflictError when the username or email is already taken.
        The unique constraints catch races the pre-check cannot see.
        """
        existing = await self._db.execute(
            select(User.username, User.email).where(
                or_(User.username == username, User.email == email),
                User.deleted_at.is_(None),
            )
        )
        row = existing.first()
        if row is not None:
            field = "Username" if row.username == username else "Email"
            raise ConflictError(ErrorCode.VALIDATION_ERROR, f"{field} already exists")

        user = User(
            name=name,
            username=username,
            email=email,
            password_hash=hash_password(password),
            twitter_url=twitter_url or None,
            user_type=user_type.value,
        )
        self._db.add(user)
        try:
            await self._db.flush()
        except IntegrityError as exc:
            await self._db.rollback()
            raise ConflictError(
                ErrorCode.VALIDATION_ERROR, "Username or email already exists"
            ) from exc

        _log.info("user_created", user_id=user.id, username=user.username)
        return user

    async def find_or_create_federated(self, *, username: str, name: str, email: str,
                                       match_on_email: bool) -> User:
        """
        Resolve the local account for an OAuth login, creating it on first sight.

        The created account gets a random password nobody knows, so it can
        only be used through the provider.
        """
        if match_on_email:
            user = await self.find_by_email(email)
        else:
            user = await self.find_by_username(username)
        if user is not None:
            return user

        return await self.create(
            name=name or username,
            username=username,
            email=email,
            password=generate_placeholder_password(),
        )

    # ── Credentials ───────────────────────────────────────────────────── #

    async def authenticate(self, username: str, password: str) -> User | None:
        """Return the user for a valid username/password pair, else None."""
        user = await self.find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            _log.warning("login_failed", username=username)
            return None
        return user

    async def issue_token(self, user: User, expire_minutes: int = 0) -> Token:
        """Persist a fresh bearer token for one login."""
        token = Token(value=generate_bearer_token(), user_id=user.id)
        if expire_minutes > 0:
            token.expires_at = utcnow() + timedelta(minutes=expire_minutes)
        self._db.add(token)
        await self._db.flush()
        _log.info("token_issued", user_id=user.id)
        return token

    async def resolve_token(self, value: str) -> User | None:
        """Return the live, non-deleted owner of a bearer token value."""
        result = await self._db.execute(
            select(Token)
            .options(selectinload(Token.user))
            .where(Token.value == value)
        )
        token = result.scalar_one_or_none()
        if token is None or token.is_expired():
            return None
        if token.user.is_deleted:
            return None
        return token.user

    # ── Deletion ──────────────────────────────────────────────────────── #

    async def soft_delete(self, user: User) -> None:
        user.soft_delete()
        await self._db.flush()
        _log.info("user_soft_deleted", user_id=user.id)

    async def restore(self, user_id: str) -> User:
        user = await self.get(user_id, include_deleted=True)
        user.restore()
        await self._db.flush()
        _log.info("user_restored", user_id=user.id)
        return user

    async def force_delete(self, user: User) -> None:
        """Remove the row; acronyms, pivots, tokens and sessions go with it."""
        await self._db.delete(user)
        await self._db.flush()
        _log.info("user_force_deleted", user_id=user.id)
