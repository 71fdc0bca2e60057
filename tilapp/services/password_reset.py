"""
Password reset flow.

    request_reset → email with link → consume (token deleted) → complete

A token is deleted the moment its link is followed, before the new
password is known; an abandoned form therefore needs a new email.
"""

from __future__ import annotations

from datetime import timedelta
from html import escape

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tilapp.config.settings import Settings
from tilapp.core.security import generate_reset_token, hash_password
from tilapp.db.base import utcnow
from tilapp.db.models.user import PasswordResetToken, User
from tilapp.services.email import EmailMessage, EmailSender

_log = structlog.get_logger(__name__)


class PasswordResetService:
    def __init__(self, db: AsyncSession, mailer: EmailSender, settings: Settings) -> None:
        self._db = db
        self._mailer = mailer
        self._settings = settings

    def reset_link(self, token_value: str) -> str:
        return f"{self._settings.public_base_url}/resetPassword?token={token_value}"

    async def request_reset(self, email: str) -> bool:
        """
        Issue a token and mail the link when ``email`` belongs to a user.

        Returns False, writing nothing, when no user has that email.
        """
        result = await self._db.execute(
            select(User).where(User.email == email, User.deleted_at.is_(None))
        )
        user = result.scalar_one_or_none()
        if user is None:
            _log.info("password_reset_unknown_email")
            return False

        token = PasswordResetToken(value=generate_reset_token(), user_id=user.id)
        if self._settings.reset_token_expire_minutes > 0:
            token.expires_at = utcnow() + timedelta(
                minutes=self._settings.reset_token_expire_minutes
            )
        self._db.add(token)
        await self._db.flush()

        link = escape(self.reset_link(token.value), quote=True)
        await self._mailer.send(
            EmailMessage(
                to_address=user.email,
                to_name=user.name,
                subject="Reset Your Password",
                html=(
                    "<p>You've requested to reset your password. "
                    f'<a href="{link}">Click here</a> to reset your password.</p>'
                ),
            )
        )
        _log.info("password_reset_requested", user_id=user.id)
        return True

    async def consume(self, token_value: str) -> User | None:
        """
        Trade a token for its user, deleting the token.

        Unknown or expired tokens yield None; an expired token is deleted too.
        """
        result = await self._db.execute(
            select(PasswordResetToken)
            .options(selectinload(PasswordResetToken.user))
            .where(PasswordResetToken.value == token_value)
        )
        token = result.scalar_one_or_none()
        if token is None:
            return None

        user = token.user
        expired = token.is_expired()
        await self._db.delete(token)
        await self._db.flush()

        if expired or user.is_deleted:
            _log.info("password_reset_token_rejected", user_id=user.id, expired=expired)
            return None
        _log.info("password_reset_token_consumed", user_id=user.id)
        return user

    async def complete(self, user: User, password: str) -> None:
        user.password_hash = hash_password(password)
        await self._db.flush()
        _log.info("password_reset_completed", user_id=user.id)
