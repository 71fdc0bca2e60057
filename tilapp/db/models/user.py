"""
Database models for users and their credentials.

The user type is a fixed enum enforced at the application layer;
stored as a string for schema portability across SQLite and PostgreSQL.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tilapp.db.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from tilapp.db.models.acronym import Acronym


class UserType(StrEnum):
    """Application-level authorization tiers for signed-up users."""

    STANDARD = "standard"
    ADMIN = "admin"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin):
    """User entity with hashed password and user type."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_picture: Mapped[str | None] = mapped_column(String(255), nullable=True)
    twitter_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserType.STANDARD.value
    )

    # Rows below are removed by ON DELETE CASCADE when the user is force-deleted
    acronyms: Mapped[list[Acronym]] = relationship(
        "Acronym",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Acronym.id",
    )
    tokens: Mapped[list[Token]] = relationship(
        "Token", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class _ExpiringTokenMixin:
    """Columns shared by bearer and password reset tokens."""

    value: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        # SQLite hands back naive datetimes
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return (now or utcnow()) >= expires_at


class Token(Base, UUIDPrimaryKeyMixin, _ExpiringTokenMixin):
    """Opaque bearer token issued on each successful API login."""

    __tablename__ = "tokens"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user: Mapped[User] = relationship("User", back_populates="tokens")


class PasswordResetToken(Base, UUIDPrimaryKeyMixin, _ExpiringTokenMixin):
    """Single-use token mailed to a user who forgot their password."""

    __tablename__ = "password_reset_tokens"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user: Mapped[User] = relationship("User")
