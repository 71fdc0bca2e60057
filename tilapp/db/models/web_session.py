"""Server-side browser session state keyed by an opaque cookie value."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tilapp.db.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from tilapp.db.models.user import User


class WebSession(Base, TimestampMixin):
    """
    One browser session.

    The cookie only carries ``id``; everything the website remembers about
    the visitor lives in this row.
    """

    __tablename__ = "web_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # User who followed a valid reset link and has not yet chosen a password
    reset_user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    csrf_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    oauth_state: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user: Mapped[User | None] = relationship("User", foreign_keys=[user_id])

    def is_expired(self, max_age: timedelta, now: datetime | None = None) -> bool:
        """Idle for longer than ``max_age`` since the row was last written."""
        updated_at = self.updated_at
        # SQLite hands back naive datetimes
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=UTC)
        return (now or utcnow()) - updated_at > max_age

    def __repr__(self) -> str:
        return f"<WebSession {(self.id or 'unsaved')[:8]}>"
