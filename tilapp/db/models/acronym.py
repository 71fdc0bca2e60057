"""Acronym, Category and the pivot table linking them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tilapp.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from tilapp.db.models.user import User


class AcronymCategoryPivot(Base, UUIDPrimaryKeyMixin):
    """One acronym ↔ category association. Removed with either parent."""

    __tablename__ = "acronym_category_pivot"
    __table_args__ = (
        UniqueConstraint("acronym_id", "category_id", name="uq_acronym_category_pair"),
    )

    acronym_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("acronyms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class Acronym(Base, TimestampMixin):
    """A short form, its long form, and the user who last claimed it."""

    __tablename__ = "acronyms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    short: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    long: Mapped[str] = mapped_column(String(1024), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user: Mapped[User] = relationship("User", back_populates="acronyms")
    categories: Mapped[list[Category]] = relationship(
        "Category",
        secondary="acronym_category_pivot",
        back_populates="acronyms",
        order_by="Category.name",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Acronym {self.short}>"


class Category(Base):
    """A tag; its name is the natural key used for find-or-create."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    acronyms: Mapped[list[Acronym]] = relationship(
        "Acronym",
        secondary="acronym_category_pivot",
        back_populates="categories",
        order_by="Acronym.id",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Category {self.name}>"
