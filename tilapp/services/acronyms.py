"""
Acronym queries and mutations, and the acronym ↔ category relationship.

Updating an acronym always hands ownership to the user performing the
update. Deleting requires only an authenticated actor, not ownership.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import delete, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from tilapp.core.errors import ErrorCode, NotFoundError, ValidationError
from tilapp.db.models.acronym import Acronym, AcronymCategoryPivot, Category
from tilapp.db.models.user import User

_log = structlog.get_logger(__name__)


class AcronymService:
    """CRUD and read variants for acronyms."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ── Reads ─────────────────────────────────────────────────────────── #

    async def get(self, acronym_id: int) -> Acronym:
        acronym = await self._db.get(Acronym, acronym_id)
        if acronym is None:
            raise NotFoundError("Acronym", acronym_id, code=ErrorCode.ACRONYM_NOT_FOUND)
        return acronym

    async def list_all(self) -> list[Acronym]:
        result = await self._db.execute(select(Acronym).order_by(Acronym.id))
        return list(result.scalars().all())

    async def first(self) -> Acronym:
        result = await self._db.execute(select(Acronym).order_by(Acronym.id).limit(1))
        acronym = result.scalar_one_or_none()
        if acronym is None:
            raise NotFoundError("Acronym", code=ErrorCode.ACRONYM_NOT_FOUND)
        return acronym

    async def search(self, term: str) -> list[Acronym]:
        """Exact match against either the short or the long form."""
        result = await self._db.execute(
            select(Acronym)
            .where(or_(Acronym.short == term, Acronym.long == term))
            .order_by(Acronym.id)
        )
        return list(result.scalars().all())

    async def sorted_by_short(self) -> list[Acronym]:
        result = await self._db.execute(select(Acronym).order_by(Acronym.short.asc(), Acronym.id))
        return list(result.scalars().all())

    async def most_recent(self) -> list[Acronym]:
        result = await self._db.execute(
            select(Acronym).order_by(Acronym.updated_at.desc(), Acronym.id.desc())
        )
        return list(result.scalars().all())

    async def with_users(self) -> list[tuple[Acronym, User]]:
        """Each acronym paired with its live owner, resolved by a single join."""
        result = await self._db.execute(
            select(Acronym, User)
            .join(User, User.id == Acronym.user_id)
            .where(User.deleted_at.is_(None))
            .order_by(Acronym.id)
        )
        return [(acronym, user) for acronym, user in result.all()]

    async def all_raw(self) -> list[Acronym]:
        """Plain SQL path for callers that need only acronym rows."""
        statement = (
            select(Acronym)
            .from_statement(text("SELECT * FROM acronyms ORDER BY id"))
        )
        result = await self._db.execute(statement)
        return list(result.scalars().all())

    async def find_owner(self, acronym: Acronym) -> User | None:
        """The owner, unless they have been soft-deleted."""
        result = await self._db.execute(
            select(User).where(User.id == acronym.user_id, User.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def owner(self, acronym: Acronym) -> User:
        user = await self.find_owner(acronym)
        if user is None:
            raise NotFoundError("User", acronym.user_id, code=ErrorCode.USER_NOT_FOUND)
        return user

    async def for_user(self, user: User) -> list[Acronym]:
        result = await self._db.execute(
            select(Acronym).where(Acronym.user_id == user.id).order_by(Acronym.id)
        )
        return list(result.scalars().all())

    # ── Writes ────────────────────────────────────────────────────────── #

    async def create(self, owner_id: str, short: str, long: str) -> Acronym:
        """
        Create an acronym owned by ``owner_id``.

        Raises NotFoundError when no such user exists; the foreign key
        rejects the insert even if a caller skips this check.
        """
        owner = await self._db.get(User, owner_id)
        if owner is None or owner.is_deleted:
            raise NotFoundError("User", owner_id, code=ErrorCode.USER_NOT_FOUND)

        acronym = Acronym(short=short, long=long, user_id=owner_id)
        self._db.add(acronym)
        await self._db.flush()
        _log.info("acronym_created", acronym_id=acronym.id, user_id=owner_id)
        return acronym

    async def update(self, acronym: Acronym, actor: User, short: str, long: str) -> Acronym:
        """Replace both forms and reassign ownership to ``actor``."""
        acronym.short = short
        acronym.long = long
        acronym.user_id = actor.id
        await self._db.flush()
        await self._db.refresh(acronym)
        _log.info("acronym_updated", acronym_id=acronym.id, user_id=actor.id)
        return acronym

    async def delete(self, acronym: Acronym) -> None:
        acronym_id = acronym.id
        await self._db.delete(acronym)
        await self._db.flush()
        _log.info("acronym_deleted", acronym_id=acronym_id)


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of replacing an acronym's category set."""

    added: frozenset[str]
    removed: frozenset[str]


def normalize_category_name(name: str) -> str:
    return name.strip()


class CategoryService:
    """Categories and the pivot rows attaching them to acronyms."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, category_id: int) -> Category:
        category = await self._db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category", category_id, code=ErrorCode.CATEGORY_NOT_FOUND)
        return category

    async def list_all(self) -> list[Category]:
        result = await self._db.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())

    async def find_by_name(self, name: str) -> Category | None:
        result = await self._db.execute(
            select(Category).where(Category.name == normalize_category_name(name))
        )
        return result.scalar_one_or_none()

    async def find_or_create(self, name: str) -> Category:
        """Idempotent upsert keyed on the (trimmed, case-sensitive) name."""
        if not normalize_category_name(name):
            raise ValidationError("Category name must not be blank")
        category = await self.find_by_name(name)
        if category is not None:
            return category
        category = Category(name=normalize_category_name(name))
        self._db.add(category)
        await self._db.flush()
        _log.info("category_created", category_id=category.id, name=category.name)
        return category

    async def for_acronym(self, acronym: Acronym) -> list[Category]:
        result = await self._db.execute(
            select(Category)
            .join(AcronymCategoryPivot, AcronymCategoryPivot.category_id == Category.id)
            .where(AcronymCategoryPivot.acronym_id == acronym.id)
            .order_by(Category.name)
        )
        return list(result.scalars().all())

    async def acronyms_in(self, category: Category) -> list[Acronym]:
        result = await self._db.execute(
            select(Acronym)
            .join(AcronymCategoryPivot, AcronymCategoryPivot.acronym_id == Acronym.id)
            .where(AcronymCategoryPivot.category_id == category.id)
            .order_by(Acronym.id)
        )
        return list(result.scalars().all())

    async def is_attached(self, acronym: Acronym, category: Category) -> bool:
        result = await self._db.execute(
            select(AcronymCategoryPivot.id).where(
                AcronymCategoryPivot.acronym_id == acronym.id,
                AcronymCategoryPivot.category_id == category.id,
            )
        )
        return result.first() is not None

    async def attach(self, acronym: Acronym, category: Category) -> bool:
        """Link the pair. Returns False when it was already linked."""
        if await self.is_attached(acronym, category):
            return False
        self._db.add(AcronymCategoryPivot(acronym_id=acronym.id, category_id=category.id))
        await self._db.flush()
        _log.info("category_attached", acronym_id=acronym.id, category_id=category.id)
        return True

    async def attach_by_name(self, acronym: Acronym, name: str) -> Category:
        category = await self.find_or_create(name)
        await self.attach(acronym, category)
        return category

    async def detach(self, acronym: Acronym, category: Category) -> bool:
        """Unlink the pair. Returns False when they were not linked."""
        result = await self._db.execute(
            delete(AcronymCategoryPivot).where(
                AcronymCategoryPivot.acronym_id == acronym.id,
                AcronymCategoryPivot.category_id == category.id,
            )
        )
        removed = bool(result.rowcount)
        if removed:
            _log.info("category_detached", acronym_id=acronym.id, category_id=category.id)
        return removed

    async def reconcile(self, acronym: Acronym, names: list[str]) -> Reconciliation:
        """
        Make the acronym's category set equal to ``names``.

        Both sets are re-derived from storage on every call: names only in
        the new set are attached (creating categories as needed), names only
        in the current set are detached, names in both are left alone.
        """
        existing = {category.name: category for category in await self.for_acronym(acronym)}
        wanted = {normalize_category_name(n) for n in names if normalize_category_name(n)}

        to_add = wanted - existing.keys()
        to_remove = existing.keys() - wanted

        for name in sorted(to_add):
            await self.attach_by_name(acronym, name)
        for name in sorted(to_remove):
            await self.detach(acronym, existing[name])

        return Reconciliation(added=frozenset(to_add), removed=frozenset(to_remove))
