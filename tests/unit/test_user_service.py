"""Unit tests for UserService."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from tilapp.core.errors import ConflictError, NotFoundError
from tilapp.db.base import utcnow
from tilapp.db.models.acronym import Acronym, AcronymCategoryPivot
from tilapp.db.models.user import Token, User, UserType
from tilapp.services.acronyms import AcronymService, CategoryService
from tilapp.services.users import UserService

pytestmark = pytest.mark.asyncio


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


# ─── Creation ─────────────────────────────────────────────────────────────────

async def test_create_hashes_password(db_session):
    user = await UserService(db_session).create(
        name="Alice", username="alice", email="alice@x.com", password="secret"
    )
    assert user.password_hash != "secret"
    assert user.password_hash.startswith("$2b$")
    assert user.user_type == UserType.STANDARD.value


async def test_duplicate_username_conflicts(db_session, alice):
    with pytest.raises(ConflictError) as exc:
        await UserService(db_session).create(
            name="Other", username="alice", email="other@x.com", password="secret"
        )
    assert exc.value.http_status == 409


async def test_duplicate_email_conflicts(db_session, alice):
    with pytest.raises(ConflictError):
        await UserService(db_session).create(
            name="Other", username="other", email="alice@x.com", password="secret"
        )


async def test_federated_lookup_by_email_reuses_account(db_session, alice):
    user = await UserService(db_session).find_or_create_federated(
        username="alice@x.com", name="Alice G", email="alice@x.com", match_on_email=True
    )
    assert user.id == alice.id


async def test_federated_lookup_by_username_creates_account(db_session):
    service = UserService(db_session)
    user = await service.find_or_create_federated(
        username="octocat", name="The Octocat", email="octo@x.com", match_on_email=False
    )
    assert user.username == "octocat"
    assert user.email == "octo@x.com"
    # Nobody knows the generated password
    assert await service.authenticate("octocat", "") is None


# ─── Credentials ──────────────────────────────────────────────────────────────

async def test_authenticate_success(db_session, alice):
    user = await UserService(db_session).authenticate("alice", "password123")
    assert user is not None
    assert user.id == alice.id


@pytest.mark.parametrize(
    ("username", "password"),
    [("alice", "wrong"), ("ghost", "password123"), ("", "")],
)
async def test_authenticate_failure_issues_no_token(db_session, alice, username, password):
    assert await UserService(db_session).authenticate(username, password) is None
    assert await _count(db_session, Token) == 0


async def test_authenticate_ignores_soft_deleted(db_session, alice):
    service = UserService(db_session)
    await service.soft_delete(alice)
    assert await service.authenticate("alice", "password123") is None


async def test_resolve_token(db_session, alice):
    service = UserService(db_session)
    token = await service.issue_token(alice)
    resolved = await service.resolve_token(token.value)
    assert resolved is not None
    assert resolved.id == alice.id


async def test_resolve_unknown_token(db_session, alice):
    assert await UserService(db_session).resolve_token("nope") is None


async def test_resolve_expired_token(db_session, alice):
    service = UserService(db_session)
    token = await service.issue_token(alice, expire_minutes=5)
    token.expires_at = utcnow() - timedelta(seconds=1)
    await db_session.flush()
    assert await service.resolve_token(token.value) is None


async def test_token_without_ttl_never_expires(db_session, alice):
    token = await UserService(db_session).issue_token(alice)
    assert token.expires_at is None
    assert token.is_expired(utcnow() + timedelta(days=3650)) is False


async def test_resolve_token_of_soft_deleted_user(db_session, alice):
    service = UserService(db_session)
    token = await service.issue_token(alice)
    await service.soft_delete(alice)
    assert await service.resolve_token(token.value) is None


# ─── Soft delete / restore / force delete ─────────────────────────────────────

async def test_soft_delete_then_restore(db_session, alice):
    service = UserService(db_session)
    await service.soft_delete(alice)
    await db_session.commit()

    with pytest.raises(NotFoundError):
        await service.get(alice.id)

    hidden = await service.get(alice.id, include_deleted=True)
    assert hidden.deleted_at is not None

    await service.restore(alice.id)
    await db_session.commit()

    visible = await service.get(alice.id)
    assert visible.deleted_at is None


async def test_soft_delete_does_not_cascade(db_session, alice):
    acronym = await AcronymService(db_session).create(alice.id, "TIL", "Today I Learned")
    await CategoryService(db_session).attach_by_name(acronym, "Learning")
    await UserService(db_session).issue_token(alice)
    await UserService(db_session).soft_delete(alice)
    await db_session.commit()

    assert await _count(db_session, Acronym) == 1
    assert await _count(db_session, AcronymCategoryPivot) == 1
    assert await _count(db_session, Token) == 1


async def test_force_delete_cascades(db_session, alice, make_user):
    bob = await make_user("bob")
    acronyms = AcronymService(db_session)
    mine = await acronyms.create(alice.id, "TIL", "Today I Learned")
    theirs = await acronyms.create(bob.id, "OMG", "Oh My God")
    categories = CategoryService(db_session)
    await categories.attach_by_name(mine, "Learning")
    await categories.attach_by_name(theirs, "Learning")
    await UserService(db_session).issue_token(alice)
    await db_session.commit()

    await UserService(db_session).force_delete(alice)
    await db_session.commit()
    db_session.expire_all()

    assert await db_session.get(User, alice.id) is None
    remaining = (await db_session.execute(select(Acronym))).scalars().all()
    assert [a.short for a in remaining] == ["OMG"]
    assert await _count(db_session, AcronymCategoryPivot) == 1
    assert await _count(db_session, Token) == 0
