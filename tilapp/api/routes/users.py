"""User endpoints: public views, API login, admin lifecycle operations."""

# No postponed annotations here: the rate-limit decorator wraps ``login`` and
# FastAPI must read real types from the wrapper's signature.

import structlog
from fastapi import APIRouter, Request

from tilapp.api.deps import AdminUser, AppSettings, BasicUser, CurrentUser, DbSession
from tilapp.core.errors import ValidationError
from tilapp.core.rate_limit import auth_limit, limiter
from tilapp.schemas.acronym import AcronymOut, UserWithAcronyms
from tilapp.schemas.user import CreateUserRequest, TokenOut, UserPublic, UserPublicV2
from tilapp.services.acronyms import AcronymService
from tilapp.services.users import UserService

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])
v2_router = APIRouter(prefix="/v2/users", tags=["users"])


@router.post("", response_model=UserPublic, status_code=201, summary="Create a user")
async def create_user(body: CreateUserRequest, user: CurrentUser, db: DbSession) -> UserPublic:
    created = await UserService(db).create(
        name=body.name,
        username=body.username,
        email=body.email,
        password=body.password,
        twitter_url=body.twitter_url,
        user_type=body.user_type,
    )
    await db.commit()
    _log.info("user_created_via_api", created_by=user.id, new_user_id=created.id)
    return UserPublic.model_validate(created)


@router.get("", response_model=list[UserPublic], summary="List users")
async def list_users(db: DbSession) -> list[UserPublic]:
    return [UserPublic.model_validate(u) for u in await UserService(db).list_all()]


@router.get(
    "/acronyms",
    response_model=list[UserWithAcronyms],
    summary="All users, each with their acronyms",
)
async def users_with_acronyms(db: DbSession) -> list[UserWithAcronyms]:
    users = await UserService(db).list_with_acronyms()
    return [
        UserWithAcronyms(
            id=u.id,
            name=u.name,
            username=u.username,
            acronyms=[AcronymOut.model_validate(a) for a in u.acronyms],
        )
        for u in users
    ]


@router.post("/login", response_model=TokenOut, summary="Exchange Basic credentials for a token")
@limiter.limit(auth_limit)
async def login(request: Request, user: BasicUser, db: DbSession, settings: AppSettings) -> TokenOut:
    token = await UserService(db).issue_token(user, settings.token_expire_minutes)
    await db.commit()
    _log.info("login_success", user_id=user.id)
    return TokenOut.model_validate(token)


@router.get("/{user_id}", response_model=UserPublic, summary="Get a user")
async def get_user(user_id: str, db: DbSession) -> UserPublic:
    return UserPublic.model_validate(await UserService(db).get(user_id))


@router.get("/{user_id}/acronyms", response_model=list[AcronymOut], summary="A user's acronyms")
async def user_acronyms(user_id: str, db: DbSession) -> list[AcronymOut]:
    user = await UserService(db).get(user_id)
    acronyms = await AcronymService(db).for_user(user)
    return [AcronymOut.model_validate(a) for a in acronyms]


# ── Admin ─────────────────────────────────────────────────────────────── #


@router.delete(
    "/{user_id}",
    status_code=204,
    summary="Soft-delete a user",
    dependencies=[AdminUser],
)
async def soft_delete_user(user_id: str, current_user: CurrentUser, db: DbSession) -> None:
    service = UserService(db)
    user = await service.get(user_id)
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account.")
    await service.soft_delete(user)
    await db.commit()


@router.post(
    "/{user_id}/restore",
    response_model=UserPublic,
    summary="Restore a soft-deleted user",
    dependencies=[AdminUser],
)
async def restore_user(user_id: str, db: DbSession) -> UserPublic:
    user = await UserService(db).restore(user_id)
    await db.commit()
    return UserPublic.model_validate(user)


@router.delete(
    "/{user_id}/force",
    status_code=204,
    summary="Permanently delete a user and everything they own",
    dependencies=[AdminUser],
)
async def force_delete_user(user_id: str, current_user: CurrentUser, db: DbSession) -> None:
    service = UserService(db)
    user = await service.get(user_id, include_deleted=True)
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account.")
    await service.force_delete(user)
    await db.commit()


# ── v2 ────────────────────────────────────────────────────────────────── #


@v2_router.get("/{user_id}", response_model=UserPublicV2, summary="Get a user (v2)")
async def get_user_v2(user_id: str, db: DbSession) -> UserPublicV2:
    return UserPublicV2.model_validate(await UserService(db).get(user_id))
