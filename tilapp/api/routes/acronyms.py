"""Acronym endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from tilapp.api.deps import CurrentUser, DbSession
from tilapp.core.errors import BadRequestError
from tilapp.schemas.acronym import AcronymIn, AcronymOut, AcronymWithUser, CategoryOut
from tilapp.schemas.user import UserPublic
from tilapp.services.acronyms import AcronymService, CategoryService

router = APIRouter(prefix="/acronyms", tags=["acronyms"])

# Literal paths are registered before "/{acronym_id}" so they are not
# swallowed by the integer path parameter.


@router.get("", response_model=list[AcronymOut], summary="List all acronyms")
async def list_acronyms(db: DbSession) -> list[AcronymOut]:
    acronyms = await AcronymService(db).list_all()
    return [AcronymOut.model_validate(a) for a in acronyms]


@router.get("/search", response_model=list[AcronymOut], summary="Exact match on short or long")
async def search_acronyms(
    db: DbSession,
    term: str | None = Query(default=None),
) -> list[AcronymOut]:
    if term is None:
        raise BadRequestError("Missing search term")
    acronyms = await AcronymService(db).search(term)
    return [AcronymOut.model_validate(a) for a in acronyms]


@router.get("/first", response_model=AcronymOut, summary="First acronym in the table")
async def first_acronym(db: DbSession) -> AcronymOut:
    return AcronymOut.model_validate(await AcronymService(db).first())


@router.get("/sorted", response_model=list[AcronymOut], summary="Acronyms by short form")
async def sorted_acronyms(db: DbSession) -> list[AcronymOut]:
    acronyms = await AcronymService(db).sorted_by_short()
    return [AcronymOut.model_validate(a) for a in acronyms]


@router.get(
    "/mostRecent",
    response_model=list[AcronymOut],
    summary="Acronyms, most recently updated first",
)
async def most_recent_acronyms(db: DbSession) -> list[AcronymOut]:
    acronyms = await AcronymService(db).most_recent()
    return [AcronymOut.model_validate(a) for a in acronyms]


@router.get(
    "/users",
    response_model=list[AcronymWithUser],
    summary="Acronyms joined with their owners",
)
async def acronyms_with_users(db: DbSession) -> list[AcronymWithUser]:
    rows = await AcronymService(db).with_users()
    return [
        AcronymWithUser(
            id=acronym.id,
            short=acronym.short,
            long=acronym.long,
            user=UserPublic.model_validate(user),
        )
        for acronym, user in rows
    ]


@router.get("/raw", response_model=list[AcronymOut], summary="Acronyms through a raw query")
async def raw_acronyms(db: DbSession) -> list[AcronymOut]:
    acronyms = await AcronymService(db).all_raw()
    return [AcronymOut.model_validate(a) for a in acronyms]


@router.post("", response_model=AcronymOut, status_code=201, summary="Create an acronym")
async def create_acronym(body: AcronymIn, user: CurrentUser, db: DbSession) -> AcronymOut:
    acronym = await AcronymService(db).create(user.id, body.short, body.long)
    await db.commit()
    await db.refresh(acronym)
    return AcronymOut.model_validate(acronym)


@router.get("/{acronym_id}", response_model=AcronymOut, summary="Get an acronym")
async def get_acronym(acronym_id: int, db: DbSession) -> AcronymOut:
    return AcronymOut.model_validate(await AcronymService(db).get(acronym_id))


@router.put(
    "/{acronym_id}",
    response_model=AcronymOut,
    summary="Replace an acronym and take ownership of it",
)
async def update_acronym(
    acronym_id: int, body: AcronymIn, user: CurrentUser, db: DbSession
) -> AcronymOut:
    service = AcronymService(db)
    acronym = await service.get(acronym_id)
    acronym = await service.update(acronym, user, body.short, body.long)
    await db.commit()
    await db.refresh(acronym)
    return AcronymOut.model_validate(acronym)


@router.delete("/{acronym_id}", status_code=204, summary="Delete an acronym")
async def delete_acronym(acronym_id: int, user: CurrentUser, db: DbSession) -> None:
    service = AcronymService(db)
    await service.delete(await service.get(acronym_id))
    await db.commit()


@router.get("/{acronym_id}/user", response_model=UserPublic, summary="Owner of an acronym")
async def acronym_owner(acronym_id: int, db: DbSession) -> UserPublic:
    service = AcronymService(db)
    owner = await service.owner(await service.get(acronym_id))
    return UserPublic.model_validate(owner)


@router.get(
    "/{acronym_id}/categories",
    response_model=list[CategoryOut],
    summary="Categories attached to an acronym",
)
async def acronym_categories(acronym_id: int, db: DbSession) -> list[CategoryOut]:
    acronym = await AcronymService(db).get(acronym_id)
    categories = await CategoryService(db).for_acronym(acronym)
    return [CategoryOut.model_validate(c) for c in categories]


@router.post(
    "/{acronym_id}/categories/{category_id}",
    response_model=CategoryOut,
    status_code=201,
    summary="Attach a category",
)
async def attach_category(
    acronym_id: int, category_id: int, user: CurrentUser, db: DbSession
) -> CategoryOut:
    acronym = await AcronymService(db).get(acronym_id)
    categories = CategoryService(db)
    category = await categories.get(category_id)
    await categories.attach(acronym, category)
    await db.commit()
    return CategoryOut.model_validate(category)


@router.delete(
    "/{acronym_id}/categories/{category_id}",
    status_code=204,
    summary="Detach a category",
)
async def detach_category(
    acronym_id: int, category_id: int, user: CurrentUser, db: DbSession
) -> None:
    acronym = await AcronymService(db).get(acronym_id)
    categories = CategoryService(db)
    await categories.detach(acronym, await categories.get(category_id))
    await db.commit()
