"""Category endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from tilapp.api.deps import CurrentUser, DbSession
from tilapp.schemas.acronym import AcronymOut, CategoryIn, CategoryOut
from tilapp.services.acronyms import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("", response_model=CategoryOut, status_code=201, summary="Create a category")
async def create_category(body: CategoryIn, user: CurrentUser, db: DbSession) -> CategoryOut:
    # Creating an existing name returns the existing row
    category = await CategoryService(db).find_or_create(body.name)
    await db.commit()
    return CategoryOut.model_validate(category)


@router.get("", response_model=list[CategoryOut], summary="List all categories")
async def list_categories(db: DbSession) -> list[CategoryOut]:
    categories = await CategoryService(db).list_all()
    return [CategoryOut.model_validate(c) for c in categories]


@router.get("/{category_id}", response_model=CategoryOut, summary="Get a category")
async def get_category(category_id: int, db: DbSession) -> CategoryOut:
    return CategoryOut.model_validate(await CategoryService(db).get(category_id))


@router.get(
    "/{category_id}/acronyms",
    response_model=list[AcronymOut],
    summary="Acronyms in a category",
)
async def category_acronyms(category_id: int, db: DbSession) -> list[AcronymOut]:
    service = CategoryService(db)
    acronyms = await service.acronyms_in(await service.get(category_id))
    return [AcronymOut.model_validate(a) for a in acronyms]
