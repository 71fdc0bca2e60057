"""
Website pages: browsing, acronym editing, profile pictures.

Pages that change data need a logged-in browser session; anonymous
visitors are redirected to ``/login``.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from starlette.responses import Response

from tilapp.api.deps import (
    AppSettings,
    CurrentWebSession,
    DbSession,
    OptionalWebUser,
    WebUser,
    check_csrf,
    get_picture_store,
)
from tilapp.core.errors import ErrorCode, ForbiddenError, NotFoundError, ValidationError
from tilapp.core.security import generate_csrf_token
from tilapp.services.acronyms import AcronymService, CategoryService
from tilapp.services.storage import ProfilePictureStore
from tilapp.services.users import UserService
from tilapp.web.templating import render

_log = structlog.get_logger(__name__)

router = APIRouter(tags=["website"], include_in_schema=False)

PictureStore = Annotated[ProfilePictureStore, Depends(get_picture_store)]


def _redirect(location: str) -> RedirectResponse:
    return RedirectResponse(url=location, status_code=303)


# ── Browsing ──────────────────────────────────────────────────────────── #


@router.get("/")
async def index(request: Request, db: DbSession, user: OptionalWebUser) -> Response:
    acronyms = await AcronymService(db).list_all()
    return render(
        request,
        "index.html",
        user=user,
        title="Home Page",
        acronyms=acronyms,
        show_cookie_message=request.cookies.get("cookies-accepted") is None,
    )


@router.get("/acronyms/create")
async def create_acronym_form(
    request: Request, user: WebUser, session: CurrentWebSession
) -> Response:
    session.csrf_token = generate_csrf_token()
    return render(
        request,
        "create_acronym.html",
        user=user,
        title="Create an Acronym",
        csrf_token=session.csrf_token,
        editing=False,
    )


@router.post("/acronyms/create")
async def create_acronym(
    user: WebUser,
    session: CurrentWebSession,
    db: DbSession,
    short: Annotated[str, Form(min_length=1)],
    long: Annotated[str, Form(min_length=1)],
    csrf_token: Annotated[str | None, Form()] = None,
    categories: Annotated[list[str] | None, Form()] = None,
) -> Response:
    await check_csrf(db, session, csrf_token)

    acronym = await AcronymService(db).create(user.id, short, long)
    category_service = CategoryService(db)
    for name in categories or []:
        if name.strip():
            await category_service.attach_by_name(acronym, name)
    await db.commit()
    return _redirect(f"/acronyms/{acronym.id}")


@router.get("/acronyms/{acronym_id}")
async def acronym_page(
    request: Request, acronym_id: int, db: DbSession, user: OptionalWebUser
) -> Response:
    service = AcronymService(db)
    acronym = await service.get(acronym_id)
    owner = await service.find_owner(acronym)
    categories = await CategoryService(db).for_acronym(acronym)
    return render(
        request,
        "acronym.html",
        user=user,
        title=acronym.short,
        acronym=acronym,
        owner=owner,
        categories=categories,
    )


@router.get("/acronyms/{acronym_id}/edit")
async def edit_acronym_form(
    request: Request,
    acronym_id: int,
    user: WebUser,
    session: CurrentWebSession,
    db: DbSession,
) -> Response:
    acronym = await AcronymService(db).get(acronym_id)
    categories = await CategoryService(db).for_acronym(acronym)
    session.csrf_token = generate_csrf_token()
    return render(
        request,
        "create_acronym.html",
        user=user,
        title="Edit Acronym",
        csrf_token=session.csrf_token,
        editing=True,
        acronym=acronym,
        categories=categories,
    )


@router.post("/acronyms/{acronym_id}/edit")
async def edit_acronym(
    acronym_id: int,
    user: WebUser,
    session: CurrentWebSession,
    db: DbSession,
    short: Annotated[str, Form(min_length=1)],
    long: Annotated[str, Form(min_length=1)],
    csrf_token: Annotated[str | None, Form()] = None,
    categories: Annotated[list[str] | None, Form()] = None,
) -> Response:
    await check_csrf(db, session, csrf_token)

    service = AcronymService(db)
    acronym = await service.update(await service.get(acronym_id), user, short, long)
    result = await CategoryService(db).reconcile(acronym, categories or [])
    # Field update and category changes land in one commit
    await db.commit()
    _log.info(
        "acronym_categories_reconciled",
        acronym_id=acronym.id,
        added=sorted(result.added),
        removed=sorted(result.removed),
    )
    return _redirect(f"/acronyms/{acronym.id}")


@router.post("/acronyms/{acronym_id}/delete")
async def delete_acronym(acronym_id: int, user: WebUser, db: DbSession) -> Response:
    service = AcronymService(db)
    await service.delete(await service.get(acronym_id))
    await db.commit()
    return _redirect("/")


@router.get("/users")
async def all_users(request: Request, db: DbSession, user: OptionalWebUser) -> Response:
    users = await UserService(db).list_all()
    return render(request, "all_users.html", user=user, title="All Users", users=users)


@router.get("/users/{user_id}")
async def user_page(
    request: Request, user_id: str, db: DbSession, user: OptionalWebUser
) -> Response:
    profile = await UserService(db).get(user_id)
    acronyms = await AcronymService(db).for_user(profile)
    return render(
        request,
        "user.html",
        user=user,
        title=profile.name,
        profile=profile,
        acronyms=acronyms,
    )


@router.get("/categories")
async def all_categories(request: Request, db: DbSession, user: OptionalWebUser) -> Response:
    categories = await CategoryService(db).list_all()
    return render(
        request, "all_categories.html", user=user, title="All Categories", categories=categories
    )


@router.get("/categories/{category_id}")
async def category_page(
    request: Request, category_id: int, db: DbSession, user: OptionalWebUser
) -> Response:
    service = CategoryService(db)
    category = await service.get(category_id)
    acronyms = await service.acronyms_in(category)
    return render(
        request,
        "category.html",
        user=user,
        title=category.name,
        category=category,
        acronyms=acronyms,
    )


# ── Profile pictures ──────────────────────────────────────────────────── #


@router.get("/users/{user_id}/addProfilePicture")
async def add_profile_picture_form(
    request: Request, user_id: str, user: WebUser, db: DbSession
) -> Response:
    if user_id != user.id:
        raise ForbiddenError("You can only change your own profile picture")
    return render(
        request,
        "add_profile_picture.html",
        user=user,
        title="Add Profile Picture",
        username=user.name,
    )


@router.post("/users/{user_id}/addProfilePicture")
async def add_profile_picture(
    user_id: str,
    user: WebUser,
    db: DbSession,
    store: PictureStore,
    settings: AppSettings,
    picture: Annotated[UploadFile, File()],
) -> Response:
    if user_id != user.id:
        raise ForbiddenError("You can only change your own profile picture")

    data = await picture.read(settings.max_upload_size_bytes + 1)
    if len(data) > settings.max_upload_size_bytes:
        raise ValidationError(
            "Profile picture is too large",
            detail={"max_size_mb": settings.max_upload_size_mb},
        )
    if not data:
        raise ValidationError("Profile picture is empty")

    user.profile_picture = store.save(user.id, data)
    await db.commit()
    return _redirect(f"/users/{user.id}")


@router.get("/users/{user_id}/profilePicture")
async def profile_picture(user_id: str, db: DbSession, store: PictureStore) -> Response:
    user = await UserService(db).get(user_id)
    if not user.profile_picture:
        raise NotFoundError("Profile picture", user_id, code=ErrorCode.USER_PICTURE_MISSING)
    path = store.path_for(user.profile_picture)
    if path is None:
        raise NotFoundError("Profile picture", user_id, code=ErrorCode.USER_PICTURE_MISSING)
    return FileResponse(path, media_type="image/jpeg")
