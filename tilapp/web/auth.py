"""
Website sign-in: login/logout, registration, forgotten/reset password.

The logged-in user and any pending password reset are remembered in the
server-side session row, never in the cookie itself.
"""
# No postponed annotations here: the rate-limit decorator wraps ``login`` and
# FastAPI must read real types from the wrapper's signature.

from typing import Annotated
from urllib.parse import quote_plus

import structlog
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.responses import Response

from tilapp.api.deps import (
    AppSettings,
    CurrentWebSession,
    DbSession,
    OptionalWebUser,
    get_email_sender,
    save_web_session,
)
from tilapp.core.errors import ConflictError
from tilapp.core.rate_limit import auth_limit, limiter
from tilapp.services.email import EmailSender
from tilapp.services.password_reset import PasswordResetService
from tilapp.services.users import UserService
from tilapp.web.forms import RegisterForm, first_error_message
from tilapp.web.templating import render

_log = structlog.get_logger(__name__)

router = APIRouter(tags=["website"], include_in_schema=False)

Mailer = Annotated[EmailSender, Depends(get_email_sender)]


def _redirect(location: str) -> RedirectResponse:
    return RedirectResponse(url=location, status_code=303)


# ── Login / logout ────────────────────────────────────────────────────── #


@router.get("/login")
async def login_form(request: Request, user: OptionalWebUser) -> Response:
    return render(
        request,
        "login.html",
        user=user,
        title="Log In",
        login_error="error" in request.query_params,
    )


@router.post("/login")
@limiter.limit(auth_limit)
async def login(
    request: Request,
    session: CurrentWebSession,
    db: DbSession,
    username: Annotated[str, Form()],
    password: Annotated[str, Form()],
) -> Response:
    user = await UserService(db).authenticate(username, password)
    if user is None:
        return _redirect("/login?error")
    session = await save_web_session(request, db, session, rotate=True)
    session.user_id = user.id
    await db.commit()
    _log.info("web_login_success", user_id=user.id)
    return _redirect("/")


@router.post("/logout")
async def logout(session: CurrentWebSession, db: DbSession) -> Response:
    if session.id is not None:
        await db.delete(session)
        await db.commit()
    return _redirect("/")


# ── Registration ──────────────────────────────────────────────────────── #


@router.get("/register")
async def register_form(
    request: Request, user: OptionalWebUser, message: str | None = None
) -> Response:
    return render(request, "register.html", user=user, title="Register", message=message)


@router.post("/register")
async def register(
    request: Request,
    session: CurrentWebSession,
    db: DbSession,
    name: Annotated[str, Form()] = "",
    username: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
    confirm_password: Annotated[str, Form(alias="confirmPassword")] = "",
    email_address: Annotated[str, Form(alias="emailAddress")] = "",
    twitter_url: Annotated[str | None, Form(alias="twitterURL")] = None,
) -> Response:
    try:
        form = RegisterForm(
            name=name,
            username=username,
            password=password,
            confirm_password=confirm_password,
            email_address=email_address,
            twitter_url=twitter_url,
        )
    except PydanticValidationError as exc:
        return _redirect(f"/register?message={quote_plus(first_error_message(exc))}")

    try:
        user = await UserService(db).create(
            name=form.name,
            username=form.username,
            email=form.email_address,
            password=form.password,
            twitter_url=form.twitter_url,
        )
    except ConflictError as exc:
        return _redirect(f"/register?message={quote_plus(exc.message)}")

    session = await save_web_session(request, db, session, rotate=True)
    session.user_id = user.id
    await db.commit()
    _log.info("web_registration", user_id=user.id)
    return _redirect("/")


# ── Password reset ────────────────────────────────────────────────────── #


@router.get("/forgottenPassword")
async def forgotten_password_form(request: Request, user: OptionalWebUser) -> Response:
    return render(request, "forgotten_password.html", user=user, title="Reset Your Password")


@router.post("/forgottenPassword")
async def forgotten_password(
    request: Request,
    db: DbSession,
    mailer: Mailer,
    settings: AppSettings,
    user: OptionalWebUser,
    email: Annotated[str, Form()],
) -> Response:
    sent = await PasswordResetService(db, mailer, settings).request_reset(email)
    await db.commit()
    title = "Password Reset Email Sent" if sent else "Could not find user with that email."
    return render(request, "forgotten_password_confirmed.html", user=user, title=title)


@router.get("/resetPassword")
async def reset_password_form(
    request: Request,
    session: CurrentWebSession,
    db: DbSession,
    mailer: Mailer,
    settings: AppSettings,
    token: str | None = None,
) -> Response:
    if not token:
        return render(request, "reset_password.html", title="Reset Password", error=True)

    user = await PasswordResetService(db, mailer, settings).consume(token)
    if user is None:
        await db.commit()
        return _redirect("/")

    session = await save_web_session(request, db, session, rotate=True)
    session.reset_user_id = user.id
    await db.commit()
    return render(request, "reset_password.html", title="Reset Password", error=False)


@router.post("/resetPassword")
async def reset_password(
    request: Request,
    session: CurrentWebSession,
    db: DbSession,
    mailer: Mailer,
    settings: AppSettings,
    password: Annotated[str, Form()],
    confirm_password: Annotated[str, Form(alias="confirmPassword")],
) -> Response:
    if password != confirm_password:
        return render(request, "reset_password.html", title="Reset Password", error=True)

    if session.reset_user_id is None:
        return _redirect("/forgottenPassword")
    user = await UserService(db).get(session.reset_user_id)

    await PasswordResetService(db, mailer, settings).complete(user, password)
    session.reset_user_id = None
    await db.commit()
    return _redirect("/login")
