"""
FastAPI dependency providers.

All authentication and authorization logic lives here, not in routes.
The authenticated user is resolved once per request and handed to the
route as a parameter; nothing is stored globally.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
)
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from tilapp.config.settings import Settings, get_settings
from tilapp.core.errors import (
    AuthError,
    BadRequestError,
    ErrorCode,
    ForbiddenError,
    RedirectRequired,
)
from tilapp.core.security import generate_session_id, safe_str_compare
from tilapp.db.base import utcnow
from tilapp.db.models.user import User, UserType
from tilapp.db.models.web_session import WebSession
from tilapp.db.session import get_db
from tilapp.services.email import EmailSender
from tilapp.services.oauth import OAuthClient
from tilapp.services.storage import ProfilePictureStore
from tilapp.services.users import UserService

_log = structlog.get_logger(__name__)
_bearer = HTTPBearer(auto_error=False)
_basic = HTTPBasic(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]


# ── API: bearer token ─────────────────────────────────────────────────── #


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    db: DbSession,
) -> User:
    """
    Resolve the Bearer token to its user.

    No credential and a credential that resolves to nobody are reported
    with different codes; both are 401.
    """
    if credentials is None:
        raise AuthError(
            ErrorCode.AUTH_CREDENTIALS_MISSING, "Authorization header missing or not Bearer type"
        )

    user = await UserService(db).resolve_token(credentials.credentials)
    if user is None:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Token invalid or expired")

    structlog.contextvars.bind_contextvars(user_id=user.id, username=user.username)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*user_types: UserType):
    """Return a dependency callable that enforces the caller's user type."""

    allowed = [t.value for t in user_types]

    async def _check(user: CurrentUser) -> User:
        if user.user_type not in allowed:
            raise ForbiddenError(
                f"This action requires one of: {allowed}. Your role is: {user.user_type}"
            )
        return user

    return _check


AdminUser = Depends(require_roles(UserType.ADMIN))


async def get_basic_user(
    credentials: Annotated[HTTPBasicCredentials | None, Depends(_basic)],
    db: DbSession,
) -> User:
    """Verify HTTP Basic username/password for the token login endpoint."""
    if credentials is None:
        raise AuthError(ErrorCode.AUTH_CREDENTIALS_MISSING, "Basic credentials required")
    user = await UserService(db).authenticate(credentials.username, credentials.password)
    if user is None:
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, "Invalid username or password")
    return user


BasicUser = Annotated[User, Depends(get_basic_user)]


# ── Website: server-side session ──────────────────────────────────────── #


def _session_max_age(settings: Settings) -> timedelta:
    return timedelta(days=settings.session_max_age_days)


async def get_web_session(request: Request, db: DbSession, settings: AppSettings) -> WebSession:
    """
    Load the live row behind the session cookie.

    A missing cookie, an id with no row and an idle row all yield an unsaved
    session. It only reaches the database through ``save_web_session``.
    """
    session_id: str | None = request.state.session_id
    if session_id is not None:
        session = await db.get(WebSession, session_id)
        if session is not None and not session.is_expired(_session_max_age(settings)):
            return session
    return WebSession()


CurrentWebSession = Annotated[WebSession, Depends(get_web_session)]


async def save_web_session(
    request: Request,
    db: AsyncSession,
    session: WebSession,
    *,
    rotate: bool = False,
) -> WebSession:
    """
    Make sure ``session`` is stored under an id this server issued.

    An unsaved session is inserted under a fresh id. With ``rotate`` a stored
    session also moves to a fresh id and its old row is deleted; call it that
    way whenever the session gains a user, so an id known before sign-in is
    worthless after it. The middleware sends the new id as the cookie.
    """
    if session.id is not None and not rotate:
        return session

    fresh = WebSession(
        id=generate_session_id(),
        user_id=session.user_id,
        reset_user_id=session.reset_user_id,
        csrf_token=session.csrf_token,
        oauth_state=session.oauth_state,
    )
    if session.id is not None:
        await db.delete(session)
    cutoff = utcnow() - _session_max_age(get_settings())
    await db.execute(
        delete(WebSession)
        .where(WebSession.updated_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.add(fresh)
    await db.flush()
    request.state.session_id = fresh.id
    return fresh


async def get_web_user(session: CurrentWebSession, db: DbSession) -> User | None:
    """The logged-in user for this browser, or None."""
    if session.user_id is None:
        return None
    user = await db.get(User, session.user_id)
    if user is None or user.is_deleted:
        session.user_id = None
        return None
    structlog.contextvars.bind_contextvars(user_id=user.id, username=user.username)
    return user


OptionalWebUser = Annotated[User | None, Depends(get_web_user)]


async def require_web_user(user: OptionalWebUser) -> User:
    """Send anonymous visitors to the login page."""
    if user is None:
        raise RedirectRequired("/login")
    return user


WebUser = Annotated[User, Depends(require_web_user)]


async def check_csrf(db: AsyncSession, session: WebSession, submitted: str | None) -> None:
    """
    Compare a form's CSRF token with the one minted into the session.

    The stored token is cleared first, so every token works once. On a
    mismatch the clearing is committed before the error unwinds the request.
    """
    expected = session.csrf_token
    session.csrf_token = None
    if not expected or not submitted or not safe_str_compare(expected, submitted):
        await db.commit()
        _log.warning("csrf_check_failed")
        raise BadRequestError("Invalid CSRF token", code=ErrorCode.AUTH_CSRF_INVALID)


# ── Collaborators (overridden in tests) ───────────────────────────────── #


def get_email_sender(settings: AppSettings) -> EmailSender:
    return EmailSender(settings)


def get_oauth_client(settings: AppSettings) -> OAuthClient:
    return OAuthClient(settings)


def get_picture_store(settings: AppSettings) -> ProfilePictureStore:
    return ProfilePictureStore(settings.profile_picture_dir)
