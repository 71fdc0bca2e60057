"""
Google and GitHub sign-in for the website.

The callback paths come from the configured callback URLs, so the routes
always match what is registered with each provider.
"""

from __future__ import annotations

from typing import Annotated
from urllib.parse import urlparse

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from tilapp.api.deps import CurrentWebSession, DbSession, get_oauth_client, save_web_session
from tilapp.config.settings import Settings
from tilapp.core.errors import BadRequestError, ErrorCode, RedirectRequired
from tilapp.core.security import generate_oauth_state, safe_str_compare
from tilapp.services.oauth import ENDPOINTS, OAuthClient, OAuthProvider
from tilapp.services.users import UserService

_log = structlog.get_logger(__name__)

Client = Annotated[OAuthClient, Depends(get_oauth_client)]


def _callback_path(url: str) -> str:
    return urlparse(url).path or "/"


def build_oauth_router(settings: Settings) -> APIRouter:
    router = APIRouter(tags=["website"], include_in_schema=False)

    def add_provider(provider: OAuthProvider, callback_url: str) -> None:
        async def start(
            request: Request, session: CurrentWebSession, db: DbSession, client: Client
        ):
            session = await save_web_session(request, db, session)
            session.oauth_state = generate_oauth_state()
            url = client.authorization_url(provider, session.oauth_state)
            await db.commit()
            return RedirectResponse(url=url, status_code=303)

        async def callback(
            request: Request,
            session: CurrentWebSession,
            db: DbSession,
            client: Client,
            code: str | None = None,
            state: str | None = None,
        ):
            # State is spent before anything below can fail and roll back
            expected = session.oauth_state
            session.oauth_state = None
            await db.commit()
            if not expected or not state or not safe_str_compare(expected, state):
                _log.warning("oauth_state_mismatch", provider=provider.value)
                raise BadRequestError(
                    "OAuth state mismatch", code=ErrorCode.AUTH_OAUTH_STATE_INVALID
                )
            if not code:
                # Provider sent the user back without a grant, e.g. access denied
                raise RedirectRequired(ENDPOINTS[provider].login_path)

            access_token = await client.exchange_code(provider, code)
            identity = await client.fetch_identity(provider, access_token)
            user = await UserService(db).find_or_create_federated(
                username=identity.username,
                name=identity.name,
                email=identity.email,
                match_on_email=identity.match_on_email,
            )
            session = await save_web_session(request, db, session, rotate=True)
            session.user_id = user.id
            await db.commit()
            _log.info("oauth_login_success", provider=provider.value, user_id=user.id)
            return RedirectResponse(url="/", status_code=303)

        router.add_api_route(ENDPOINTS[provider].login_path, start, methods=["GET"])
        router.add_api_route(_callback_path(callback_url), callback, methods=["GET"])

    add_provider(OAuthProvider.GOOGLE, settings.google_callback_url)
    add_provider(OAuthProvider.GITHUB, settings.github_callback_url)
    return router
