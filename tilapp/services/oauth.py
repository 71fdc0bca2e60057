"""
Google and GitHub login.

The provider's authorization-code exchange and profile endpoints are
called with httpx. A 401 from the provider sends the browser back to the
matching ``/login-<provider>`` route; any other non-success is an
upstream failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from tilapp.config.settings import Settings
from tilapp.core.errors import ErrorCode, RedirectRequired, UpstreamError

_log = structlog.get_logger(__name__)


class OAuthProvider(StrEnum):
    GOOGLE = "google"
    GITHUB = "github"


@dataclass(frozen=True)
class ProviderEndpoints:
    authorize_url: str
    token_url: str
    scopes: tuple[str, ...]
    login_path: str


ENDPOINTS: dict[OAuthProvider, ProviderEndpoints] = {
    OAuthProvider.GOOGLE: ProviderEndpoints(
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        scopes=("profile", "email"),
        login_path="/login-google",
    ),
    OAuthProvider.GITHUB: ProviderEndpoints(
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        scopes=("user:email",),
        login_path="/login-github",
    ),
}

GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v1/userinfo?alt=json"
GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"


class GoogleUserInfo(BaseModel):
    email: str
    name: str = ""


class GitHubUserInfo(BaseModel):
    login: str
    name: str | None = None


class GitHubEmailInfo(BaseModel):
    email: str
    primary: bool = False
    verified: bool = False


@dataclass(frozen=True)
class FederatedIdentity:
    """What the provider told us, shaped for the local user lookup."""

    provider: OAuthProvider
    username: str
    name: str
    email: str
    match_on_email: bool


def pick_github_email(emails: list[GitHubEmailInfo]) -> str:
    """Primary verified address, then any verified one, then the first listed."""
    for email in emails:
        if email.primary and email.verified:
            return email.email
    for email in emails:
        if email.verified:
            return email.email
    if emails:
        return emails[0].email
    raise UpstreamError(ErrorCode.UPSTREAM_OAUTH_FAILED, "GitHub returned no email addresses")


class OAuthClient:
    """Talks to the providers. Pass ``transport`` to stub the network in tests."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _credentials(self, provider: OAuthProvider) -> tuple[str, str, str]:
        if provider is OAuthProvider.GOOGLE:
            client_id = self._settings.google_client_id
            secret = self._settings.google_client_secret
            callback = self._settings.google_callback_url
        else:
            client_id = self._settings.github_client_id
            secret = self._settings.github_client_secret
            callback = self._settings.github_callback_url
        if not client_id or secret is None:
            raise UpstreamError(
                ErrorCode.UPSTREAM_OAUTH_FAILED, f"{provider.value} login is not configured"
            )
        return client_id, secret.get_secret_value(), callback

    def authorization_url(self, provider: OAuthProvider, state: str) -> str:
        client_id, _, callback = self._credentials(provider)
        endpoints = ENDPOINTS[provider]
        params = {
            "client_id": client_id,
            "redirect_uri": callback,
            "scope": " ".join(endpoints.scopes),
            "state": state,
            "response_type": "code",
        }
        return f"{endpoints.authorize_url}?{urlencode(params)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    @staticmethod
    def _check(response: httpx.Response, provider: OAuthProvider) -> Any:
        if response.status_code == 401:
            _log.info("oauth_unauthorized", provider=provider.value)
            raise RedirectRequired(ENDPOINTS[provider].login_path)
        if response.status_code != 200:
            _log.error(
                "oauth_upstream_error",
                provider=provider.value,
                status_code=response.status_code,
            )
            raise UpstreamError(
                ErrorCode.UPSTREAM_OAUTH_FAILED,
                f"{provider.value} responded with an error",
                detail={"status_code": response.status_code},
            )
        return response.json()

    async def exchange_code(self, provider: OAuthProvider, code: str) -> str:
        """Trade an authorization code for an access token."""
        client_id, secret, callback = self._credentials(provider)
        data = {
            "client_id": client_id,
            "client_secret": secret,
            "code": code,
            "redirect_uri": callback,
            "grant_type": "authorization_code",
        }
        async with self._client() as client:
            try:
                response = await client.post(ENDPOINTS[provider].token_url, data=data)
            except httpx.HTTPError as exc:
                raise UpstreamError(
                    ErrorCode.UPSTREAM_OAUTH_FAILED, f"{provider.value} unreachable"
                ) from exc

        body = self._check(response, provider)
        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            # GitHub reports a bad or reused code as 200 with an "error" field
            _log.info("oauth_code_rejected", provider=provider.value)
            raise RedirectRequired(ENDPOINTS[provider].login_path)
        return str(access_token)

    async def _get_json(
        self, client: httpx.AsyncClient, url: str, access_token: str, provider: OAuthProvider
    ) -> Any:
        try:
            response = await client.get(url, headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as exc:
            raise UpstreamError(
                ErrorCode.UPSTREAM_OAUTH_FAILED, f"{provider.value} unreachable"
            ) from exc
        return self._check(response, provider)

    async def fetch_identity(self, provider: OAuthProvider, access_token: str) -> FederatedIdentity:
        async with self._client() as client:
            try:
                if provider is OAuthProvider.GOOGLE:
                    info = GoogleUserInfo.model_validate(
                        await self._get_json(client, GOOGLE_USERINFO_URL, access_token, provider)
                    )
                    return FederatedIdentity(
                        provider=provider,
                        username=info.email,
                        name=info.name or info.email,
                        email=info.email,
                        match_on_email=True,
                    )

                user_body = await self._get_json(client, GITHUB_USER_URL, access_token, provider)
                emails_body = await self._get_json(
                    client, GITHUB_EMAILS_URL, access_token, provider
                )
                user = GitHubUserInfo.model_validate(user_body)
                emails = [GitHubEmailInfo.model_validate(e) for e in emails_body]
            except PydanticValidationError as exc:
                raise UpstreamError(
                    ErrorCode.UPSTREAM_OAUTH_FAILED,
                    f"{provider.value} returned an unexpected profile",
                ) from exc

        return FederatedIdentity(
            provider=provider,
            username=user.login,
            name=user.name or user.login,
            email=pick_github_email(emails),
            match_on_email=False,
        )
