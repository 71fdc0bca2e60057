"""
Shared pytest fixtures for TIL tests.

Provides:
  - async SQLite in-memory database with foreign keys on (per-test isolation)
  - HTTP client wired to that database, with the mailer, OAuth providers
    and picture storage replaced by test doubles
  - users and bearer-token headers for the common test accounts
"""
from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from unittest.mock import AsyncMock

# Settings are cached on first use; pin the test environment before any
# tilapp import builds them.
os.environ.update(
    {
        "ENVIRONMENT": "testing",
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "RUN_MIGRATIONS_ON_STARTUP": "false",
        "SEED_ADMIN": "false",
        "LOG_JSON": "false",
        "RATE_LIMIT_DEFAULT": "10000/minute",
        "RATE_LIMIT_AUTH": "10000/minute",
        "PUBLIC_BASE_URL": "http://test",
        "PROFILE_PICTURE_DIR": tempfile.mkdtemp(prefix="til-pictures-"),
        "GOOGLE_CLIENT_ID": "google-client",
        "GOOGLE_CLIENT_SECRET": "google-secret",
        "GOOGLE_CALLBACK_URL": "http://test/oauth/google",
        "GITHUB_CLIENT_ID": "github-client",
        "GITHUB_CLIENT_SECRET": "github-secret",
        "GITHUB_CALLBACK_URL": "http://test/oauth/github",
    }
)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tests.helpers import PASSWORD, bearer_headers  # noqa: E402
from tilapp.api.deps import (  # noqa: E402
    get_email_sender,
    get_oauth_client,
    get_picture_store,
)
from tilapp.config.settings import get_settings  # noqa: E402
from tilapp.core.rate_limit import limiter  # noqa: E402
from tilapp.db.base import Base  # noqa: E402
from tilapp.db.models.user import User, UserType  # noqa: E402
from tilapp.db.session import enable_sqlite_foreign_keys, get_db  # noqa: E402
from tilapp.main import create_app  # noqa: E402
from tilapp.services.email import EmailSender  # noqa: E402
from tilapp.services.oauth import OAuthClient  # noqa: E402
from tilapp.services.storage import ProfilePictureStore  # noqa: E402
from tilapp.services.users import UserService  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an async in-memory SQLite engine per test function."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session for arranging and inspecting state directly."""
    async with session_factory() as session:
        yield session


# ─── Test doubles ─────────────────────────────────────────────────────────────

@dataclass
class FakeProviders:
    """
    Canned OAuth provider responses keyed by (method, URL without query).

    Every request the OAuth client makes is recorded in ``requests``.
    """

    responses: dict[tuple[str, str], httpx.Response] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = request.url
        key = (request.method, f"{url.scheme}://{url.host}{url.path}")
        if key not in self.responses:
            return httpx.Response(404, json={"message": "no canned response"})
        return self.responses[key]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def mailer() -> AsyncMock:
    return AsyncMock(spec=EmailSender)


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def picture_dir(tmp_path):
    return tmp_path / "pictures"


# ─── App & HTTP client ────────────────────────────────────────────────────────

@pytest_asyncio.fixture(scope="function")
async def app(session_factory, mailer, providers, picture_dir):
    """FastAPI test app bound to the per-test database and test doubles."""
    settings = get_settings()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app_ = create_app(settings=settings)
    app_.dependency_overrides[get_db] = override_get_db
    app_.dependency_overrides[get_email_sender] = lambda: mailer
    app_.dependency_overrides[get_oauth_client] = lambda: OAuthClient(
        settings, transport=providers.transport()
    )
    app_.dependency_overrides[get_picture_store] = lambda: ProfilePictureStore(picture_dir)
    return app_


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async HTTP client. Keeps cookies between requests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


# ─── Users & credentials ──────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    """Create and commit a user; keyword arguments override the defaults."""

    async def _make(
        username: str = "alice",
        *,
        name: str | None = None,
        email: str | None = None,
        password: str = PASSWORD,
        user_type: UserType = UserType.STANDARD,
    ) -> User:
        user = await UserService(db_session).create(
            name=name or username.title(),
            username=username,
            email=email or f"{username}@x.com",
            password=password,
            user_type=user_type,
        )
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def alice(make_user) -> User:
    return await make_user("alice")


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("admin", user_type=UserType.ADMIN)


@pytest_asyncio.fixture
async def alice_headers(client, alice) -> dict:
    return await bearer_headers(client, "alice")


@pytest_asyncio.fixture
async def admin_headers(client, admin) -> dict:
    return await bearer_headers(client, "admin")

