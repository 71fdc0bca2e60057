"""
TIL: FastAPI application factory.

Application lifecycle:
  startup  → configure logging, run DB migrations, seed the admin user
  shutdown → dispose DB engine pool
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from tilapp.api.deps import DbSession
from tilapp.api.routes.router import router as api_router
from tilapp.config.logging_config import configure_logging
from tilapp.config.settings import Environment, Settings, get_settings
from tilapp.core.errors import AppError, RedirectRequired
from tilapp.core.middleware import (
    CorrelationIDMiddleware,
    SecurityHeadersMiddleware,
    SessionCookieMiddleware,
    app_error_handler,
    rate_limit_handler,
    redirect_handler,
    unhandled_exception_handler,
)
from tilapp.core.rate_limit import limiter
from tilapp.web import auth as web_auth
from tilapp.web import pages as web_pages
from tilapp.web.oauth import build_oauth_router

_log = structlog.get_logger(__name__)


async def _startup(settings: Settings) -> None:
    configure_logging(settings)
    _log.info(
        "til_starting",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    if settings.run_migrations_on_startup:
        from alembic import command
        from alembic.config import Config

        alembic_cfg = Config("alembic.ini")
        alembic_cfg.attributes["configure_logger"] = False
        command.upgrade(alembic_cfg, "head")
        _log.info("migrations_applied")

    if settings.seed_admin:
        await _seed_admin(settings)
    _log.info("til_ready", host=settings.host, port=settings.port)


async def _seed_admin(settings: Settings) -> None:
    """Create the bootstrap admin account if it is absent."""
    from tilapp.db.models.user import UserType
    from tilapp.db.session import get_session_factory
    from tilapp.services.users import UserService

    factory = get_session_factory(settings)
    async with factory() as db:
        service = UserService(db)
        if await service.find_by_username(settings.admin_username) is not None:
            return
        await service.create(
            name="Admin",
            username=settings.admin_username,
            email=settings.admin_email,
            password=settings.admin_password.get_secret_value(),
            user_type=UserType.ADMIN,
        )
        await db.commit()
        _log.info("admin_bootstrapped", username=settings.admin_username)


async def _shutdown() -> None:
    from tilapp.db.session import dispose_engine

    await dispose_engine()
    _log.info("til_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory. Returns a configured FastAPI instance."""
    settings = settings or get_settings()
    is_production = settings.environment is Environment.PRODUCTION

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Today I Learned: acronyms, their authors and categories.",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )

    # ── Startup / Shutdown ────────────────────────────────────────────── #
    @app.on_event("startup")
    async def on_startup() -> None:
        await _startup(settings)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await _shutdown()

    # ── Rate Limiting ─────────────────────────────────────────────────── #
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)

    # ── CORS ──────────────────────────────────────────────────────────── #
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    # ── Custom Middleware (applied in reverse order) ───────────────────── #
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        SessionCookieMiddleware,
        cookie_name=settings.session_cookie_name,
        max_age_seconds=settings.session_max_age_days * 86400,
        secure=is_production,
    )
    app.add_middleware(CorrelationIDMiddleware)

    # ── Exception Handlers ────────────────────────────────────────────── #
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RedirectRequired, redirect_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routes ────────────────────────────────────────────────────────── #
    app.include_router(api_router)
    app.include_router(web_auth.router)
    app.include_router(build_oauth_router(settings))
    app.include_router(web_pages.router)

    # ── Health ────────────────────────────────────────────────────────── #
    @app.get("/health", tags=["health"], summary="Health check")
    async def health(db: DbSession) -> dict[str, object]:
        """Returns service health including database reachability."""
        import sqlalchemy as sa
        from sqlalchemy.exc import SQLAlchemyError

        db_ok = True
        try:
            await db.execute(sa.text("SELECT 1"))
        except SQLAlchemyError as exc:
            _log.warning("health_db_unavailable", error=str(exc))
            db_ok = False

        return {
            "status": "healthy" if db_ok else "degraded",
            "database": "ok" if db_ok else "unavailable",
            "version": settings.app_version,
        }

    # ── Metrics (Prometheus) ──────────────────────────────────────────── #
    @app.get("/metrics", tags=["observability"], summary="Prometheus metrics")
    async def metrics() -> Response:
        from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# Entry point for uvicorn
app = create_app()
