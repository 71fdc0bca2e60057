"""JSON API router aggregator."""

from fastapi import APIRouter

from tilapp.api.routes import acronyms, categories, users

router = APIRouter(prefix="/api")
router.include_router(acronyms.router)
router.include_router(users.router)
router.include_router(users.v2_router)
router.include_router(categories.router)
