"""API route registration."""

from fastapi import APIRouter

from retitler.api.handlers.documents import router as documents_router
from retitler.api.handlers.duplicates import router as duplicates_router
from retitler.api.handlers.health import router as health_router
from retitler.api.handlers.models import router as models_router
from retitler.api.handlers.title import router as title_router

# Main API router that aggregates all endpoint routers
api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(models_router, tags=["models"])
api_router.include_router(title_router, tags=["title"])
api_router.include_router(duplicates_router, tags=["duplicates"])
api_router.include_router(documents_router, tags=["documents"])
