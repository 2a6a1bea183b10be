"""API routers for the setlists backend."""
from fastapi import APIRouter

from . import admin_jobs, apikeys, health, imports, sync_jobs, trending


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(admin_jobs.router)
    api_router.include_router(imports.router)
    api_router.include_router(sync_jobs.router)
    api_router.include_router(trending.router)
    api_router.include_router(apikeys.router)
    return api_router
