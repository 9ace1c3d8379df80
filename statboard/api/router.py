"""Master API router — includes all sub-routers."""

from fastapi import APIRouter

from .routes.catalog import router as catalog_router
from .routes.custom_widgets import router as custom_widgets_router
from .routes.modules import router as modules_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(modules_router)
api_router.include_router(custom_widgets_router)
api_router.include_router(catalog_router)
