from src.registry.api.routers.jobs import router as jobs_router
from src.registry.api.routers.catalog import router as catalog_router

__all__ = ["jobs_router", "catalog_router"]
