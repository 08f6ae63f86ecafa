"""Root API router mounted under the configured batch prefix."""

from fastapi import APIRouter

from batch_export.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from batch_export.api.v1.batch import batch_router

    root_router = APIRouter(prefix=settings.api_prefix)
    root_router.include_router(batch_router)

    return root_router
