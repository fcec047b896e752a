"""Page cache management REST API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status

from page_loader.application.models import CacheEntryInfo, CacheStatsResponse, LoadResult
from page_loader.application.services import PageConfigLoader
from page_loader.domain.enums import LoadErrorKind
from page_loader.domain.exceptions import LoadError
from page_loader.infrastructure.logging import get_logger

logger = get_logger(__name__)

_STATUS_BY_KIND = {
    LoadErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    LoadErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    LoadErrorKind.INVALID_CONFIG: status.HTTP_422_UNPROCESSABLE_ENTITY,
    LoadErrorKind.NETWORK_ERROR: status.HTTP_502_BAD_GATEWAY,
    LoadErrorKind.CACHE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _http_error(error: LoadError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"kind": error.kind.value, "message": error.message},
    )


def create_cache_router(loader: PageConfigLoader) -> APIRouter:
    """Create the page cache management router.

    Args:
        loader: Page configuration loader whose cache is managed

    Returns:
        Configured FastAPI router
    """
    router = APIRouter(
        prefix="/api/v1/admin/cache",
        tags=["Page Cache"],
        responses={
            500: {"description": "Internal server error"},
        },
    )

    @router.get(  # type: ignore[misc]
        "/stats",
        response_model=CacheStatsResponse,
        summary="Get cache statistics",
        description="Entry count, memory usage, hit rate and evictions of the page cache",
    )
    async def get_stats() -> CacheStatsResponse:
        """Get page cache statistics."""
        try:
            stats = await loader.get_cache_stats()
        except Exception as e:
            logger.error("Failed to read cache statistics", exc_info=e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to retrieve cache statistics",
            ) from e

        return CacheStatsResponse(**stats.to_dict())

    @router.get(  # type: ignore[misc]
        "/{resource_id}",
        response_model=CacheEntryInfo,
        summary="Inspect a cached page",
        description="Whether a page is cached, and its etag and freshness when it is",
    )
    async def get_entry(resource_id: str) -> CacheEntryInfo:
        """Inspect the cache entry for a page.

        Args:
            resource_id: Page identifier

        Returns:
            CacheEntryInfo, with ``cached=False`` when nothing is stored
        """
        entry = await loader.get_cached_entry(resource_id)
        if entry is None:
            return CacheEntryInfo(resource_id=resource_id, cached=False)

        return CacheEntryInfo(
            resource_id=resource_id,
            cached=True,
            fresh=entry.is_fresh() and not loader.config.development_mode,
            etag=entry.etag or None,
            version=entry.version,
            fetched_at=entry.fetched_at,
            expires_at=entry.expires_at,
        )

    @router.delete(  # type: ignore[misc]
        "/{resource_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Invalidate a cached page",
        responses={503: {"description": "Cache store unavailable"}},
    )
    async def invalidate_entry(resource_id: str) -> Response:
        """Remove one page from the cache."""
        logger.info("Invalidating cached page", extra={"resource_id": resource_id})
        try:
            await loader.clear_cache(resource_id)
        except LoadError as e:
            raise _http_error(e) from None
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.delete(  # type: ignore[misc]
        "",
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Clear the page cache",
        responses={503: {"description": "Cache store unavailable"}},
    )
    async def clear_cache() -> Response:
        """Remove every page from the cache."""
        logger.info("Clearing page cache")
        try:
            await loader.clear_cache()
        except LoadError as e:
            raise _http_error(e) from None
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post(  # type: ignore[misc]
        "/{resource_id}/preload",
        response_model=LoadResult,
        summary="Load a page into the cache",
        description="Load a page configuration through the cache and return the result",
        responses={
            404: {"description": "Page not found at the source"},
            403: {"description": "Access to the page is forbidden"},
            422: {"description": "Invalid resource id or page configuration"},
            502: {"description": "Source unreachable and nothing cached"},
        },
    )
    async def preload(resource_id: str) -> LoadResult:
        """Load a page configuration, warming the cache.

        Raises:
            HTTPException: Mapped from the LoadError kind
        """
        try:
            return await loader.load(resource_id)
        except LoadError as e:
            logger.warning(
                "Preload failed",
                extra={"resource_id": resource_id, "kind": e.kind.value},
            )
            raise _http_error(e) from None

    return router


def create_admin_router(loader: PageConfigLoader) -> APIRouter:
    """Create the complete admin router with all sub-routers.

    Args:
        loader: Page configuration loader instance

    Returns:
        Configured FastAPI router with all admin endpoints
    """
    admin_router = APIRouter()
    admin_router.include_router(create_cache_router(loader))
    return admin_router
