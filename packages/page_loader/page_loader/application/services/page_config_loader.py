"""Page configuration loader with ETag caching and stale-while-revalidate.

The loader is the single public surface of the package. For each request it
decides between a fresh cache hit, a stale hit with background revalidation,
and a synchronous deduplicated fetch, and funnels every failure through the
error classifier.
"""

from __future__ import annotations

import asyncio
import copy
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from page_loader.application.events import (
    REVALIDATION_COMPLETED,
    REVALIDATION_FAILED,
    Event,
    EventBus,
    EventHandler,
)
from page_loader.application.models import LoadOptions, LoadResult
from page_loader.application.services.error_classifier import ErrorClassifier
from page_loader.application.services.request_deduplicator import RequestDeduplicator
from page_loader.config import LoaderConfig, get_config
from page_loader.domain.entities import CacheEntry, CacheStats, FetchOutcome
from page_loader.domain.enums import FetchStatus, LoadErrorKind, LoadSource
from page_loader.domain.exceptions import CacheStoreError, LoadCancelledError, LoadError
from page_loader.domain.interfaces import CacheStore, FetchClient
from page_loader.domain.services import NO_CACHE, PageConfigValidator
from page_loader.infrastructure.logging import get_logger
from page_loader.infrastructure.monitoring import LoaderMetricsCollector

if TYPE_CHECKING:
    from page_loader.infrastructure.cache import MemoryCacheStore

logger = get_logger(__name__)


class PageConfigLoader:
    """Loads page configurations through a cache with conditional revalidation.

    Example:
        store = MemoryCacheStore()
        async with HttpFetchClient(base_url="https://api.example.com") as client:
            loader = PageConfigLoader(store, client)
            result = await loader.load("dashboard-page")
    """

    def __init__(
        self,
        cache_store: CacheStore,
        fetch_client: FetchClient,
        config: LoaderConfig | None = None,
        validator: PageConfigValidator | None = None,
        classifier: ErrorClassifier | None = None,
        metrics: LoaderMetricsCollector | None = None,
        event_bus: EventBus | None = None,
        owns_resources: bool = False,
    ) -> None:
        """Initialize the loader.

        Args:
            cache_store: Store holding cached configurations
            fetch_client: Client performing conditional fetches
            config: Loader configuration (defaults to the global config)
            validator: Payload validator; subclass to change the rules
            classifier: Error classifier
            metrics: Metrics collector
            event_bus: Bus receiving background revalidation events
            owns_resources: Close store and client in ``aclose``
        """
        self._config = config or get_config()
        self._store = cache_store
        self._fetch_client = fetch_client
        self._validator = validator or PageConfigValidator()
        self._classifier = classifier or ErrorClassifier()
        self._metrics = metrics or LoaderMetricsCollector()
        self._events = event_bus or EventBus()
        self._owns_resources = owns_resources

        self._deduplicator: RequestDeduplicator[LoadResult] = RequestDeduplicator(
            on_join=self._metrics.record_dedup_join
        )
        self._background: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(
        cls,
        config: LoaderConfig | None = None,
        metrics: LoaderMetricsCollector | None = None,
    ) -> PageConfigLoader:
        """Build a loader with an in-memory store and HTTP client it owns.

        Args:
            config: Loader configuration (defaults to the global config)
            metrics: Metrics collector

        Returns:
            Loader that closes its store and client in ``aclose``
        """
        from page_loader.infrastructure.cache import MemoryCacheStore
        from page_loader.infrastructure.http import HttpFetchClient

        config = config or get_config()
        metrics = metrics or LoaderMetricsCollector()

        async def on_removed(entry: CacheEntry, reason: str) -> None:
            metrics.record_eviction(reason)

        store = MemoryCacheStore(
            capacity=config.cache.capacity,
            max_memory_mb=config.cache.max_memory_mb,
            eviction_callback=on_removed,
        )
        client = HttpFetchClient(config=config)
        return cls(store, client, config=config, metrics=metrics, owns_resources=True)

    @property
    def config(self) -> LoaderConfig:
        """Get loader configuration."""
        return self._config

    @property
    def cache_store(self) -> CacheStore:
        """Get the cache store."""
        return self._store

    async def load(self, resource_id: str, options: LoadOptions | None = None) -> LoadResult:
        """Load a page configuration.

        Args:
            resource_id: Page identifier
            options: Per-call options

        Returns:
            LoadResult with the fresh, revalidated or stale configuration

        Raises:
            LoadError: Classified failure when no payload can be returned
            LoadCancelledError: If the caller's cancellation token fired
        """
        options = options or LoadOptions()

        try:
            self._validator.validate_resource_id(resource_id)
            result = await self._load(resource_id, options)
        except LoadError as e:
            self._metrics.record_load_error(e.kind.value)
            logger.warning(
                "Page configuration load failed",
                extra={"resource_id": resource_id, "kind": e.kind.value, "error": e.message},
            )
            raise
        except LoadCancelledError:
            raise
        except Exception as e:
            error = self._classifier.classify(resource_id, e)
            if error.kind == LoadErrorKind.UNKNOWN:
                logger.error(
                    "Unexpected error loading page configuration",
                    exc_info=e,
                    extra={"resource_id": resource_id},
                )
            self._metrics.record_load_error(error.kind.value)
            raise error from e

        self._metrics.record_load(result.source.value)
        return result

    async def preload(self, resource_id: str, options: LoadOptions | None = None) -> None:
        """Warm the cache for a page ahead of navigation.

        Failures are logged and discarded.
        """
        try:
            await self.load(resource_id, options)
        except LoadError as e:
            logger.warning(
                "Failed to preload page configuration",
                extra={"resource_id": resource_id, "kind": e.kind.value},
            )

    async def clear_cache(self, resource_id: str | None = None) -> None:
        """Invalidate one cached page, or all of them.

        Fetches already in flight for a cleared page still answer their
        callers, but their results are not written back to the cache.

        Raises:
            LoadError: CACHE_ERROR if the store cannot be cleared
        """
        try:
            await self._store.invalidate(resource_id)
        except CacheStoreError as e:
            logger.error(
                "Failed to clear page cache",
                extra={"resource_id": resource_id or "*", "error": e.message},
            )
            raise self._classifier.classify(resource_id or "*", e) from e
        await self._refresh_size_gauge()
        logger.info(
            "Page cache cleared",
            extra={"resource_id": resource_id or "*"},
        )

    async def is_cached(self, resource_id: str) -> bool:
        """Check whether a fresh entry exists for the page."""
        entry = await self._peek_cache(resource_id)
        return entry is not None and self._is_fresh(entry)

    async def get_cached_entry(self, resource_id: str) -> CacheEntry | None:
        """Get the cached entry for a page, fresh or stale.

        Inspection leaves hit statistics and eviction order untouched.
        """
        return await self._peek_cache(resource_id)

    async def get_cache_stats(self) -> CacheStats:
        """Get cache statistics."""
        return await self._store.stats()

    def subscribe(self, handler: EventHandler, event_type: str | None = None) -> None:
        """Register an observer of background revalidation.

        Args:
            handler: Observer with an async ``handle(event)`` method
            event_type: One event type, or None for both completion and failure
        """
        for kind in (event_type,) if event_type else (REVALIDATION_COMPLETED, REVALIDATION_FAILED):
            self._events.subscribe(kind, handler)

    def unsubscribe(self, handler: EventHandler, event_type: str | None = None) -> None:
        """Remove an observer registered with ``subscribe``."""
        for kind in (event_type,) if event_type else (REVALIDATION_COMPLETED, REVALIDATION_FAILED):
            self._events.unsubscribe(kind, handler)

    async def wait_for_background(self) -> None:
        """Wait for scheduled background revalidations to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def start(self) -> None:
        """Restore the cache snapshot when one is configured and present."""
        path = self._config.cache.snapshot_path
        store = self._snapshot_store()
        if path is None or store is None or not path.exists():
            return
        try:
            await store.load_snapshot(path)
        except CacheStoreError as e:
            logger.warning(
                "Ignoring unreadable cache snapshot",
                extra={"path": str(path), "error": e.message},
            )
        await self._refresh_size_gauge()

    async def aclose(self) -> None:
        """Finish background work and release owned resources.

        The cache snapshot, when configured, is written before the store is
        closed.
        """
        await self.wait_for_background()
        await self._deduplicator.wait_idle()

        path = self._config.cache.snapshot_path
        store = self._snapshot_store()
        if path is not None and store is not None:
            try:
                await store.save_snapshot(path)
            except CacheStoreError as e:
                logger.warning(
                    "Failed to save cache snapshot",
                    extra={"path": str(path), "error": e.message},
                )

        if self._owns_resources:
            await self._fetch_client.aclose()
            await self._store.close()

    async def __aenter__(self) -> PageConfigLoader:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.aclose()

    def _snapshot_store(self) -> MemoryCacheStore | None:
        from page_loader.infrastructure.cache import MemoryCacheStore

        return self._store if isinstance(self._store, MemoryCacheStore) else None

    async def _load(self, resource_id: str, options: LoadOptions) -> LoadResult:
        skip_cache = options.skip_cache or self._config.development_mode
        stale_while_revalidate = (
            options.stale_while_revalidate
            if options.stale_while_revalidate is not None
            else self._config.cache.stale_while_revalidate
        )

        entry = await self._read_cache(resource_id)

        if entry is not None and not skip_cache:
            if self._is_fresh(entry):
                return self._result(entry, LoadSource.CACHE, from_cache=True)

            if stale_while_revalidate:
                self._schedule_revalidation(resource_id, options)
                return self._result(
                    entry, LoadSource.STALE_WHILE_REVALIDATE, from_cache=True, stale=True
                )

        result = await self._deduplicator.run(
            resource_id,
            lambda: self._refresh(resource_id, options),
            cancellation=options.cancellation,
        )
        # Attached callers share one result object, hand each its own copy
        return result.model_copy(deep=True)

    async def _refresh(self, resource_id: str, options: LoadOptions) -> LoadResult:
        """Fetch from the source and reconcile the outcome with the cache.

        The key's generation is read before the cache, so an invalidation
        that lands while the fetch is in flight makes the write a no-op.
        """
        generation = await self._read_generation(resource_id)
        entry = await self._read_cache(resource_id)
        known_etag = entry.etag if entry is not None and entry.etag else None

        started = time.perf_counter()
        try:
            outcome = await self._fetch_client.fetch(resource_id, known_etag)
        except Exception as e:
            self._metrics.record_fetch("ERROR", time.perf_counter() - started)
            error = self._classifier.classify(resource_id, e)
            if error.kind != LoadErrorKind.NETWORK_ERROR:
                raise error from e
            # Raised transport errors get the same stale fallback as returned ones
            outcome = FetchOutcome.transport_failure(e)
        else:
            self._metrics.record_fetch(outcome.status.value, time.perf_counter() - started)

        if outcome.status == FetchStatus.UPDATED:
            return await self._accept(resource_id, outcome, options, generation)

        if outcome.status == FetchStatus.NOT_MODIFIED:
            if entry is None:
                raise LoadError(
                    LoadErrorKind.UNKNOWN,
                    resource_id,
                    message=f"Source reported not modified but no cached copy exists: {resource_id}",
                )
            refreshed = entry.refreshed(
                datetime.now(UTC), ttl_seconds=options.cache_ttl_override
            )
            stored = await self._write(refreshed, generation)
            logger.debug(
                "Page configuration revalidated",
                extra={"resource_id": resource_id, "etag": entry.etag, "stored": stored},
            )
            return self._result(refreshed, LoadSource.REVALIDATED, from_cache=True)

        if (
            outcome.status == FetchStatus.TRANSPORT_FAILURE
            and entry is not None
            and self._config.cache.stale_fallback_enabled
        ):
            logger.warning(
                "Serving cached page configuration after fetch failure",
                extra={
                    "resource_id": resource_id,
                    "etag": entry.etag,
                    "error": str(outcome.cause),
                },
            )
            return self._result(
                entry,
                LoadSource.STALE_FALLBACK,
                from_cache=True,
                stale=not entry.is_fresh(),
            )

        # NOT_FOUND / FORBIDDEN never touch the cache
        raise self._classifier.classify(resource_id, outcome) from outcome.cause

    async def _accept(
        self,
        resource_id: str,
        outcome: FetchOutcome,
        options: LoadOptions,
        generation: int | None,
    ) -> LoadResult:
        payload = outcome.payload or {}
        etag = outcome.etag or ""
        try:
            self._validator.validate(resource_id, payload)
        except Exception as e:
            raise self._classifier.classify(resource_id, e) from e

        policy = self._validator.cache_policy(payload)
        if policy == NO_CACHE:
            await self._invalidate_quietly(resource_id)
            logger.debug("Page opts out of caching", extra={"resource_id": resource_id})
            return self._uncached_result(payload, etag)

        ttl_seconds = self._resolve_ttl(options, outcome.max_age, policy)
        try:
            entry = await self._store.put(
                resource_id, payload, etag, ttl_seconds, expected_generation=generation
            )
        except CacheStoreError as e:
            logger.warning(
                "Failed to cache page configuration",
                extra={"resource_id": resource_id, "error": e.message},
            )
            return self._uncached_result(payload, etag)

        if entry is None:
            logger.info(
                "Page was invalidated during fetch, result not cached",
                extra={"resource_id": resource_id, "etag": etag},
            )
            return self._uncached_result(payload, etag)

        await self._refresh_size_gauge()
        logger.info(
            "Page configuration loaded",
            extra={"resource_id": resource_id, "etag": etag, "ttl_seconds": ttl_seconds},
        )
        return self._result(entry, LoadSource.NETWORK, from_cache=False)

    def _resolve_ttl(
        self, options: LoadOptions, max_age: float | None, policy: float | str | None
    ) -> float:
        if options.cache_ttl_override is not None:
            return options.cache_ttl_override
        if isinstance(policy, float):
            return policy
        if max_age is not None and self._config.cache.respect_cache_control:
            return max_age
        return self._config.cache.default_ttl_seconds

    def _schedule_revalidation(self, resource_id: str, options: LoadOptions) -> None:
        if self._deduplicator.in_flight(resource_id):
            return
        background_options = options.model_copy(update={"cancellation": None})
        task = asyncio.ensure_future(self._revalidate(resource_id, background_options))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _revalidate(self, resource_id: str, options: LoadOptions) -> None:
        try:
            result = await self._deduplicator.run(
                resource_id, lambda: self._refresh(resource_id, options)
            )
        except LoadError as e:
            logger.warning(
                "Background revalidation failed",
                extra={"resource_id": resource_id, "kind": e.kind.value},
            )
            self._metrics.record_revalidation("failed")
            await self._events.publish(
                Event.revalidation_failed(resource_id, e.kind.value, e.message)
            )
            return

        if result.source == LoadSource.STALE_FALLBACK:
            self._metrics.record_revalidation("failed")
            await self._events.publish(
                Event.revalidation_failed(resource_id, LoadErrorKind.NETWORK_ERROR.value)
            )
            return

        updated = result.source == LoadSource.NETWORK
        self._metrics.record_revalidation("updated" if updated else "not_modified")
        await self._events.publish(Event.revalidation_completed(resource_id, result.etag, updated))

    async def _read_generation(self, resource_id: str) -> int | None:
        try:
            return await self._store.generation(resource_id)
        except CacheStoreError as e:
            logger.warning(
                "Cache generation read failed, writing unconditionally",
                extra={"resource_id": resource_id, "error": e.message},
            )
            return None

    async def _peek_cache(self, resource_id: str) -> CacheEntry | None:
        try:
            return await self._store.peek(resource_id)
        except CacheStoreError as e:
            logger.warning(
                "Cache inspection failed, treating as miss",
                extra={"resource_id": resource_id, "error": e.message},
            )
            return None

    async def _read_cache(self, resource_id: str) -> CacheEntry | None:
        try:
            return await self._store.get(resource_id)
        except CacheStoreError as e:
            logger.warning(
                "Cache read failed, treating as miss",
                extra={"resource_id": resource_id, "error": e.message},
            )
            return None

    async def _write(self, entry: CacheEntry, generation: int | None) -> bool:
        try:
            return await self._store.replace(entry, expected_generation=generation)
        except CacheStoreError as e:
            logger.warning(
                "Cache write failed",
                extra={"resource_id": entry.resource_id, "error": e.message},
            )
            return False

    async def _invalidate_quietly(self, resource_id: str) -> None:
        try:
            await self._store.invalidate(resource_id)
        except CacheStoreError as e:
            logger.warning(
                "Cache invalidation failed",
                extra={"resource_id": resource_id, "error": e.message},
            )

    async def _refresh_size_gauge(self) -> None:
        try:
            stats = await self._store.stats()
        except CacheStoreError:
            return
        self._metrics.update_cache_size(stats.count)

    def _is_fresh(self, entry: CacheEntry) -> bool:
        if self._config.development_mode:
            return False
        return self._store.is_fresh(entry, datetime.now(UTC))

    def _result(
        self,
        entry: CacheEntry,
        source: LoadSource,
        from_cache: bool,
        stale: bool = False,
    ) -> LoadResult:
        return LoadResult(
            config=copy.deepcopy(entry.payload),
            from_cache=from_cache,
            etag=entry.etag or None,
            source=source,
            stale=stale,
        )

    def _uncached_result(self, payload: dict[str, Any], etag: str) -> LoadResult:
        return LoadResult(
            config=copy.deepcopy(payload),
            from_cache=False,
            etag=etag or None,
            source=LoadSource.NETWORK,
        )
