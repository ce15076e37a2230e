"""Asset discovery across the remote catalog hierarchy.

Discovery walks catalogs -> schemas -> {tables, volumes, functions, models}
for one environment. It is bounded (MAX_CATALOGS, MAX_SCHEMAS_PER_CATALOG),
prioritizes catalogs referenced by agreements, and publishes partial results
and progress after each catalog so long crawls can be observed while they run.

Catalogs and schemas are visited sequentially; only the four asset-type
listings of one schema run concurrently. This keeps the number of
outstanding calls against the rate-limited API small and constant.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable

from dbcomply.core.cache import CatalogCache
from dbcomply.core.catalog import SCHEMA_ASSET_TYPES, CatalogClient
from dbcomply.core.config import Settings
from dbcomply.core.models import (
    CatalogAsset,
    CatalogScanSummary,
    DiscoveryProgress,
    DiscoveryResult,
)
from dbcomply.core.status import LoadingStatusTracker
from dbcomply.core.transport import is_rate_limited
from dbcomply.core.uc import UCCatalog

logger = logging.getLogger(__name__)


class DiscoveryError(RuntimeError):
    """Raised when a discovery run fails; carries what was gathered so far."""

    def __init__(self, message: str, partial: DiscoveryResult):
        super().__init__(message)
        self.partial = partial


def assets_key(env_id: str) -> str:
    return f"all_assets:{env_id}"


def partial_assets_key(env_id: str) -> str:
    return f"partial_assets:{env_id}"


def select_catalogs(
    catalogs: list[UCCatalog],
    priority_names: Iterable[str],
    max_catalogs: int,
) -> tuple[list[UCCatalog], list[UCCatalog]]:
    """
    Choose which catalogs to scan.

    All priority catalogs (case-insensitive name match) are kept; remaining
    capacity up to `max_catalogs` is filled with the other catalogs in
    listing order.

    Returns:
        (catalogs to scan, the priority subset)
    """
    wanted = {name.lower() for name in priority_names}
    priority = [c for c in catalogs if c.name.lower() in wanted]
    others = [c for c in catalogs if c.name.lower() not in wanted]
    remaining = max(0, max_catalogs - len(priority))
    return priority + others[:remaining], priority


def _log_fetch_error(what: str, exc: Exception) -> None:
    if is_rate_limited(exc):
        logger.warning("Rate limit exhausted fetching %s, skipping", what)
    else:
        logger.error("Error fetching %s: %s", what, exc)


class AssetDiscoveryEngine:
    """
    Produces CatalogAsset records for environments, one crawl at a time.

    Concurrent requests for the same environment coalesce on the shared
    CatalogCache. Each crawl gets a monotonically increasing run id; partial
    results from a run older than the last committed one are dropped.
    """

    def __init__(
        self,
        client_for: Callable[[str], CatalogClient],
        *,
        cache: CatalogCache,
        tracker: LoadingStatusTracker,
        settings: Settings | None = None,
        max_background: int = 4,
    ) -> None:
        self._client_for = client_for
        self.cache = cache
        self.tracker = tracker
        self.settings = settings or Settings()
        self._max_background = max_background
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._run_ids = itertools.count(1)
        self._committed: dict[str, int] = {}
        self._background: dict[str, Future] = {}

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────
    def discover(
        self, env_id: str, priority_catalogs: Iterable[str] = ()
    ) -> DiscoveryResult:
        """
        Return the environment's assets, crawling (or joining a crawl) if the
        cached result is missing or expired.

        A failed crawl does not raise: its partial result is returned with
        `error` set.
        """
        priority = tuple(priority_catalogs)
        try:
            return self.cache.get_or_fetch(
                assets_key(env_id),
                lambda: self._run(env_id, priority),
                ttl=self.settings.catalog_cache_ttl,
            )
        except DiscoveryError as exc:
            return exc.partial

    def start(self, env_id: str, priority_catalogs: Iterable[str] = ()) -> Future:
        """Begin discovery in the background, or return the running one."""
        priority = tuple(priority_catalogs)
        with self._lock:
            running = self._background.get(env_id)
            if running is not None and not running.done():
                return running
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_background,
                    thread_name_prefix="discovery",
                )
            future = self._executor.submit(self.discover, env_id, priority)
            self._background[env_id] = future
            return future

    def snapshot(self, env_id: str) -> DiscoveryResult | None:
        """Latest completed result, else the latest partial one, else None."""
        ttl = self.settings.catalog_cache_ttl
        result = self.cache.get(assets_key(env_id), ttl=ttl)
        if result is None:
            result = self.cache.get(partial_assets_key(env_id), ttl=ttl)
        return result

    def result(
        self,
        env_id: str,
        priority_catalogs: Iterable[str] = (),
        *,
        wait: bool = True,
    ) -> DiscoveryResult | None:
        """
        Return the environment's discovery result.

        With `wait=False` this never blocks on the crawl: it returns the
        latest (possibly partial) snapshot, or None, and kicks off discovery
        when no completed result is cached.
        """
        if wait:
            return self.discover(env_id, priority_catalogs)
        completed = self.cache.get(
            assets_key(env_id), ttl=self.settings.catalog_cache_ttl
        )
        if completed is not None:
            return completed
        self.start(env_id, priority_catalogs)
        return self.snapshot(env_id)

    def assets(
        self,
        env_id: str,
        priority_catalogs: Iterable[str] = (),
        *,
        wait: bool = True,
    ) -> list[CatalogAsset]:
        """Return discovered assets; see `result()` for `wait`."""
        result = self.result(env_id, priority_catalogs, wait=wait)
        return list(result.assets) if result is not None else []

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    # ─────────────────────────────────────────────────────────────
    # Crawl
    # ─────────────────────────────────────────────────────────────
    def _next_run_id(self) -> int:
        with self._lock:
            return next(self._run_ids)

    def _commit_partial(self, result: DiscoveryResult, generation: int) -> None:
        with self._lock:
            last = self._committed.get(result.environment_id, 0)
            if result.run_id < last:
                logger.info(
                    "Dropping partial result of superseded run %d for %s",
                    result.run_id,
                    result.environment_id,
                )
                return
            self._committed[result.environment_id] = result.run_id
        if not self.cache.put(
            partial_assets_key(result.environment_id), result, generation=generation
        ):
            logger.info(
                "Dropping partial result of run %d for %s, cache was cleared",
                result.run_id,
                result.environment_id,
            )

    def _run(self, env_id: str, priority_catalogs: tuple[str, ...]) -> DiscoveryResult:
        run_id = self._next_run_id()
        generation = self.cache.generation
        assets: list[CatalogAsset] = []
        summaries: list[CatalogScanSummary] = []
        selected: list[UCCatalog] = []
        priority: list[UCCatalog] = []

        logger.info("Starting asset discovery for %s (run %d)", env_id, run_id)
        self.tracker.publish(env_id, DiscoveryProgress(is_loading=True, run_id=run_id))

        try:
            client = self._client_for(env_id)
            catalogs = client.list_catalogs()
            selected, priority = select_catalogs(
                catalogs, priority_catalogs, self.settings.max_catalogs
            )
            logger.info("Found %d catalogs in %s", len(catalogs), env_id)
            if priority:
                logger.info(
                    "Prioritizing %d catalogs with agreements: %s",
                    len(priority),
                    ", ".join(c.name for c in priority),
                )
            if len(catalogs) > len(selected):
                logger.warning(
                    "Scanning %d catalogs (%d with agreements + %d others) out of %d",
                    len(selected),
                    len(priority),
                    len(selected) - len(priority),
                    len(catalogs),
                )

            self._publish(env_id, run_id, selected, priority, summaries, assets)

            priority_names = {c.name for c in priority}
            for catalog in selected:
                summary, found = self._scan_catalog(
                    client, catalog, is_priority=catalog.name in priority_names
                )
                summaries.append(summary)
                assets.extend(found)
                logger.info(
                    "[%d/%d] %s: %d schemas, %d assets",
                    len(summaries),
                    len(selected),
                    catalog.name,
                    summary.schemas_total,
                    summary.asset_count,
                )
                self._commit_partial(
                    DiscoveryResult(
                        environment_id=env_id,
                        assets=tuple(assets),
                        catalogs=tuple(summaries),
                        run_id=run_id,
                    ),
                    generation,
                )
                self._publish(env_id, run_id, selected, priority, summaries, assets)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error fetching all assets from %s: %s", env_id, exc)
            partial = DiscoveryResult(
                environment_id=env_id,
                assets=tuple(assets),
                catalogs=tuple(summaries),
                run_id=run_id,
                error=str(exc),
            )
            self._publish(
                env_id, run_id, selected, priority, summaries, assets, error=str(exc)
            )
            raise DiscoveryError(str(exc), partial) from exc

        breakdown = Counter(a.asset_type.value for a in assets)
        logger.info(
            "Fetched %d assets from %s (%s) across %d catalogs",
            len(assets),
            env_id,
            ", ".join(f"{n} {t}s" for t, n in sorted(breakdown.items())) or "none",
            len(summaries),
        )
        result = DiscoveryResult(
            environment_id=env_id,
            assets=tuple(assets),
            catalogs=tuple(summaries),
            run_id=run_id,
        )
        self._publish(env_id, run_id, selected, priority, summaries, assets, done=True)
        return result

    def _publish(
        self,
        env_id: str,
        run_id: int,
        selected: list[UCCatalog],
        priority: list[UCCatalog],
        summaries: list[CatalogScanSummary],
        assets: list[CatalogAsset],
        *,
        done: bool = False,
        error: str | None = None,
    ) -> None:
        self.tracker.publish(
            env_id,
            DiscoveryProgress(
                is_loading=not done and error is None,
                catalogs_processed=len(summaries),
                total_catalogs=max(len(selected), len(summaries)),
                current_asset_count=len(assets),
                priority_catalogs=len(priority),
                error=error,
                run_id=run_id,
            ),
        )

    def _scan_catalog(
        self, client: CatalogClient, catalog: UCCatalog, *, is_priority: bool
    ) -> tuple[CatalogScanSummary, list[CatalogAsset]]:
        try:
            schemas = client.list_schemas(catalog.name)
        except Exception as exc:  # noqa: BLE001
            _log_fetch_error(f"schemas of catalog {catalog.name}", exc)
            return (
                CatalogScanSummary(
                    catalog_name=catalog.name, priority=is_priority, error=str(exc)
                ),
                [],
            )

        limit = self.settings.max_schemas_per_catalog
        limited = schemas[:limit]
        if len(schemas) > limit:
            logger.info(
                "Limiting %s to the first %d of %d schemas",
                catalog.name,
                limit,
                len(schemas),
            )

        found: list[CatalogAsset] = []
        for schema in limited:
            found.extend(self._scan_schema(client, catalog.name, schema.name))

        return (
            CatalogScanSummary(
                catalog_name=catalog.name,
                priority=is_priority,
                schemas_total=len(schemas),
                schemas_scanned=len(limited),
                asset_count=len(found),
            ),
            found,
        )

    def _scan_schema(
        self, client: CatalogClient, catalog: str, schema: str
    ) -> list[CatalogAsset]:
        """Fetch the four asset types of one schema concurrently."""
        found: list[CatalogAsset] = []
        with ThreadPoolExecutor(max_workers=len(SCHEMA_ASSET_TYPES)) as pool:
            futures = [
                (t, pool.submit(client.list_assets, t, catalog, schema))
                for t in SCHEMA_ASSET_TYPES
            ]
            for asset_type, future in futures:
                try:
                    found.extend(future.result())
                except Exception as exc:  # noqa: BLE001
                    _log_fetch_error(
                        f"{asset_type.value}s in {catalog}.{schema}", exc
                    )
        return found
