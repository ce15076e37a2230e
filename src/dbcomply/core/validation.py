"""Compliance service facade and the validation cache layer.

`ComplianceService` wires environments, the agreement source, per-environment
catalog clients, the discovery engine and both caches together. The CLI and
the HTTP API are thin shells around it.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Iterable, TypeVar

from dbcomply.core import compliance
from dbcomply.core.adapters.unitycatalog import UnityCatalogAdapter
from dbcomply.core.agreements import (
    AgreementSource,
    InMemoryAgreementStore,
    priority_catalogs,
)
from dbcomply.core.auth import get_client
from dbcomply.core.cache import CatalogCache
from dbcomply.core.catalog import CatalogAdapter, CatalogClient, parse_asset_id
from dbcomply.core.config import Settings
from dbcomply.core.discovery import AssetDiscoveryEngine
from dbcomply.core.enforcement import affected_assets
from dbcomply.core.environments import (
    Environment,
    UnknownEnvironmentError,
    get_environment,
    load_environments,
)
from dbcomply.core.models import (
    Agreement,
    AssetValidation,
    CatalogAsset,
    DiscoveryProgress,
    DiscoveryResult,
)
from dbcomply.core.selectors import AssetSelector
from dbcomply.core.status import LoadingStatusTracker
from dbcomply.core.transport import RateLimitedTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONSUMED_CATALOG_TYPES = ("DELTASHARING", "FOREIGN")


class AssetNotFoundError(LookupError):
    """Raised when an asset id does not match any discovered asset."""

    def __init__(self, asset_id: str):
        super().__init__(asset_id)
        self.asset_id = asset_id

    def __str__(self) -> str:
        return f"Asset {self.asset_id!r} not found"


class ValidationCache:
    """
    Memoizes computed validation aggregates for a TTL window.

    One entry is kept per report name, together with the stamp of the
    discovery state it was computed from; a new stamp replaces the entry.
    Callers decide what is worth caching: "no agreements" and "no assets
    yet" responses are returned without going through this layer.
    """

    def __init__(
        self, ttl: float = 300.0, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._cache = CatalogCache(ttl, clock=clock)

    def __len__(self) -> int:
        return len(self._cache)

    def get_or_compute(self, name: str, stamp: str, compute: Callable[[], T]) -> T:
        cached = self._cache.get(name)
        if cached is not None and cached[0] == stamp:
            return cached[1]
        generation = self._cache.generation
        value = compute()
        self._cache.put(name, (stamp, value), generation=generation)
        return value

    def clear(self) -> int:
        return self._cache.invalidate()


def _stamp(results: Iterable[DiscoveryResult]) -> str:
    """Fingerprint of the discovery state a computed aggregate was built from."""
    return "|".join(
        f"{r.environment_id}#{r.run_id}#{len(r.catalogs)}#{len(r.assets)}"
        for r in results
    )


class ComplianceService:
    """
    Entry point for discovery, compliance evaluation and cache control.

    Catalog clients (adapter + rate-limited transport) are created lazily,
    one per environment, and share a single CatalogCache.
    """

    def __init__(
        self,
        environments: Iterable[Environment],
        agreements: AgreementSource,
        *,
        settings: Settings | None = None,
        adapter_factory: Callable[[Environment], CatalogAdapter] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or Settings()
        self._environments = list(environments)
        self.agreements = agreements
        self._adapter_factory = adapter_factory or self._sdk_adapter
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._clients: dict[str, CatalogClient] = {}

        self.catalog_cache = CatalogCache(self.settings.catalog_cache_ttl, clock=clock)
        self.validation_cache = ValidationCache(
            self.settings.validation_cache_ttl, clock=clock
        )
        self.tracker = LoadingStatusTracker()
        self.engine = AssetDiscoveryEngine(
            self.client_for,
            cache=self.catalog_cache,
            tracker=self.tracker,
            settings=self.settings,
        )

    # ─────────────────────────────────────────────────────────────
    # Environments and clients
    # ─────────────────────────────────────────────────────────────
    def environments(self) -> list[Environment]:
        return list(self._environments)

    def environment(self, env_id: str) -> Environment:
        env = get_environment(self._environments, env_id)
        if env is None:
            raise UnknownEnvironmentError(env_id)
        return env

    def _env_ids(self, env_id: str | None = None) -> list[str]:
        if env_id is None:
            return [e.id for e in self._environments]
        return [self.environment(env_id).id]

    def _sdk_adapter(self, environment: Environment) -> CatalogAdapter:
        client = get_client(
            environment,
            http_timeout=self.settings.http_timeout,
            retry_timeout=self.settings.sdk_retry_timeout,
        )
        return UnityCatalogAdapter(client)

    def client_for(self, env_id: str) -> CatalogClient:
        """Return (creating on first use) the catalog client of an environment."""
        environment = self.environment(env_id)
        with self._lock:
            client = self._clients.get(env_id)
            if client is None:
                transport = RateLimitedTransport(
                    min_interval=self.settings.min_request_interval,
                    max_retries=self.settings.max_retries,
                    base_delay=self.settings.backoff_base,
                    max_delay=self.settings.backoff_max,
                    clock=self._clock,
                    sleep=self._sleep,
                )
                client = CatalogClient(
                    env_id,
                    self._adapter_factory(environment),
                    cache=self.catalog_cache,
                    transport=transport,
                    ttl=self.settings.catalog_cache_ttl,
                )
                self._clients[env_id] = client
            return client

    # ─────────────────────────────────────────────────────────────
    # Discovery
    # ─────────────────────────────────────────────────────────────
    def _priority(self) -> list[str]:
        return priority_catalogs(self.agreements.list())

    def loading_status(self) -> dict[str, DiscoveryProgress]:
        return {env_id: self.tracker.get(env_id) for env_id in self._env_ids()}

    def start_discovery(self, env_id: str | None = None) -> dict[str, Future]:
        """Begin (or join) background discovery for one or all environments."""
        priority = self._priority()
        return {e: self.engine.start(e, priority) for e in self._env_ids(env_id)}

    def _results(self, env_id: str | None = None, *, wait: bool) -> list[DiscoveryResult]:
        priority = self._priority()
        results = []
        for e in self._env_ids(env_id):
            result = self.engine.result(e, priority, wait=wait)
            if result is not None:
                results.append(result)
        return results

    def assets(self, env_id: str | None = None, *, wait: bool = True) -> list[CatalogAsset]:
        """Discovered assets of one or all environments."""
        return [a for r in self._results(env_id, wait=wait) for a in r.assets]

    def share_assets(
        self, env_id: str, share_name: str, *, wait: bool = False
    ) -> list[CatalogAsset]:
        """
        Assets of one share: the share's explicit objects when it lists any,
        else the discovered assets of the catalog with the same name.
        """
        self.environment(env_id)
        try:
            members = self.client_for(env_id).share_assets(share_name)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Could not read share %s in %s, using discovered assets: %s",
                share_name,
                env_id,
                exc,
            )
            members = []
        if members:
            return members
        return [a for a in self.assets(env_id, wait=wait) if a.catalog_name == share_name]

    def table(self, asset_id: str) -> dict[str, Any]:
        """Fetch one table's remote details by asset id."""
        env_id, full_name = parse_asset_id(asset_id)
        self.environment(env_id)
        details = dict(self.client_for(env_id).get_table(full_name))
        details["environmentId"] = env_id
        return details

    def shares(self, env_id: str | None = None, *, wait: bool = False) -> list[dict[str, Any]]:
        """
        List provided shares and consumed (Delta Sharing / foreign) catalogs
        of one or all environments, with per-share compliance.

        Counts come from discovered assets of the catalog with the share's
        name. An environment that cannot be listed is logged and skipped.
        """
        agreements = self.agreements.list()
        priority = priority_catalogs(agreements)
        listing: list[dict[str, Any]] = []
        for e in self._env_ids(env_id):
            try:
                listing.extend(self._env_shares(e, agreements, priority, wait=wait))
            except Exception as exc:  # noqa: BLE001
                logger.error("Error fetching shares from %s: %s", e, exc)
        return listing

    def _env_shares(
        self,
        env_id: str,
        agreements: list[Agreement],
        priority: list[str],
        *,
        wait: bool,
    ) -> list[dict[str, Any]]:
        environment = self.environment(env_id)
        client = self.client_for(env_id)
        try:
            provided = [s.name for s in client.list_shares()]
        except Exception as exc:  # noqa: BLE001
            logger.info("No provided shares found in %s: %s", env_id, exc)
            provided = []
        consumed = [
            c for c in client.list_catalogs() if c.catalog_type in CONSUMED_CATALOG_TYPES
        ]
        logger.info(
            "%s: %d provided shares, %d consumed catalogs",
            env_id,
            len(provided),
            len(consumed),
        )

        result = self.engine.result(env_id, priority, wait=wait)
        assets = list(result.assets) if result is not None else []
        scanned = {a.catalog_name for a in assets}
        by_catalog: dict[str, list[AssetValidation]] = {}
        for validation in compliance.validate_assets(assets, agreements):
            by_catalog.setdefault(validation.catalog_name, []).append(validation)

        def entry(name: str, direction: str, **extra: Any) -> dict[str, Any]:
            results = by_catalog.get(name, [])
            has_agreement = any(name in a.shares for a in agreements)
            return {
                "name": name,
                "id": name,
                **extra,
                "environmentId": env_id,
                "environmentName": environment.display_name,
                "tableCount": len(results),
                "direction": direction,
                "fullyScanned": name in scanned,
                "hasAgreement": has_agreement,
                "compliance": compliance.share_compliance(
                    results, has_agreement=has_agreement
                ),
            }

        entries: dict[str, dict[str, Any]] = {}
        for name in provided:
            entries[name] = entry(
                name, "provided", comment="Shared data from multiple catalogs"
            )
        for catalog in consumed:
            entries[catalog.name] = entry(
                catalog.name,
                "consumed",
                comment=catalog.comment,
                owner=catalog.owner,
                catalogType=catalog.catalog_type,
            )
        return list(entries.values())

    def share_asset_counts(self, env_id: str, share_names: Iterable[str]) -> dict[str, int]:
        """Number of objects registered in each share; 0 when unreadable."""
        client = self.client_for(env_id)
        counts: dict[str, int] = {}
        for name in share_names:
            try:
                counts[name] = len(client.get_share(name, include_shared_data=True).objects)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not get object count for share %s: %s", name, exc)
                counts[name] = 0
        return counts

    # ─────────────────────────────────────────────────────────────
    # Compliance
    # ─────────────────────────────────────────────────────────────
    def _evaluated(self, results: list[DiscoveryResult]) -> list[AssetValidation]:
        assets = [a for r in results for a in r.assets]
        return compliance.validate_assets(assets, self.agreements.list())

    def _report(
        self,
        name: str,
        results: list[DiscoveryResult],
        build: Callable[[list[AssetValidation]], dict[str, Any]],
    ) -> dict[str, Any]:
        """Build a report, memoized per discovery state once agreements exist."""
        if not self.agreements.list():
            return build(self._evaluated(results))
        return self.validation_cache.get_or_compute(
            name, _stamp(results), lambda: build(self._evaluated(results))
        )

    def overview(self) -> dict[str, Any]:
        results = self._results(wait=False)
        if not any(r.assets for r in results):
            return compliance.empty_overview()
        return self._report("overview", results, compliance.overview)

    def catalog_compliance(self) -> dict[str, Any]:
        results = self._results(wait=False)
        if not any(r.assets for r in results):
            return compliance.catalog_compliance([])
        return self._report(
            "catalog_compliance", results, compliance.catalog_compliance
        )

    def violations(self) -> dict[str, Any]:
        if not self.agreements.list():
            return compliance.no_agreements_report()
        results = self._results(wait=False)
        total = sum(len(r.assets) for r in results)
        if total == 0:
            return {**compliance.violations_report([], 0), "note": compliance.LOADING_NOTE}
        return self._report(
            "violations",
            results,
            lambda evaluated: compliance.violations_report(evaluated, total),
        )

    def validate_all(self) -> dict[str, Any]:
        results = self._results(wait=False)
        if not any(r.assets for r in results):
            return compliance.validate_all_report([])
        return self._report("validate_all", results, compliance.validate_all_report)

    def validate(self, asset_id: str) -> AssetValidation:
        """Validate one discovered asset, identified as `env:catalog.schema.name`."""
        env_id, full_name = parse_asset_id(asset_id)
        self.environment(env_id)
        for asset in self.assets(env_id, wait=False):
            if asset.full_name == full_name:
                return compliance.validate_asset(asset, self.agreements.list())
        raise AssetNotFoundError(asset_id)

    def affected_assets(
        self,
        env_id: str,
        share: str,
        schema: str | None = None,
        table: str | None = None,
        *,
        selector: AssetSelector | None = None,
        wait: bool = True,
    ) -> list[CatalogAsset]:
        """Preview the assets an enforcement action on this scope would touch."""
        return affected_assets(
            self.assets(env_id, wait=wait),
            share=share,
            schema=schema,
            table=table,
            selector=selector,
        )

    def clear_cache(self) -> int:
        """
        Drop the validation and catalog caches together and reset transport
        spacing. Safe to call repeatedly; returns the number of entries removed.
        """
        removed = self.validation_cache.clear() + self.catalog_cache.invalidate()
        with self._lock:
            clients = list(self._clients.values())
        for client in clients:
            client.transport.reset()
        logger.info("Cleared validation and catalog caches (%d entries)", removed)
        return removed

    def shutdown(self) -> None:
        self.engine.shutdown(wait=False)


def build_service(
    settings: Settings | None = None,
    *,
    config_path: str | None = None,
    agreements_path: str | None = None,
) -> ComplianceService:
    """Build a service from settings, the environments file and the agreements file."""
    settings = settings or Settings.from_env()
    environments = load_environments(config_path or settings.config_path)
    agreements = InMemoryAgreementStore.from_file(
        agreements_path or settings.agreements_path
    )
    logger.info(
        "Configured %d environments: %s",
        len(environments),
        ", ".join(e.id for e in environments) or "none",
    )
    return ComplianceService(environments, agreements, settings=settings)
