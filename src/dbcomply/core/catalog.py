"""Cached, rate-limited access to one environment's catalog hierarchy.

`CatalogClient` sits between discovery and the Unity Catalog adapter: every
call is keyed into the shared CatalogCache (so concurrent identical requests
coalesce) and runs through the environment's RateLimitedTransport.
Internal catalogs and schemas are filtered out here.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, TypeVar

from dbcomply.core.cache import CatalogCache
from dbcomply.core.models import AssetType, CatalogAsset
from dbcomply.core.transport import RateLimitedTransport
from dbcomply.core.uc import UCCatalog, UCObject, UCSchema, UCShare, UCSharedObject

T = TypeVar("T")

INTERNAL_CATALOG_PREFIXES = ("__", "system")
INTERNAL_SCHEMA_PREFIXES = ("__", "information_schema")

SCHEMA_ASSET_TYPES = (
    AssetType.TABLE,
    AssetType.VOLUME,
    AssetType.FUNCTION,
    AssetType.MODEL,
)


class InvalidAssetIdError(ValueError):
    """Raised for asset ids not in the form `env:catalog.schema.name`."""


class CatalogAdapter(Protocol):
    """Interface of the remote catalog operations used by the core."""

    def list_catalogs(self) -> list[UCCatalog]: ...

    def list_schemas(self, catalog: str) -> list[UCSchema]: ...

    def list_tables(self, catalog: str, schema: str) -> list[UCObject]: ...

    def list_volumes(self, catalog: str, schema: str) -> list[UCObject]: ...

    def list_functions(self, catalog: str, schema: str) -> list[UCObject]: ...

    def list_models(self, catalog: str, schema: str) -> list[UCObject]: ...

    def list_shares(self) -> list[UCShare]: ...

    def get_share(self, name: str, include_shared_data: bool = True) -> UCShare: ...

    def get_table(self, full_name: str) -> dict[str, Any]: ...

    def set_tags(self, full_name: str, tags: Mapping[str, str]) -> dict[str, Any]: ...


def is_internal_catalog(name: str) -> bool:
    return name.startswith(INTERNAL_CATALOG_PREFIXES)


def is_internal_schema(name: str) -> bool:
    return name.startswith(INTERNAL_SCHEMA_PREFIXES)


def parse_full_name(full_name: str) -> tuple[str, str, str]:
    """Split `catalog.schema.name` into its three parts."""
    parts = full_name.strip().split(".")
    if len(parts) != 3 or not all(parts):
        raise ValueError("Asset name must be in the form `catalog.schema.name`.")
    catalog, schema, name = parts
    return catalog, schema, name


def parse_asset_id(asset_id: str) -> tuple[str, str]:
    """Split an asset id `env:catalog.schema.name` into (env, full_name)."""
    env_id, sep, full_name = asset_id.partition(":")
    if not sep or not env_id or not full_name:
        raise InvalidAssetIdError(
            "Invalid asset id. Expected: envId:catalog.schema.name"
        )
    return env_id, full_name


def to_asset(
    obj: UCObject,
    *,
    asset_type: AssetType,
    catalog: str,
    schema: str,
    environment_id: str,
) -> CatalogAsset:
    """Build a CatalogAsset from a listed schema member."""
    return CatalogAsset(
        asset_type=asset_type,
        catalog_name=catalog,
        schema_name=schema,
        name=obj.name,
        full_name=obj.full_name or f"{catalog}.{schema}.{obj.name}",
        environment_id=environment_id,
        tags=obj.properties or {},
        metadata=obj.raw,
    )


def share_object_to_asset(
    share_name: str, obj: UCSharedObject, *, environment_id: str
) -> CatalogAsset:
    """
    Build a CatalogAsset from a share member.

    Schema objects are named `catalog.schema`; everything else
    `catalog.schema.object`, or `schema.object` relative to the share.
    """
    parts = obj.name.split(".")
    asset_type = AssetType.parse(obj.data_object_type, default=AssetType.TABLE)
    metadata = {
        "share_name": share_name,
        "shared_as": obj.shared_as,
        "added_at": obj.added_at,
        "added_by": obj.added_by,
        "cdf_enabled": obj.cdf_enabled,
        "status": obj.status,
        "data_object_type": obj.data_object_type,
    }
    if asset_type is AssetType.SCHEMA:
        catalog, _, schema = obj.name.partition(".")
        return CatalogAsset(
            asset_type=asset_type,
            catalog_name=catalog,
            schema_name=schema,
            name=schema,
            full_name=obj.name,
            environment_id=environment_id,
            metadata=metadata,
        )
    if len(parts) == 3:
        catalog, schema, name = parts
    elif len(parts) == 2:
        catalog, (schema, name) = share_name, parts
    else:
        catalog, schema, name = share_name, None, obj.name
    return CatalogAsset(
        asset_type=asset_type,
        catalog_name=catalog,
        schema_name=schema,
        name=name,
        full_name=obj.name,
        environment_id=environment_id,
        metadata=metadata,
    )


class CatalogClient:
    """Cached and throttled view of one environment's catalog service."""

    def __init__(
        self,
        environment_id: str,
        adapter: CatalogAdapter,
        *,
        cache: CatalogCache,
        transport: RateLimitedTransport,
        ttl: float | None = None,
    ) -> None:
        self.environment_id = environment_id
        self.adapter = adapter
        self.cache = cache
        self.transport = transport
        self.ttl = ttl

    def _cached(self, key: str, call: Callable[[], T]) -> T:
        return self.cache.get_or_fetch(
            key, lambda: self.transport.execute(call), ttl=self.ttl
        )

    def list_catalogs(self) -> list[UCCatalog]:
        """List catalogs, excluding internal ones."""
        catalogs = self._cached(
            f"catalogs:{self.environment_id}", self.adapter.list_catalogs
        )
        return [c for c in catalogs if not is_internal_catalog(c.name)]

    def list_schemas(self, catalog: str) -> list[UCSchema]:
        """List schemas of a catalog, excluding internal ones."""
        schemas = self._cached(
            f"schemas:{self.environment_id}:{catalog}",
            lambda: self.adapter.list_schemas(catalog),
        )
        return [s for s in schemas if not is_internal_schema(s.name)]

    def list_objects(
        self, asset_type: AssetType, catalog: str, schema: str
    ) -> list[UCObject]:
        """List the members of one asset type in catalog.schema."""
        fetchers = {
            AssetType.TABLE: self.adapter.list_tables,
            AssetType.VOLUME: self.adapter.list_volumes,
            AssetType.FUNCTION: self.adapter.list_functions,
            AssetType.MODEL: self.adapter.list_models,
        }
        fetch = fetchers[asset_type]
        return self._cached(
            f"{asset_type.value}s:{self.environment_id}:{catalog}:{schema}",
            lambda: fetch(catalog, schema),
        )

    def list_assets(
        self, asset_type: AssetType, catalog: str, schema: str
    ) -> list[CatalogAsset]:
        """List one asset type in catalog.schema as CatalogAsset records."""
        return [
            to_asset(
                obj,
                asset_type=asset_type,
                catalog=catalog,
                schema=schema,
                environment_id=self.environment_id,
            )
            for obj in self.list_objects(asset_type, catalog, schema)
        ]

    def list_shares(self) -> list[UCShare]:
        return self._cached(f"shares:{self.environment_id}", self.adapter.list_shares)

    def get_share(self, name: str, include_shared_data: bool = True) -> UCShare:
        return self._cached(
            f"share:{self.environment_id}:{name}:{include_shared_data}",
            lambda: self.adapter.get_share(name, include_shared_data),
        )

    def share_assets(self, name: str) -> list[CatalogAsset]:
        """Return the explicit members of a share as CatalogAsset records."""
        share = self.get_share(name, include_shared_data=True)
        return [
            share_object_to_asset(name, obj, environment_id=self.environment_id)
            for obj in share.objects
        ]

    def get_table(self, full_name: str) -> dict[str, Any]:
        parse_full_name(full_name)
        return self.transport.execute(lambda: self.adapter.get_table(full_name))

    def set_tags(self, full_name: str, tags: Mapping[str, str]) -> dict[str, Any]:
        """Write table tags; cached listings are refreshed on next discovery."""
        catalog, schema, _ = parse_full_name(full_name)
        result = self.transport.execute(lambda: self.adapter.set_tags(full_name, tags))
        self.cache.invalidate(f"tables:{self.environment_id}:{catalog}:{schema}")
        return result
