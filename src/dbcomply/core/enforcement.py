"""Enforcement boundary.

Tag enforcement itself lives outside this project; it is only named here by
the `EnforcementActor` protocol. What the core offers is a read-only preview
of the assets an enforcement action would touch.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol

from dbcomply.core.models import CatalogAsset
from dbcomply.core.selectors import AndSelector, AssetSelector


class EnforcementActor(Protocol):
    """Applies required tags to assets (external collaborator)."""

    def apply_tags(
        self, asset: CatalogAsset, tags: Mapping[str, str]
    ) -> Mapping[str, str]:
        """Write `tags` to the asset and return the resulting tag map."""
        ...


class ScopeSelector(AssetSelector):
    """Matches assets inside catalog (share), optionally schema and name."""

    def __init__(self, catalog: str, schema: str | None = None, name: str | None = None):
        self.catalog = catalog
        self.schema = schema
        self.name = name

    def matches(self, asset: CatalogAsset) -> bool:
        if asset.catalog_name != self.catalog:
            return False
        if self.schema and asset.schema_name != self.schema:
            return False
        if self.name and asset.name != self.name:
            return False
        return True


def affected_assets(
    assets: Iterable[CatalogAsset],
    *,
    share: str,
    schema: str | None = None,
    table: str | None = None,
    selector: AssetSelector | None = None,
) -> list[CatalogAsset]:
    """Return the assets an enforcement action on the given scope would touch."""
    scope: AssetSelector = ScopeSelector(share, schema, table)
    if selector is not None:
        scope = AndSelector([scope, selector])
    return [a for a in assets if scope.matches(a)]
