"""Asset selector abstractions and implementations.

This module defines the selector system used to determine whether a
discovered catalog asset matches a given set of criteria. Selectors
encapsulate matching logic and can be composed using logical operators
(AND / OR) to express complex selection rules.

Selectors are pure, side-effect-free objects shared by the CLI asset
listing and the enforcement preview.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable

from dbcomply.core.models import AssetType

if TYPE_CHECKING:
    from dbcomply.core.models import CatalogAsset


class AssetSelector(ABC):
    """
    Abstract base class for all asset selectors.

    An AssetSelector encapsulates a single piece of matching logic that
    determines whether a given CatalogAsset satisfies a specific criterion.
    """

    @abstractmethod
    def matches(self, asset: CatalogAsset) -> bool:
        """
        Determine whether the given asset matches this selector.

        Args:
            asset: CatalogAsset instance to evaluate.

        Returns:
            True if the asset matches the selector criteria, False otherwise.
        """
        ...


class NameRegexSelector(AssetSelector):
    """
    Selector that matches assets based on a regular expression applied
    to the full `catalog.schema.name` of the asset.
    """

    def __init__(self, pattern: str):
        try:
            self.regex = re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"Invalid regex expression: {exc}") from exc

    def matches(self, asset: CatalogAsset) -> bool:
        return bool(self.regex.search(asset.full_name))


class TagSelector(AssetSelector):
    """
    Selector that matches assets carrying a specific tag key-value pair.
    """

    def __init__(self, key: str, value: str):
        self.key = key
        self.value = value

    def matches(self, asset: CatalogAsset) -> bool:
        if not asset.tags:
            return False
        return asset.tags.get(self.key) == self.value


class AssetTypeSelector(AssetSelector):
    """Selector that matches assets of one or more asset types."""

    def __init__(self, asset_types: Iterable[AssetType | str]):
        self.asset_types = frozenset(
            t if isinstance(t, AssetType) else AssetType.parse(t)
            for t in asset_types
        )

    def matches(self, asset: CatalogAsset) -> bool:
        return asset.asset_type in self.asset_types


class AndSelector(AssetSelector):
    """
    Composite selector that matches an asset only if all child selectors match.
    """

    def __init__(self, selectors: list[AssetSelector]):
        self.selectors = selectors

    def matches(self, asset: CatalogAsset) -> bool:
        return all(s.matches(asset) for s in self.selectors)


class OrSelector(AssetSelector):
    """
    Composite selector that matches an asset if any child selector matches.
    """

    def __init__(self, selectors: list[AssetSelector]):
        self.selectors = selectors

    def matches(self, asset: CatalogAsset) -> bool:
        return any(s.matches(asset) for s in self.selectors)


class MatchAllSelector(AssetSelector):
    """Selector used when no criteria are given."""

    def matches(self, asset: CatalogAsset) -> bool:
        return True


def build_selector(
    *,
    name: str | None = None,
    tags: Iterable[str] = (),
    asset_types: Iterable[str] = (),
    use_or: bool = False,
    required: bool = False,
) -> AssetSelector:
    """
    Build a composite AssetSelector from user-provided criteria.

    Optional name, tag and asset-type filters are turned into concrete
    selectors and combined using either logical AND or OR semantics.

    Args:
        name: Optional regular expression matched against full names.
        tags: Iterable of tag selector strings in the form `key=value`.
        asset_types: Asset type names (table, volume, function, model, ...).
            Several types always combine with OR among themselves.
        use_or: If True, combine the criteria using logical OR.
        required: If True, at least one criterion must be given.

    Returns:
        An AssetSelector representing the composed selection logic. Without
        criteria (and `required=False`) every asset matches.

    Raises:
        ValueError: If a tag selector does not follow the `key=value` format,
                    an asset type is unknown, or criteria are required but
                    none were given.
    """
    selectors: list[AssetSelector] = []

    if name:
        selectors.append(NameRegexSelector(name))

    for tag in tags:
        if "=" not in tag:
            raise ValueError(f"Invalid tag selector: '{tag}' (expected key=value)")
        key, value = tag.split("=", 1)
        selectors.append(TagSelector(key, value))

    types = list(asset_types)
    if types:
        selectors.append(AssetTypeSelector(types))

    if not selectors:
        if required:
            raise ValueError("At least one selector is required (--name, --tag or --type)")
        return MatchAllSelector()

    if len(selectors) == 1:
        return selectors[0]

    return OrSelector(selectors) if use_or else AndSelector(selectors)
