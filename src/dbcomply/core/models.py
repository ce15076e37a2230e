"""Core compliance domain models.

This module defines the data structures shared by discovery, evaluation and
the outer surfaces (CLI, HTTP API): discovered catalog assets, discovery
progress, agreement records and the violations derived from them.
All records are immutable; a refresh replaces a record wholesale.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

WILDCARD_SCOPES = frozenset({"*.*.*", "all"})


class AssetType(str, Enum):
    """
    Kind of catalog member produced by discovery.

    Values:
        CATALOG: A catalog listed explicitly (e.g. as a share object).
        SCHEMA: A schema listed explicitly (e.g. as a share object).
        TABLE: A table or view.
        VOLUME: A Unity Catalog volume.
        FUNCTION: A Unity Catalog function.
        MODEL: A registered model.
    """

    CATALOG = "catalog"
    SCHEMA = "schema"
    TABLE = "table"
    VOLUME = "volume"
    FUNCTION = "function"
    MODEL = "model"

    @classmethod
    def parse(cls, value: str | None, default: AssetType | None = None) -> AssetType:
        """Parse a (case-insensitive) asset type name, falling back to `default`."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            if default is None:
                raise ValueError(f"Unknown asset type: {value!r}") from None
            return default


class Severity(str, Enum):
    """Severity attached to an agreement requirement."""

    CRITICAL = "critical"
    WARNING = "warning"


class ViolationType(str, Enum):
    """Whether a required tag is absent or carries the wrong value."""

    MISSING = "missing"
    INCORRECT = "incorrect"


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class CatalogAsset:
    """
    A discovered catalog member.

    Identity is `(environment_id, full_name)`. Tags come from the remote
    "properties" map; `metadata` carries the remote payload untouched.
    """

    asset_type: AssetType
    catalog_name: str
    schema_name: str | None
    name: str
    full_name: str
    environment_id: str
    tags: Mapping[str, str] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _frozen(self.tags))
        object.__setattr__(self, "metadata", _frozen(self.metadata))

    @property
    def id(self) -> str:
        return f"{self.environment_id}:{self.full_name}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.environment_id, self.full_name)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.metadata)
        data.update(
            {
                "id": self.id,
                "assetType": self.asset_type.value,
                "name": self.name,
                "catalog_name": self.catalog_name,
                "schema_name": self.schema_name,
                "fullName": self.full_name,
                "environmentId": self.environment_id,
                "tags": dict(self.tags),
            }
        )
        return data


@dataclass(frozen=True)
class DiscoveryProgress:
    """Observable state of the discovery run for one environment."""

    is_loading: bool = False
    catalogs_processed: int = 0
    total_catalogs: int = 0
    current_asset_count: int = 0
    priority_catalogs: int = 0
    error: str | None = None
    run_id: int = 0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "isLoading": self.is_loading,
            "catalogsProcessed": self.catalogs_processed,
            "totalCatalogs": self.total_catalogs,
            "currentAssetCount": self.current_asset_count,
            "priorityCatalogs": self.priority_catalogs,
            "timestamp": int(self.timestamp * 1000),
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class CatalogScanSummary:
    """What discovery did with one catalog."""

    catalog_name: str
    priority: bool
    schemas_total: int = 0
    schemas_scanned: int = 0
    asset_count: int = 0
    error: str | None = None

    @property
    def fully_scanned(self) -> bool:
        return self.error is None and self.schemas_scanned >= self.schemas_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "catalogName": self.catalog_name,
            "priority": self.priority,
            "schemasTotal": self.schemas_total,
            "schemasScanned": self.schemas_scanned,
            "assetCount": self.asset_count,
            "fullyScanned": self.fully_scanned,
            "error": self.error,
        }


@dataclass(frozen=True)
class DiscoveryResult:
    """Assets produced by one discovery run (complete or partial)."""

    environment_id: str
    assets: tuple[CatalogAsset, ...] = ()
    catalogs: tuple[CatalogScanSummary, ...] = ()
    run_id: int = 0
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Requirement:
    """A single parsed agreement requirement."""

    scope: str
    required_tags: Mapping[str, str] = field(default_factory=dict)
    severity: Severity = Severity.WARNING
    reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "required_tags", _frozen(self.required_tags))

    def applies_to(self, asset: CatalogAsset) -> bool:
        """
        Scope check: wildcard scopes match everything, other scopes match
        when they textually contain the asset's catalog or object name.
        """
        if self.scope in WILDCARD_SCOPES:
            return True
        if asset.catalog_name and asset.catalog_name in self.scope:
            return True
        return bool(asset.name) and asset.name in self.scope

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Requirement:
        tags = data.get("requiredTags")
        if not isinstance(tags, Mapping):
            tags = {}
        try:
            severity = Severity(str(data.get("severity", "")).lower())
        except ValueError:
            severity = Severity.WARNING
        return cls(
            scope=str(data.get("scope") or "all"),
            required_tags={str(k): str(v) for k, v in tags.items()},
            severity=severity,
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class Agreement:
    """
    A data-sharing agreement snapshot as consumed by the evaluator.

    Attributes:
        id: Agreement identifier.
        name: Human-readable name.
        shares: Share (= catalog) names the agreement applies to; empty
                means every share.
        environments: Environment ids the agreement applies to.
        requirements: Parsed tag requirements, evaluated in order.
    """

    id: str
    name: str = ""
    shares: tuple[str, ...] = ()
    environments: tuple[str, ...] = ()
    requirements: tuple[Requirement, ...] = ()

    def applies_to(self, asset: CatalogAsset) -> bool:
        if asset.environment_id not in self.environments:
            return False
        return not self.shares or asset.catalog_name in self.shares

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Agreement:
        reqs = data.get("parsedRequirements") or []
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            shares=tuple(data.get("shares") or ()),
            environments=tuple(data.get("environments") or ()),
            requirements=tuple(
                Requirement.from_dict(r) for r in reqs if isinstance(r, Mapping)
            ),
        )


@dataclass(frozen=True)
class Violation:
    """A required tag that is absent or carries an unexpected value."""

    agreement_id: str
    agreement_name: str
    severity: Severity
    tag_key: str
    expected_value: str
    actual_value: str | None
    reason: str | None = None

    @property
    def type(self) -> ViolationType:
        return ViolationType.MISSING if self.actual_value is None else ViolationType.INCORRECT

    def to_dict(self) -> dict[str, Any]:
        return {
            "agreementId": self.agreement_id,
            "agreementName": self.agreement_name,
            "severity": self.severity.value,
            "type": self.type.value,
            "tagKey": self.tag_key,
            "expectedValue": self.expected_value,
            "actualValue": self.actual_value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class AssetValidation:
    """Compliance verdict for one asset."""

    asset_id: str
    asset_name: str
    full_name: str
    environment_id: str
    catalog_name: str
    violations: tuple[Violation, ...] = ()

    @property
    def compliant(self) -> bool:
        return not self.violations

    @property
    def critical_count(self) -> int:
        return sum(1 for v in self.violations if v.severity is Severity.CRITICAL)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assetId": self.asset_id,
            "assetName": self.asset_name,
            "fullName": self.full_name,
            "environmentId": self.environment_id,
            "compliant": self.compliant,
            "violations": [v.to_dict() for v in self.violations],
        }
