"""Compliance evaluation of catalog assets against agreements.

Everything here is pure: the same assets and agreements always produce the
same results, in the same order (agreements, then requirements, then
required tags, each in input order).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from dbcomply.core.models import Agreement, AssetValidation, CatalogAsset, Violation

LOADING_NOTE = "Loading assets... Please wait."
NO_AGREEMENTS_NOTE = (
    "No agreements defined. Create an agreement to check for violations."
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _percentage(part: int, total: int) -> int:
    """Whole percentage, halves rounded up."""
    return math.floor(part / total * 100 + 0.5) if total > 0 else 0


def validate_asset(asset: CatalogAsset, agreements: Sequence[Agreement]) -> AssetValidation:
    """
    Evaluate one asset against every applicable agreement requirement.

    An agreement applies when it lists the asset's environment and either
    names no shares or names the asset's catalog. A requirement applies when
    its scope is a wildcard or contains the catalog or asset name. Each
    required tag that is absent (or has a different value) is a violation.
    """
    if asset is None:
        raise ValueError("validate_asset() requires an asset")

    violations: list[Violation] = []
    for agreement in agreements:
        if not agreement.applies_to(asset):
            continue
        for req in agreement.requirements:
            if not req.applies_to(asset):
                continue
            for tag_key, expected in req.required_tags.items():
                actual = asset.tags.get(tag_key)
                if actual == expected:
                    continue
                violations.append(
                    Violation(
                        agreement_id=agreement.id,
                        agreement_name=agreement.name,
                        severity=req.severity,
                        tag_key=tag_key,
                        expected_value=expected,
                        actual_value=actual,
                        reason=req.reason,
                    )
                )

    return AssetValidation(
        asset_id=asset.id,
        asset_name=asset.name,
        full_name=asset.full_name,
        environment_id=asset.environment_id,
        catalog_name=asset.catalog_name,
        violations=tuple(violations),
    )


def validate_assets(
    assets: Iterable[CatalogAsset], agreements: Sequence[Agreement]
) -> list[AssetValidation]:
    return [validate_asset(a, agreements) for a in assets]


def find_violations(
    assets: Iterable[CatalogAsset], agreements: Sequence[Agreement]
) -> list[AssetValidation]:
    """Return only the non-compliant results; no agreements means no work."""
    if not agreements:
        return []
    return [r for r in validate_assets(assets, agreements) if not r.compliant]


@dataclass(frozen=True)
class ComplianceStats:
    """Aggregate counts over a set of validation results."""

    total_assets: int = 0
    compliant_assets: int = 0
    critical_violations: int = 0

    @property
    def non_compliant_assets(self) -> int:
        return self.total_assets - self.compliant_assets

    @property
    def compliance_percentage(self) -> int:
        return _percentage(self.compliant_assets, self.total_assets)

    @classmethod
    def of(cls, results: Iterable[AssetValidation]) -> ComplianceStats:
        total = compliant = critical = 0
        for r in results:
            total += 1
            compliant += r.compliant
            critical += r.critical_count
        return cls(total, compliant, critical)


def _group(results: Iterable[AssetValidation], key) -> dict[Any, list[AssetValidation]]:
    groups: dict[Any, list[AssetValidation]] = {}
    for r in results:
        groups.setdefault(key(r), []).append(r)
    return groups


def empty_overview() -> dict[str, Any]:
    return {
        "overall": {
            "totalAssets": 0,
            "totalCatalogs": 0,
            "catalogsScanned": 0,
            "compliantAssets": 0,
            "nonCompliantAssets": 0,
            "criticalViolations": 0,
            "compliancePercentage": 0,
            "note": LOADING_NOTE,
        },
        "byEnvironment": [],
        "lastUpdated": _now_iso(),
    }


def overview(results: Sequence[AssetValidation]) -> dict[str, Any]:
    """Overall and per-environment compliance figures."""
    if not results:
        return empty_overview()

    stats = ComplianceStats.of(results)
    catalogs = {(r.environment_id, r.catalog_name) for r in results}
    by_env = []
    for env_id, env_results in _group(results, lambda r: r.environment_id).items():
        env_stats = ComplianceStats.of(env_results)
        by_env.append(
            {
                "environmentId": env_id,
                "totalAssets": env_stats.total_assets,
                "compliantAssets": env_stats.compliant_assets,
                "nonCompliantAssets": env_stats.non_compliant_assets,
                "criticalViolations": env_stats.critical_violations,
                "compliancePercentage": env_stats.compliance_percentage,
            }
        )

    return {
        "overall": {
            "totalAssets": stats.total_assets,
            "totalCatalogs": len(catalogs),
            "catalogsScanned": len(catalogs),
            "compliantAssets": stats.compliant_assets,
            "nonCompliantAssets": stats.non_compliant_assets,
            "criticalViolations": stats.critical_violations,
            "compliancePercentage": stats.compliance_percentage,
            "note": f"Showing compliance for {len(catalogs)} scanned shares",
        },
        "byEnvironment": by_env,
        "lastUpdated": _now_iso(),
    }


def catalog_compliance(results: Sequence[AssetValidation]) -> dict[str, Any]:
    """Per-catalog compliance plus a catalog-level summary."""
    per_catalog: dict[str, dict[str, Any]] = {}
    for (env_id, catalog), group in _group(
        results, lambda r: (r.environment_id, r.catalog_name)
    ).items():
        stats = ComplianceStats.of(group)
        per_catalog[f"{env_id}:{catalog}"] = {
            "catalogName": catalog,
            "environmentId": env_id,
            "totalAssets": stats.total_assets,
            "compliantAssets": stats.compliant_assets,
            "nonCompliantAssets": stats.non_compliant_assets,
            "compliancePercentage": stats.compliance_percentage,
            "isCompliant": stats.non_compliant_assets == 0,
            "violations": stats.non_compliant_assets,
            "criticalViolations": stats.critical_violations,
        }

    compliant = sum(1 for c in per_catalog.values() if c["isCompliant"])
    return {
        "catalogCompliance": per_catalog,
        "summary": {
            "totalCatalogs": len(per_catalog),
            "compliantCatalogs": compliant,
            "nonCompliantCatalogs": len(per_catalog) - compliant,
        },
        "lastUpdated": _now_iso(),
    }


def violations_report(
    results: Sequence[AssetValidation], total_assets: int
) -> dict[str, Any]:
    """Shape the non-compliant results for callers."""
    violating = [r for r in results if not r.compliant]
    return {
        "violations": [r.to_dict() for r in violating],
        "totalAssets": total_assets,
        "compliantAssets": total_assets - len(violating),
        "violatingAssets": len(violating),
    }


def no_agreements_report() -> dict[str, Any]:
    return {
        "violations": [],
        "totalAssets": 0,
        "compliantAssets": 0,
        "violatingAssets": 0,
        "note": NO_AGREEMENTS_NOTE,
    }


def validate_all_report(results: Sequence[AssetValidation]) -> dict[str, Any]:
    compliant = sum(1 for r in results if r.compliant)
    return {
        "results": [r.to_dict() for r in results],
        "summary": {
            "total": len(results),
            "compliant": compliant,
            "nonCompliant": len(results) - compliant,
        },
    }


def share_compliance(
    results: Sequence[AssetValidation], *, has_agreement: bool
) -> dict[str, Any]:
    """
    Compliance block of one share listing entry.

    A share nothing has been scanned for reports 100%; `status` tells
    "no_agreement" and "unknown" apart from real results.
    """
    total = len(results)
    compliant = sum(1 for r in results if r.compliant)
    violations = sum(len(r.violations) for r in results)
    if not has_agreement:
        status = "no_agreement"
    elif total == 0:
        status = "unknown"
    elif violations == 0:
        status = "compliant"
    else:
        status = "non_compliant"
    return {
        "total": total,
        "compliant": compliant,
        "violations": violations,
        "percentage": _percentage(compliant, total) if total > 0 else 100,
        "status": status,
    }
