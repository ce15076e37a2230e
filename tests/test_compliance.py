import pytest

from dbcomply.core import compliance
from dbcomply.core.models import (
    Agreement,
    AssetType,
    CatalogAsset,
    Requirement,
    Severity,
    ViolationType,
)


def _asset(name="orders", catalog="sales", env="prod", **tags):
    return CatalogAsset(
        asset_type=AssetType.TABLE,
        catalog_name=catalog,
        schema_name="core",
        name=name,
        full_name=f"{catalog}.core.{name}",
        environment_id=env,
        tags=tags,
    )


def _agreement(shares=("sales",), envs=("prod",), scope="all", severity="critical", **tags):
    return Agreement.from_dict(
        {
            "id": "agr-1",
            "name": "Sales sharing",
            "shares": list(shares),
            "environments": list(envs),
            "parsedRequirements": [
                {"scope": scope, "requiredTags": tags, "severity": severity}
            ],
        }
    )


def test_missing_tag_is_a_single_critical_violation():
    asset = _asset(PII="true")
    agreement = _agreement(PII="true", retention_years="7")

    result = compliance.validate_asset(asset, [agreement])

    assert not result.compliant
    assert len(result.violations) == 1
    v = result.violations[0]
    assert (v.tag_key, v.expected_value, v.actual_value) == ("retention_years", "7", None)
    assert v.severity is Severity.CRITICAL
    assert v.type is ViolationType.MISSING


def test_agreement_for_other_share_does_not_apply():
    result = compliance.validate_asset(
        _asset(PII="true"), [_agreement(shares=("marketing",), PII="true", retention_years="7")]
    )
    assert result.compliant
    assert result.violations == ()


def test_agreement_for_other_environment_does_not_apply():
    result = compliance.validate_asset(
        _asset(), [_agreement(envs=("dev",), PII="true")]
    )
    assert result.compliant


def test_agreement_without_shares_applies_to_every_catalog():
    result = compliance.validate_asset(
        _asset(catalog="hr"), [_agreement(shares=(), PII="true")]
    )
    assert [v.tag_key for v in result.violations] == ["PII"]


def test_incorrect_value_reports_observed_value():
    result = compliance.validate_asset(_asset(PII="false"), [_agreement(PII="true")])
    v = result.violations[0]
    assert v.type is ViolationType.INCORRECT
    assert v.actual_value == "false"
    assert v.to_dict()["type"] == "incorrect"


@pytest.mark.parametrize(
    "scope, applies",
    [
        ("*.*.*", True),
        ("all", True),
        ("sales.core.*", True),
        ("orders", True),
        ("finance.ledger", False),
    ],
)
def test_requirement_scope_matching(scope, applies):
    result = compliance.validate_asset(_asset(), [_agreement(scope=scope, PII="true")])
    assert (not result.compliant) is applies


def test_violation_order_is_deterministic():
    agreements = [
        Agreement.from_dict(
            {
                "id": f"agr-{i}",
                "name": f"A{i}",
                "shares": ["sales"],
                "environments": ["prod"],
                "parsedRequirements": [
                    {"scope": "all", "requiredTags": {"b": "1", "a": "2"}},
                    {"scope": "all", "requiredTags": {"c": "3"}},
                ],
            }
        )
        for i in (1, 2)
    ]
    first = compliance.validate_asset(_asset(), agreements)
    second = compliance.validate_asset(_asset(), agreements)

    keys = [(v.agreement_id, v.tag_key) for v in first.violations]
    assert keys == [
        ("agr-1", "b"),
        ("agr-1", "a"),
        ("agr-1", "c"),
        ("agr-2", "b"),
        ("agr-2", "a"),
        ("agr-2", "c"),
    ]
    assert first == second


def test_malformed_requirements_mean_no_requirements():
    agreement = Agreement.from_dict(
        {
            "id": "agr-x",
            "shares": ["sales"],
            "environments": ["prod"],
            "parsedRequirements": [
                {"scope": "all"},
                {"scope": "all", "requiredTags": "PII=true", "severity": "urgent"},
            ],
        }
    )
    assert compliance.validate_asset(_asset(), [agreement]).compliant
    assert agreement.requirements[1].severity is Severity.WARNING


def test_requirement_without_scope_applies_to_all():
    req = Requirement.from_dict({"requiredTags": {"PII": "true"}})
    assert req.scope == "all"
    assert req.applies_to(_asset())


def test_validate_asset_requires_an_asset():
    with pytest.raises(ValueError):
        compliance.validate_asset(None, [])


def test_find_violations_short_circuits_without_agreements():
    def assets():
        raise AssertionError("assets must not be iterated")
        yield  # pragma: no cover

    assert compliance.find_violations(assets(), []) == []


def test_overview_counts_and_percentage():
    agreement = _agreement(shares=(), envs=("prod", "dev"), PII="true")
    results = compliance.validate_assets(
        [
            _asset("a", PII="true"),
            _asset("b"),
            _asset("c", catalog="hr", env="dev", PII="true"),
        ],
        [agreement],
    )

    report = compliance.overview(results)

    overall = report["overall"]
    assert overall["totalAssets"] == 3
    assert overall["compliantAssets"] == 2
    assert overall["nonCompliantAssets"] == 1
    assert overall["criticalViolations"] == 1
    assert overall["compliancePercentage"] == 67
    assert overall["totalCatalogs"] == 2
    by_env = {e["environmentId"]: e for e in report["byEnvironment"]}
    assert by_env["prod"]["compliancePercentage"] == 50
    assert by_env["dev"]["compliancePercentage"] == 100


def test_percentage_rounds_halves_up():
    agreement = _agreement(PII="true")
    assets = [_asset("a", PII="true")] + [_asset(f"t{i}") for i in range(7)]

    report = compliance.overview(compliance.validate_assets(assets, [agreement]))

    # 1 of 8 is 12.5%
    assert report["overall"]["compliancePercentage"] == 13


def test_empty_overview_has_loading_note():
    report = compliance.overview([])
    assert report["overall"]["totalAssets"] == 0
    assert report["overall"]["compliancePercentage"] == 0
    assert report["overall"]["note"] == compliance.LOADING_NOTE


def test_catalog_compliance_groups_by_environment_and_catalog():
    agreement = _agreement(shares=("sales",), PII="true")
    results = compliance.validate_assets(
        [_asset("a", PII="true"), _asset("b"), _asset("c", catalog="hr")],
        [agreement],
    )

    report = compliance.catalog_compliance(results)

    sales = report["catalogCompliance"]["prod:sales"]
    assert sales["totalAssets"] == 2
    assert sales["violations"] == 1
    assert sales["isCompliant"] is False
    assert report["catalogCompliance"]["prod:hr"]["isCompliant"] is True
    assert report["summary"] == {
        "totalCatalogs": 2,
        "compliantCatalogs": 1,
        "nonCompliantCatalogs": 1,
    }


def test_violations_report_lists_only_violating_assets():
    results = compliance.validate_assets(
        [_asset("a", PII="true"), _asset("b")], [_agreement(PII="true")]
    )
    report = compliance.violations_report(results, total_assets=2)
    assert report["violatingAssets"] == 1
    assert report["compliantAssets"] == 1
    assert [r["assetId"] for r in report["violations"]] == ["prod:sales.core.b"]


def test_validate_all_summary():
    results = compliance.validate_assets(
        [_asset("a", PII="true"), _asset("b")], [_agreement(PII="true")]
    )
    assert compliance.validate_all_report(results)["summary"] == {
        "total": 2,
        "compliant": 1,
        "nonCompliant": 1,
    }
