import pytest
from fastapi.testclient import TestClient

from dbcomply.api.app import create_app
from dbcomply.core.agreements import InMemoryAgreementStore
from dbcomply.core.config import Settings
from dbcomply.core.environments import Environment
from dbcomply.core.uc import UCShare, UCSharedObject
from dbcomply.core.validation import ComplianceService

AGREEMENT = {
    "id": "agr-1",
    "name": "Sales sharing",
    "shares": ["sales"],
    "environments": ["prod"],
    "parsedRequirements": [
        {"scope": "all", "requiredTags": {"PII": "true"}, "severity": "critical"}
    ],
}


@pytest.fixture
def service(stub_adapter_cls, uc_table):
    adapter = stub_adapter_cls(
        {
            "sales": {
                "core": {
                    "tables": [uc_table("orders"), uc_table("customers", PII="true")]
                }
            }
        },
        shares={
            "partner": UCShare(
                name="partner",
                objects=(UCSharedObject(name="sales.core.orders", data_object_type="TABLE"),),
            )
        },
    )
    return ComplianceService(
        [Environment(id="prod", display_name="Production", base_url="https://prod")],
        InMemoryAgreementStore(),
        settings=Settings(min_request_interval=0.0),
        adapter_factory=lambda env: adapter,
        sleep=lambda s: None,
    )


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as c:
        yield c


def test_health_and_environments(client):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/api/environments").json() == [
        {"id": "prod", "name": "Production", "host": "https://prod", "type": "databricks"}
    ]


def test_discover_then_poll_status_and_list_tables(client, service):
    response = client.post("/api/delta-sharing/discover", params={"env": "prod"})
    assert response.status_code == 202
    assert response.json()["environments"] == ["prod"]

    tables = client.get("/api/delta-sharing/tables", params={"wait": True}).json()
    assert sorted(t["fullName"] for t in tables) == [
        "sales.core.customers",
        "sales.core.orders",
    ]
    assert tables[0]["environmentId"] == "prod"

    status = client.get("/api/delta-sharing/loading-status").json()
    assert status["prod"]["isLoading"] is False
    assert status["prod"]["catalogsProcessed"] == 1


def test_discover_unknown_environment_is_404(client):
    response = client.post("/api/delta-sharing/discover", params={"env": "nope"})
    assert response.status_code == 404
    assert response.json()["error"] == "Environment not found"


def test_share_tables_prefers_share_objects(client):
    tables = client.get("/api/delta-sharing/tables/prod/partner").json()
    assert [t["fullName"] for t in tables] == ["sales.core.orders"]
    assert tables[0]["share_name"] == "partner"


def test_single_table_details(client):
    body = client.get("/api/delta-sharing/tables/prod:sales.core.customers").json()
    assert body["environmentId"] == "prod"
    assert body["properties"] == {"PII": "true"}

    assert client.get("/api/delta-sharing/tables/sales.core.customers").status_code == 400


def test_violations_without_agreements_has_note(client):
    body = client.get("/api/validation/violations").json()
    assert body["violations"] == []
    assert "No agreements defined" in body["note"]


def test_validation_endpoints(client, service):
    service.agreements.add(AGREEMENT)
    service.assets(wait=True)

    overview = client.get("/api/validation/overview").json()
    assert overview["overall"]["totalAssets"] == 2
    assert overview["overall"]["compliancePercentage"] == 50

    catalogs = client.get("/api/validation/catalog-compliance").json()
    assert catalogs["catalogCompliance"]["prod:sales"]["violations"] == 1

    violations = client.get("/api/validation/violations").json()
    assert violations["violatingAssets"] == 1

    validate_all = client.post("/api/validation/validate-all").json()
    assert validate_all["summary"] == {"total": 2, "compliant": 1, "nonCompliant": 1}

    one = client.post("/api/validation/validate/prod:sales.core.orders").json()
    assert one["compliant"] is False
    assert one["violations"][0]["type"] == "missing"


def test_validate_errors(client, service):
    service.assets(wait=True)
    assert client.post("/api/validation/validate/garbage").status_code == 400
    assert client.post("/api/validation/validate/dev:sales.core.orders").status_code == 404
    assert client.post("/api/validation/validate/prod:sales.core.nope").status_code == 404


def test_clear_cache_twice(client, service):
    service.assets(wait=True)

    first = client.post("/api/validation/clear-cache").json()
    second = client.post("/api/validation/clear-cache").json()

    assert first["success"] is True
    assert first["entriesRemoved"] > 0
    assert second == {**first, "entriesRemoved": 0}


def test_shares_listing(client):
    shares = client.get("/api/delta-sharing/shares", params={"wait": True}).json()

    assert [s["name"] for s in shares] == ["partner"]
    assert shares[0]["direction"] == "provided"
    assert shares[0]["fullyScanned"] is False
    assert shares[0]["compliance"]["status"] == "no_agreement"


def test_share_asset_counts(client):
    response = client.post(
        "/api/delta-sharing/shares/asset-counts",
        json={"envId": "prod", "shareNames": ["partner", "gone"]},
    )
    assert response.json() == {"partner": 1, "gone": 0}

    missing = client.post("/api/delta-sharing/shares/asset-counts", json={"envId": "prod"})
    assert missing.status_code == 400
    assert missing.json() == {
        "error": "Invalid request",
        "message": "shareNames array is required",
    }
