import pytest

from dbcomply.core.cache import CatalogCache
from dbcomply.core.catalog import (
    CatalogClient,
    InvalidAssetIdError,
    is_internal_catalog,
    is_internal_schema,
    parse_asset_id,
    parse_full_name,
    share_object_to_asset,
)
from dbcomply.core.models import AssetType
from dbcomply.core.transport import RateLimitedTransport
from dbcomply.core.uc import UCSharedObject


@pytest.mark.parametrize("value", ["main", "main.sales", "main..t", ".sales.t", "a.b.c.d", ""])
def test_parse_full_name_rejects_invalid_input(value: str):
    with pytest.raises(ValueError, match="catalog.schema.name"):
        parse_full_name(value)


def test_parse_full_name_accepts_valid_input():
    assert parse_full_name(" main.sales.orders ") == ("main", "sales", "orders")


@pytest.mark.parametrize("value", ["sales.core.orders", ":sales.core.orders", "prod:"])
def test_parse_asset_id_rejects_invalid_input(value: str):
    with pytest.raises(InvalidAssetIdError):
        parse_asset_id(value)


def test_parse_asset_id_splits_on_first_colon():
    assert parse_asset_id("prod:sales.core.orders") == ("prod", "sales.core.orders")


@pytest.mark.parametrize(
    "name, internal",
    [("__databricks_internal", True), ("system", True), ("sales", False), ("my_system", False)],
)
def test_internal_catalogs(name, internal):
    assert is_internal_catalog(name) is internal


def test_internal_schemas():
    assert is_internal_schema("information_schema")
    assert is_internal_schema("__tmp")
    assert not is_internal_schema("core")


def test_share_object_with_three_part_name():
    asset = share_object_to_asset(
        "partner",
        UCSharedObject(
            name="sales.core.orders",
            data_object_type="TABLE",
            shared_as="core.orders",
            cdf_enabled=True,
        ),
        environment_id="prod",
    )
    assert (asset.catalog_name, asset.schema_name, asset.name) == ("sales", "core", "orders")
    assert asset.id == "prod:sales.core.orders"
    assert asset.metadata["shared_as"] == "core.orders"
    assert asset.metadata["cdf_enabled"] is True
    assert asset.tags == {}


def test_share_object_with_two_part_name_is_relative_to_share():
    asset = share_object_to_asset(
        "partner",
        UCSharedObject(name="core.orders", data_object_type="VIEW"),
        environment_id="prod",
    )
    assert asset.asset_type is AssetType.TABLE
    assert (asset.catalog_name, asset.schema_name, asset.name) == ("partner", "core", "orders")


def test_share_schema_object():
    asset = share_object_to_asset(
        "partner",
        UCSharedObject(name="sales.core", data_object_type="SCHEMA"),
        environment_id="prod",
    )
    assert asset.asset_type is AssetType.SCHEMA
    assert (asset.catalog_name, asset.schema_name, asset.name) == ("sales", "core", "core")


def _client(adapter):
    return CatalogClient(
        "prod",
        adapter,
        cache=CatalogCache(60),
        transport=RateLimitedTransport(min_interval=0.0, sleep=lambda s: None),
    )


def test_listings_are_cached_per_key(stub_adapter_cls, uc_table):
    adapter = stub_adapter_cls({"sales": {"core": {"tables": [uc_table("orders")]}}})
    client = _client(adapter)

    client.list_assets(AssetType.TABLE, "sales", "core")
    client.list_assets(AssetType.TABLE, "sales", "core")
    client.list_catalogs()
    client.list_catalogs()

    assert adapter.count("tables") == 1
    assert adapter.count("catalogs") == 1


def test_set_tags_validates_name_and_invalidates_table_listing(stub_adapter_cls, uc_table):
    adapter = stub_adapter_cls({"sales": {"core": {"tables": [uc_table("orders")]}}})
    client = _client(adapter)
    client.list_objects(AssetType.TABLE, "sales", "core")

    client.set_tags("sales.core.orders", {"PII": "true"})
    client.list_objects(AssetType.TABLE, "sales", "core")

    assert adapter.tags_written == [("sales.core.orders", {"PII": "true"})]
    assert adapter.count("tables") == 2
    with pytest.raises(ValueError):
        client.set_tags("orders", {"PII": "true"})


def test_get_table_goes_through_the_transport(stub_adapter_cls, uc_table):
    adapter = stub_adapter_cls({"sales": {"core": {"tables": [uc_table("orders", PII="true")]}}})
    client = _client(adapter)
    assert client.get_table("sales.core.orders")["properties"] == {"PII": "true"}
    assert adapter.calls == [("table", "sales.core.orders")]
    with pytest.raises(ValueError):
        client.get_table("orders")
