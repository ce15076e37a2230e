from __future__ import annotations

from typing import Any, Iterable, Mapping

from databricks.sdk import WorkspaceClient

from dbcomply.core.uc import UCCatalog, UCObject, UCSchema, UCShare, UCSharedObject


def _text(value: Any) -> str | None:
    """Return enum values by their `.value`, other values as-is (None stays None)."""
    if value is None:
        return None
    return str(getattr(value, "value", value))


def _raw(obj: Any) -> dict[str, Any]:
    as_dict = getattr(obj, "as_dict", None)
    return as_dict() if callable(as_dict) else {}


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(k): str(v) for k, v in value.items()}


class UnityCatalogAdapter:
    """Adapter around Databricks SDK Unity Catalog and Delta Sharing APIs."""

    def __init__(self, client: WorkspaceClient) -> None:
        self.client = client

    def list_catalogs(self) -> list[UCCatalog]:
        """List all catalogs visible to the current principal."""
        out: list[UCCatalog] = []
        for c in self.client.catalogs.list():
            name = getattr(c, "name", None)
            if not name:
                continue
            out.append(
                UCCatalog(
                    name=name,
                    catalog_type=_text(getattr(c, "catalog_type", None)),
                    comment=getattr(c, "comment", None),
                    owner=getattr(c, "owner", None),
                    properties=_string_map(getattr(c, "properties", None)),
                )
            )
        return out

    def list_schemas(self, catalog: str) -> list[UCSchema]:
        """List schemas in a given catalog."""
        out: list[UCSchema] = []
        for s in self.client.schemas.list(catalog_name=catalog):
            name = getattr(s, "name", None)
            full_name = getattr(s, "full_name", None)
            catalog_name = getattr(s, "catalog_name", None) or catalog

            if not name and full_name:
                name = full_name.split(".")[-1]

            if not full_name and name:
                full_name = f"{catalog_name}.{name}"

            if not name or not full_name:
                continue

            out.append(
                UCSchema(
                    full_name=full_name,
                    name=name,
                    catalog_name=catalog_name,
                    comment=getattr(s, "comment", None),
                    owner=getattr(s, "owner", None),
                )
            )
        return out

    def _objects(self, items: Iterable[Any], *, with_properties: bool) -> list[UCObject]:
        out: list[UCObject] = []
        for item in items:
            name = getattr(item, "name", None)
            if not name:
                continue
            out.append(
                UCObject(
                    name=name,
                    full_name=getattr(item, "full_name", None),
                    properties=_string_map(getattr(item, "properties", None))
                    if with_properties
                    else None,
                    raw=_raw(item),
                )
            )
        return out

    def list_tables(self, catalog: str, schema: str) -> list[UCObject]:
        """List tables in a given catalog.schema."""
        items = self.client.tables.list(catalog_name=catalog, schema_name=schema)
        return self._objects(items, with_properties=True)

    def list_volumes(self, catalog: str, schema: str) -> list[UCObject]:
        """List volumes in a given catalog.schema."""
        items = self.client.volumes.list(catalog_name=catalog, schema_name=schema)
        return self._objects(items, with_properties=False)

    def list_functions(self, catalog: str, schema: str) -> list[UCObject]:
        """List functions in a given catalog.schema."""
        items = self.client.functions.list(catalog_name=catalog, schema_name=schema)
        # FunctionInfo.properties is a JSON string, not a tag map
        return self._objects(items, with_properties=False)

    def list_models(self, catalog: str, schema: str) -> list[UCObject]:
        """List registered models in a given catalog.schema."""
        items = self.client.registered_models.list(
            catalog_name=catalog, schema_name=schema
        )
        return self._objects(items, with_properties=False)

    def list_shares(self) -> list[UCShare]:
        """List shares provided by this workspace (without their objects)."""
        out: list[UCShare] = []
        for s in self.client.shares.list():
            name = getattr(s, "name", None)
            if not name:
                continue
            out.append(
                UCShare(
                    name=name,
                    comment=getattr(s, "comment", None),
                    owner=getattr(s, "owner", None),
                )
            )
        return out

    def get_share(self, name: str, include_shared_data: bool = True) -> UCShare:
        """Return a share, with its member objects when requested."""
        share = self.client.shares.get(name=name, include_shared_data=include_shared_data)
        objects = tuple(
            UCSharedObject(
                name=o.name,
                data_object_type=_text(getattr(o, "data_object_type", None)),
                shared_as=getattr(o, "shared_as", None),
                added_at=getattr(o, "added_at", None),
                added_by=getattr(o, "added_by", None),
                cdf_enabled=getattr(o, "cdf_enabled", None),
                status=_text(getattr(o, "status", None)),
            )
            for o in (getattr(share, "objects", None) or [])
            if getattr(o, "name", None)
        )
        return UCShare(
            name=getattr(share, "name", None) or name,
            objects=objects,
            comment=getattr(share, "comment", None),
            owner=getattr(share, "owner", None),
        )

    def get_table(self, full_name: str) -> dict[str, Any]:
        """Return the remote table payload."""
        return _raw(self.client.tables.get(full_name=full_name))

    def set_tags(self, full_name: str, tags: Mapping[str, str]) -> dict[str, Any]:
        """Replace table properties (tags) and return the updated payload."""
        # tables.update() only covers ownership; properties need the raw PATCH
        return self.client.api_client.do(
            "PATCH",
            f"/api/2.1/unity-catalog/tables/{full_name}",
            body={"properties": dict(tags)},
        )
