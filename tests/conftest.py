from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from dbcomply.core.uc import UCCatalog, UCObject, UCSchema, UCShare  # noqa: E402


class StubCatalogAdapter:
    """
    In-memory catalog adapter.

    `hierarchy` maps catalog -> schema -> {"tables"|"volumes"|"functions"|
    "models": [UCObject]}. `fail` maps a recorded call tuple, e.g.
    ("schemas", "sales") or ("tables", "sales", "core"), to the exception
    that call raises.
    """

    def __init__(self, hierarchy=None, *, shares=None, fail=None, catalog_types=None):
        self.hierarchy = hierarchy or {}
        self.catalog_types = catalog_types or {}
        self.shares = shares or {}
        self.fail = fail or {}
        self.calls = []
        self.tags_written = []
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)
        exc = self.fail.get(call)
        if exc is not None:
            raise exc

    def count(self, kind):
        return sum(1 for c in self.calls if c[0] == kind)

    def list_catalogs(self):
        self._record("catalogs")
        return [
            UCCatalog(name=n, catalog_type=self.catalog_types.get(n))
            for n in self.hierarchy
        ]

    def list_schemas(self, catalog):
        self._record("schemas", catalog)
        return [
            UCSchema(full_name=f"{catalog}.{s}", name=s, catalog_name=catalog)
            for s in self.hierarchy.get(catalog, {})
        ]

    def _members(self, kind, catalog, schema):
        self._record(kind, catalog, schema)
        return list(self.hierarchy.get(catalog, {}).get(schema, {}).get(kind, []))

    def list_tables(self, catalog, schema):
        return self._members("tables", catalog, schema)

    def list_volumes(self, catalog, schema):
        return self._members("volumes", catalog, schema)

    def list_functions(self, catalog, schema):
        return self._members("functions", catalog, schema)

    def list_models(self, catalog, schema):
        return self._members("models", catalog, schema)

    def list_shares(self):
        self._record("shares")
        return [UCShare(name=n) for n in self.shares]

    def get_share(self, name, include_shared_data=True):
        self._record("share", name)
        if name not in self.shares:
            raise LookupError(f"share {name} not found")
        return self.shares[name]

    def get_table(self, full_name):
        self._record("table", full_name)
        catalog, schema, name = full_name.split(".")
        for obj in self.hierarchy.get(catalog, {}).get(schema, {}).get("tables", []):
            if obj.name == name:
                return {"full_name": full_name, "properties": dict(obj.properties or {})}
        raise LookupError(full_name)

    def set_tags(self, full_name, tags):
        self._record("set_tags", full_name)
        self.tags_written.append((full_name, dict(tags)))
        return {"full_name": full_name, "properties": dict(tags)}


def table(name, **tags):
    return UCObject(name=name, properties=tags)


@pytest.fixture
def stub_adapter_cls():
    return StubCatalogAdapter


@pytest.fixture
def uc_table():
    return table
