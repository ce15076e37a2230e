import json

import pytest

from dbcomply.core.agreements import InMemoryAgreementStore, priority_catalogs
from dbcomply.core.models import Agreement


def _record(agreement_id, shares):
    return {
        "id": agreement_id,
        "name": agreement_id.upper(),
        "shares": shares,
        "environments": ["prod"],
        "parsedRequirements": [{"scope": "all", "requiredTags": {"PII": "true"}}],
    }


def test_store_add_get_list_remove():
    store = InMemoryAgreementStore()
    store.add(_record("a", ["sales"]))
    store.add(Agreement.from_dict(_record("b", [])))
    store.add(_record("a", ["hr"]))

    assert [a.id for a in store.list()] == ["a", "b"]
    assert store.get("a").shares == ("hr",)
    assert store.remove("b") is True
    assert store.remove("b") is False
    assert store.get("b") is None


def test_priority_catalogs_unique_in_first_seen_order():
    agreements = [
        Agreement.from_dict(_record("a", ["sales", "hr"])),
        Agreement.from_dict(_record("b", ["finance", "sales"])),
        Agreement.from_dict(_record("c", [])),
    ]
    assert priority_catalogs(agreements) == ["sales", "hr", "finance"]


def test_load_from_file(tmp_path):
    path = tmp_path / "agreements.json"
    path.write_text(json.dumps({"agreements": [_record("a", ["sales"]), {"name": "no id"}]}))

    store = InMemoryAgreementStore.from_file(path)

    assert [a.id for a in store.list()] == ["a"]


def test_load_missing_or_invalid_file(tmp_path):
    assert InMemoryAgreementStore.from_file(tmp_path / "missing.json").list() == []
    assert InMemoryAgreementStore.from_file(None).list() == []

    bad = tmp_path / "bad.json"
    bad.write_text('{"agreements": 3}')
    with pytest.raises(ValueError):
        InMemoryAgreementStore.from_file(bad)
