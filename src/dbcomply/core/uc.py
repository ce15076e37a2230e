"""Core records for Unity Catalog and Delta Sharing objects.

These models represent remote catalog entities in a simple, immutable form.
They are intentionally free of Databricks SDK types and UI/CLI concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class UCCatalog:
    """Lightweight representation of a Unity Catalog catalog."""

    name: str
    catalog_type: str | None = None
    comment: str | None = None
    owner: str | None = None
    properties: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UCSchema:
    """Lightweight representation of a Unity Catalog schema."""

    full_name: str
    name: str
    catalog_name: str
    comment: str | None = None
    owner: str | None = None


@dataclass(frozen=True)
class UCObject:
    """
    A schema member: table, volume, function or registered model.

    `properties` is only populated for object types that carry string
    properties (tables). `raw` keeps the remote payload for passthrough.
    """

    name: str
    full_name: str | None = None
    properties: Mapping[str, str] | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UCSharedObject:
    """An object registered in a Delta Sharing share."""

    name: str
    data_object_type: str | None = None
    shared_as: str | None = None
    added_at: int | None = None
    added_by: str | None = None
    cdf_enabled: bool | None = None
    status: str | None = None


@dataclass(frozen=True)
class UCShare:
    """A Delta Sharing share with (optionally) its member objects."""

    name: str
    objects: tuple[UCSharedObject, ...] = ()
    comment: str | None = None
    owner: str | None = None
