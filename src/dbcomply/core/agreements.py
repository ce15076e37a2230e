"""Agreement records consumed by the compliance evaluator.

Agreements are produced elsewhere (authoring UI, document parsing); the core
only reads them through the `AgreementSource` protocol. The in-memory store
below is the default source and can be seeded from a JSON file.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol

from dbcomply.core.models import Agreement

logger = logging.getLogger(__name__)


class AgreementSource(Protocol):
    """Interface for reading agreement snapshots."""

    def list(self) -> list[Agreement]:
        """Return all agreements, in a stable order."""
        ...


def priority_catalogs(agreements: Iterable[Agreement]) -> list[str]:
    """Return the unique share (catalog) names referenced by agreements."""
    seen: dict[str, None] = {}
    for agreement in agreements:
        for share in agreement.shares:
            seen.setdefault(share, None)
    return list(seen)


class InMemoryAgreementStore:
    """Thread-safe in-memory agreement store."""

    def __init__(self, agreements: Iterable[Agreement] = ()) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, Agreement] = {a.id: a for a in agreements}

    def list(self) -> list[Agreement]:
        with self._lock:
            return list(self._items.values())

    def get(self, agreement_id: str) -> Agreement | None:
        with self._lock:
            return self._items.get(agreement_id)

    def add(self, agreement: Agreement | Mapping[str, Any]) -> Agreement:
        """Insert or replace an agreement (by id)."""
        if not isinstance(agreement, Agreement):
            agreement = Agreement.from_dict(agreement)
        with self._lock:
            self._items[agreement.id] = agreement
        return agreement

    def remove(self, agreement_id: str) -> bool:
        with self._lock:
            return self._items.pop(agreement_id, None) is not None

    @classmethod
    def from_file(cls, path: str | Path | None) -> InMemoryAgreementStore:
        """
        Load agreements from a JSON file holding a list of agreement records
        (or `{"agreements": [...]}`). A missing path yields an empty store.
        """
        if not path:
            return cls()
        try:
            payload = json.loads(Path(path).read_text())
        except FileNotFoundError:
            logger.warning("Agreements file %s does not exist", path)
            return cls()
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid agreements file {path}: {exc}") from exc

        if isinstance(payload, dict):
            payload = payload.get("agreements", [])
        if not isinstance(payload, list):
            raise ValueError(f"Invalid agreements file {path}: expected a list")

        agreements = []
        for item in payload:
            try:
                agreements.append(Agreement.from_dict(item))
            except (KeyError, TypeError, AttributeError) as exc:
                logger.warning("Skipping malformed agreement record: %s", exc)
        logger.info("Loaded %d agreements from %s", len(agreements), path)
        return cls(agreements)
