"""Discovery progress per environment, readable without blocking."""

from __future__ import annotations

import threading

from dbcomply.core.models import DiscoveryProgress


class LoadingStatusTracker:
    """
    Holds the latest DiscoveryProgress for each environment.

    Only the discovery engine writes. A write carrying an older run id than
    the one already recorded is ignored, so a slow superseded run cannot
    overwrite the progress of a newer one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._progress: dict[str, DiscoveryProgress] = {}

    def get(self, env_id: str) -> DiscoveryProgress:
        """Return the last known progress, or an idle default."""
        with self._lock:
            current = self._progress.get(env_id)
        return current if current is not None else DiscoveryProgress()

    def publish(self, env_id: str, progress: DiscoveryProgress) -> bool:
        """Record progress; returns False if it belongs to a superseded run."""
        with self._lock:
            current = self._progress.get(env_id)
            if current is not None and progress.run_id < current.run_id:
                return False
            self._progress[env_id] = progress
            return True

    def snapshot(self) -> dict[str, DiscoveryProgress]:
        with self._lock:
            return dict(self._progress)
