"""Remote workspace environments.

An environment is one Unity Catalog endpoint. Environments are created from
static configuration at start-up and never change during a run:

- the hosting workspace, when running inside Databricks Apps
  (`DATABRICKS_HOST` is set), exposed as id `current`;
- every enabled entry of the JSON config file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

CURRENT_ENV_ID = "current"


class UnknownEnvironmentError(KeyError):
    """Raised when an environment id is not configured or not enabled."""

    def __init__(self, env_id: str):
        super().__init__(env_id)
        self.env_id = env_id

    def __str__(self) -> str:
        return f"Environment {self.env_id!r} not found or not enabled"


@dataclass(frozen=True)
class Environment:
    """
    One remote catalog endpoint.

    Attributes:
        id: Stable identifier used in asset ids (`<id>:<full_name>`).
        display_name: Human-readable name.
        base_url: Workspace URL.
        auth_token: Personal access token, or None to use ambient auth.
        profile: Optional Databricks CLI profile (~/.databrickscfg).
    """

    id: str
    display_name: str
    base_url: str | None
    auth_token: str | None = None
    profile: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "host": self.base_url,
            "type": "databricks",
        }


def _current_host() -> str | None:
    host = os.getenv("DATABRICKS_HOST")
    if not host:
        return None
    return host if host.startswith("https://") else f"https://{host}"


def _read_config(path: str | Path | None) -> Mapping[str, Any]:
    if not path:
        return {}
    try:
        payload = json.loads(Path(path).read_text())
    except FileNotFoundError:
        logger.warning("Environment config %s does not exist", path)
        return {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid environment config {path}: {exc}") from exc
    envs = payload.get("environments") if isinstance(payload, dict) else None
    return envs if isinstance(envs, dict) else {}


def load_environments(config_path: str | Path | None = None) -> list[Environment]:
    """Return all enabled environments, the hosting workspace first."""
    environments: list[Environment] = []

    host = _current_host()
    if host:
        environments.append(
            Environment(
                id=CURRENT_ENV_ID,
                display_name=os.getenv("DATABRICKS_APP_NAME") or "Current Workspace",
                base_url=host,
            )
        )

    for env_id, entry in _read_config(config_path).items():
        if not isinstance(entry, dict) or not entry.get("enabled"):
            continue
        if not entry.get("workspaceUrl") and not entry.get("profile"):
            continue
        environments.append(
            Environment(
                id=str(env_id),
                display_name=str(entry.get("name") or env_id),
                base_url=entry.get("workspaceUrl"),
                auth_token=entry.get("token") or None,
                profile=entry.get("profile") or None,
            )
        )

    return environments


def get_environment(environments: list[Environment], env_id: str) -> Environment | None:
    """Return the environment with the given id, or None."""
    for env in environments:
        if env.id == env_id:
            return env
    return None
