"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass

from dbcomply.cli.common.exits import EXIT_INPUT, die, exit_from_exc
from dbcomply.cli.tui import select_environment
from dbcomply.core.config import Settings
from dbcomply.core.environments import Environment
from dbcomply.core.validation import ComplianceService, build_service


@dataclass
class AppContext:
    """Compliance service plus the environment chosen with --env."""

    service: ComplianceService
    env_id: str | None = None

    def environment(self, *, prompt: bool = True) -> Environment | None:
        """
        Return the selected environment.

        Without --env: the only environment when there is exactly one, an
        interactive pick when there are several (and `prompt` is set), else
        None meaning "all environments".
        """
        envs = self.service.environments()
        if self.env_id:
            for env in envs:
                if env.id == self.env_id:
                    return env
            die(
                f"Unknown environment '{self.env_id}'. "
                f"Known: {', '.join(e.id for e in envs) or 'none'}",
                code=EXIT_INPUT,
            )
        if len(envs) == 1:
            return envs[0]
        if len(envs) > 1 and prompt:
            picked = select_environment(envs)
            if picked is None:
                die("No environment selected", code=EXIT_INPUT)
            self.env_id = picked.id
            return picked
        return None


def build_context(
    *,
    agreements: str | None,
    config: str | None,
    env: str | None,
) -> AppContext:
    """Build the CLI context; configuration errors end the process."""
    try:
        service = build_service(
            Settings.from_env(), config_path=config, agreements_path=agreements
        )
    except ValueError as exc:
        exit_from_exc(exc, message=str(exc), code=EXIT_INPUT)
    if not service.environments():
        die(
            "No environments configured. Set DATABRICKS_HOST or pass --config.",
            code=EXIT_INPUT,
        )
    return AppContext(service=service, env_id=env)
