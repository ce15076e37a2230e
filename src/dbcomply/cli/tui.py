"""Terminal UI utilities for dbcomply."""

from __future__ import annotations

import questionary

from dbcomply.cli.common.output import out
from dbcomply.core.environments import Environment

_MAX_ENV_NAME_WIDTH = 48


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _env_choice_title(env: Environment, *, name_width: int) -> str:
    """Format one environment as `<name>  (id: <id>)` with aligned id column."""
    short_name = _truncate(env.display_name, _MAX_ENV_NAME_WIDTH)
    return f"{short_name.ljust(name_width)}  (id: {env.id})"


def select_environment(environments: list[Environment]) -> Environment | None:
    """Prompt for one environment; returns None when cancelled."""
    shown = [_truncate(e.display_name, _MAX_ENV_NAME_WIDTH) for e in environments]
    name_width = max((len(name) for name in shown), default=0)
    choices = [
        questionary.Choice(title=_env_choice_title(e, name_width=name_width), value=e)
        for e in environments
    ]
    return out.select_one("Select environment:", choices)
