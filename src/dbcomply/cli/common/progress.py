"""Progress formatting utilities for the CLI."""

from __future__ import annotations

import time
from concurrent.futures import Future
from typing import Mapping

from rich.console import Console, Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from dbcomply.core.models import DiscoveryProgress
from dbcomply.core.status import LoadingStatusTracker

console = Console()
_MAX_ENV_NAME_WIDTH = 40


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _display_env_label(
    env_id: str,
    env_name_by_id: Mapping[str, str] | None,
    *,
    name_width: int,
) -> str:
    """
    Render an environment label for the live progress list.

    - With mapping: `<name>  (id: <id>)` with aligned id column.
    - Without mapping (or if missing): fallback to just `<id>`.
    """
    if not env_name_by_id:
        return env_id

    raw_name = env_name_by_id.get(env_id)
    if raw_name is None or str(raw_name) == env_id:
        return env_id

    short_name = _truncate(str(raw_name), _MAX_ENV_NAME_WIDTH)
    return f"{short_name.ljust(name_width)}  (id: {env_id})"


def _state(progress: DiscoveryProgress, done: bool) -> tuple[str, str]:
    if progress.error:
        return "FAILED", "red"
    if done and not progress.is_loading:
        return "DONE", "green"
    return "LOADING", "yellow"


def watch_discovery(
    tracker: LoadingStatusTracker,
    futures: Mapping[str, Future],
    poll_interval: float = 1.0,
    env_name_by_id: Mapping[str, str] | None = None,
) -> dict[str, DiscoveryProgress]:
    """
    Poll the progress tracker until every discovery future is done. Shows:
      - an overall bar (environments finished + failures)
      - per-environment rows (catalogs processed, assets found, elapsed)

    Returns the final progress per environment.
    """
    env_ids = list(futures)
    shown = [
        _truncate(str(env_name_by_id[e]), _MAX_ENV_NAME_WIDTH)
        for e in env_ids
        if env_name_by_id and e in env_name_by_id and env_name_by_id[e] != e
    ]
    name_width = max((len(n) for n in shown), default=0)

    overall = Progress(
        TextColumn("[bold]Overall[/]"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("failures=[bold red]{task.fields[failures]}[/]"),
        TimeElapsedColumn(),
        console=console,
    )
    per_env = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.fields[env]}[/]"),
        BarColumn(),
        TextColumn("catalogs={task.completed:.0f}/{task.total:.0f}"),
        TextColumn("assets={task.fields[assets]}"),
        TextColumn("[{task.fields[style]}]{task.fields[status]}[/{task.fields[style]}]"),
        TimeElapsedColumn(),
        console=console,
    )

    overall_id = overall.add_task("overall", total=max(len(env_ids), 1), failures=0)
    task_ids = {
        e: per_env.add_task(
            "",
            total=None,
            env=_display_env_label(e, env_name_by_id, name_width=name_width),
            assets=0,
            status="LOADING",
            style="yellow",
        )
        for e in env_ids
    }

    finished: set[str] = set()
    failures = 0
    with Live(Group(overall, per_env), console=console, refresh_per_second=10, transient=True):
        while True:
            for env_id in env_ids:
                if env_id in finished:
                    continue
                done = futures[env_id].done()
                p = tracker.get(env_id)
                status, style = _state(p, done)
                per_env.update(
                    task_ids[env_id],
                    total=max(p.total_catalogs, 1),
                    completed=p.catalogs_processed,
                    assets=p.current_asset_count,
                    status=status,
                    style=style,
                )
                if done:
                    finished.add(env_id)
                    if p.error:
                        failures += 1
                        overall.update(overall_id, failures=failures)
                    overall.advance(overall_id, 1)
            if len(finished) == len(env_ids):
                break
            time.sleep(poll_interval)

    return {e: tracker.get(e) for e in env_ids}
