"""Commands for environments, discovery and asset listings."""

import typer

from dbcomply.cli.common.context import AppContext
from dbcomply.cli.common.exits import EXIT_INPUT, die, warn_exit
from dbcomply.cli.common.options import (
    NameOpt,
    PollOpt,
    ShareOpt,
    TagOpt,
    TypeOpt,
    UseOrOpt,
    WatchOpt,
)
from dbcomply.cli.common.output import out
from dbcomply.cli.common.progress import watch_discovery
from dbcomply.core.selectors import build_selector


def envs(ctx: typer.Context):
    """
    List configured environments.
    """
    appctx: AppContext = ctx.obj
    out.environments_table(appctx.service.environments())


def discover(
    ctx: typer.Context,
    watch: bool = WatchOpt,
    poll: float = PollOpt,
):
    """
    Discover catalog assets (one environment with --env, else all).
    """
    appctx: AppContext = ctx.obj
    service = appctx.service
    env = appctx.environment(prompt=False)

    futures = service.start_discovery(env.id if env else None)
    if watch:
        names = {e.id: e.display_name for e in service.environments()}
        progress = watch_discovery(
            service.tracker, futures, poll_interval=poll, env_name_by_id=names
        )
    else:
        with out.status(f"Discovering assets in {', '.join(futures)}..."):
            for future in futures.values():
                future.result()
        progress = {e: service.tracker.get(e) for e in futures}

    out.progress_table(progress)
    failed = [e for e, p in progress.items() if p.error]
    if failed:
        die(f"Discovery failed for {', '.join(failed)} (partial results kept)")
    out.success("Discovery complete")


def status(ctx: typer.Context):
    """
    Show discovery progress per environment.
    """
    appctx: AppContext = ctx.obj
    out.progress_table(appctx.service.loading_status())


def assets(
    ctx: typer.Context,
    share: str | None = ShareOpt,
    name: str | None = NameOpt,
    tag: list[str] = TagOpt,
    asset_type: list[str] = TypeOpt,
    use_or: bool = UseOrOpt,
):
    """
    List discovered assets, optionally filtered with selectors.
    """
    appctx: AppContext = ctx.obj

    try:
        selector = build_selector(
            name=name, tags=tag, asset_types=asset_type, use_or=use_or
        )
    except ValueError as e:
        die(str(e), code=EXIT_INPUT)

    if share:
        env = appctx.environment()
        with out.status(f"Loading assets of share {share}..."):
            found = appctx.service.share_assets(env.id, share, wait=True)
    else:
        env = appctx.environment(prompt=False)
        with out.status("Loading assets..."):
            found = appctx.service.assets(env.id if env else None, wait=True)

    matched = [a for a in found if selector.matches(a)]
    if not matched:
        warn_exit("No assets found", code=0)

    out.assets_table(matched, title=f"Assets ({len(matched)})")


def shares(
    ctx: typer.Context,
    counts: bool = typer.Option(
        False, "--counts", help="Also fetch object counts of provided shares"
    ),
):
    """
    List provided shares and consumed catalogs with their compliance.
    """
    appctx: AppContext = ctx.obj
    service = appctx.service
    env = appctx.environment(prompt=False)

    with out.status("Loading shares..."):
        found = service.shares(env.id if env else None, wait=True)
    if not found:
        warn_exit("No shares found", code=0)

    object_counts = None
    if counts:
        object_counts = {}
        for env_id in sorted({s["environmentId"] for s in found}):
            names = [
                s["name"]
                for s in found
                if s["environmentId"] == env_id and s["direction"] == "provided"
            ]
            with out.status(f"Counting share objects in {env_id}..."):
                object_counts.update(service.share_asset_counts(env_id, names))

    out.shares_table(found, counts=object_counts, title=f"Shares ({len(found)})")
