"""Commands for compliance reports and cache control."""

import typer

from dbcomply.cli.common.context import AppContext
from dbcomply.cli.common.exits import EXIT_INPUT, die, exit_from_exc, ok_exit, warn_exit
from dbcomply.cli.common.options import NameOpt, TagOpt, TypeOpt, UseOrOpt
from dbcomply.cli.common.output import out
from dbcomply.core.catalog import InvalidAssetIdError, parse_asset_id
from dbcomply.core.environments import UnknownEnvironmentError
from dbcomply.core.selectors import build_selector
from dbcomply.core.validation import AssetNotFoundError


def _discovered(appctx: AppContext) -> None:
    """Block until discovery of the selected (or every) environment is done."""
    env = appctx.environment(prompt=False)
    with out.status("Discovering assets..."):
        appctx.service.assets(env.id if env else None, wait=True)


def overview(ctx: typer.Context):
    """
    Show overall and per-environment compliance.
    """
    appctx: AppContext = ctx.obj
    _discovered(appctx)
    out.overview(appctx.service.overview())


def catalogs(ctx: typer.Context):
    """
    Show compliance per catalog (share).
    """
    appctx: AppContext = ctx.obj
    _discovered(appctx)
    report = appctx.service.catalog_compliance()
    if not report["catalogCompliance"]:
        warn_exit("No assets discovered", code=0)
    out.catalogs_table(report)


def violations(ctx: typer.Context):
    """
    List assets violating agreement requirements.
    """
    appctx: AppContext = ctx.obj
    if not appctx.service.agreements.list():
        ok_exit(appctx.service.violations()["note"])
    _discovered(appctx)
    report = appctx.service.violations()
    if not report["violations"]:
        out.success(f"All {report['totalAssets']} assets are compliant")
        return
    out.violations_table(report["violations"])
    out.kv(
        {
            "Assets": report["totalAssets"],
            "Compliant": report["compliantAssets"],
            "Violating": report["violatingAssets"],
        }
    )


def validate_all(ctx: typer.Context):
    """
    Validate every discovered asset.
    """
    appctx: AppContext = ctx.obj
    _discovered(appctx)
    report = appctx.service.validate_all()
    failing = [r for r in report["results"] if not r["compliant"]]
    if failing:
        out.violations_table(failing)
    summary = report["summary"]
    out.kv(
        {
            "Validated": summary["total"],
            "Compliant": summary["compliant"],
            "Non-compliant": summary["nonCompliant"],
        }
    )


def validate(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset id: env:catalog.schema.name"),
):
    """
    Validate one asset.
    """
    appctx: AppContext = ctx.obj
    service = appctx.service
    try:
        env_id, _ = parse_asset_id(asset_id)
        with out.status(f"Discovering assets in {env_id}..."):
            service.assets(env_id, wait=True)
        result = service.validate(asset_id)
    except InvalidAssetIdError as e:
        die(str(e), code=EXIT_INPUT)
    except UnknownEnvironmentError as e:
        exit_from_exc(e, message=str(e), code=EXIT_INPUT)
    except AssetNotFoundError as e:
        exit_from_exc(e, message=str(e))
    out.validation(result)


def clear_cache(ctx: typer.Context):
    """
    Clear validation and catalog caches.
    """
    appctx: AppContext = ctx.obj
    removed = appctx.service.clear_cache()
    out.success(f"Caches cleared ({removed} entries)")


def affected(
    ctx: typer.Context,
    share: str = typer.Argument(..., help="Share (catalog) name"),
    schema: str | None = typer.Option(None, "--schema", help="Limit to one schema"),
    table: str | None = typer.Option(None, "--table", help="Limit to one object"),
    name: str | None = NameOpt,
    tag: list[str] = TagOpt,
    asset_type: list[str] = TypeOpt,
    use_or: bool = UseOrOpt,
):
    """
    Preview the assets a tag enforcement on this scope would touch.
    """
    appctx: AppContext = ctx.obj
    try:
        selector = build_selector(
            name=name, tags=tag, asset_types=asset_type, use_or=use_or
        )
    except ValueError as e:
        die(str(e), code=EXIT_INPUT)

    env = appctx.environment()
    with out.status("Loading assets..."):
        found = appctx.service.affected_assets(
            env.id, share, schema, table, selector=selector
        )
    if not found:
        warn_exit("No assets in scope", code=0)
    out.assets_table(found, title=f"Affected assets ({len(found)})")
