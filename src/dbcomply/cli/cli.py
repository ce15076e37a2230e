"""CLI application for catalog asset compliance."""

import typer

from dbcomply.cli.commands import compliance, discovery, serve
from dbcomply.cli.common.context import build_context
from dbcomply.cli.common.options import AgreementsOpt, ConfigOpt, EnvOpt, LogLevelOpt
from dbcomply.infra.logging import setup_logging

app = typer.Typer(
    help="dbcomply - catalog asset discovery and agreement compliance",
    no_args_is_help=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    agreements: str | None = AgreementsOpt,
    config: str | None = ConfigOpt,
    env: str | None = EnvOpt,
    log_level: str = LogLevelOpt,
):
    """Build the shared compliance context once per invocation."""
    setup_logging("dbcomply-cli", level=log_level)
    ctx.obj = build_context(agreements=agreements, config=config, env=env)
    ctx.call_on_close(ctx.obj.service.shutdown)


app.command("envs")(discovery.envs)
app.command("discover")(discovery.discover)
app.command("status")(discovery.status)
app.command("assets")(discovery.assets)
app.command("shares")(discovery.shares)
app.command("overview")(compliance.overview)
app.command("catalogs")(compliance.catalogs)
app.command("violations")(compliance.violations)
app.command("validate-all")(compliance.validate_all)
app.command("validate")(compliance.validate)
app.command("clear-cache")(compliance.clear_cache)
app.command("affected")(compliance.affected)
app.command("serve")(serve.serve)


if __name__ == "__main__":
    app()
