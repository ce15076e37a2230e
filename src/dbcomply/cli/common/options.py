"""Common CLI options for the CLI."""

import typer

AgreementsOpt = typer.Option(
    None,
    "--agreements",
    "-a",
    envvar="DBCOMPLY_AGREEMENTS",
    help="JSON file with agreement records",
)

ConfigOpt = typer.Option(
    None,
    "--config",
    "-c",
    envvar="DBCOMPLY_CONFIG",
    help="JSON file with environment definitions",
)

EnvOpt = typer.Option(
    None,
    "--env",
    "-e",
    help="Environment id (prompted for when several are configured)",
)

LogLevelOpt = typer.Option(
    "WARNING",
    "--log-level",
    help="Log level for diagnostic output",
)

ShareOpt = typer.Option(
    None,
    "--share",
    "-s",
    help="Only assets of this share (catalog)",
)

NameOpt = typer.Option(
    None,
    "--name",
    help="Regex on catalog.schema.name",
)

TagOpt = typer.Option(
    [],
    "--tag",
    help="Tag selector (key=value). This is reusable.",
    show_default=False,
)

TypeOpt = typer.Option(
    [],
    "--type",
    "-t",
    help="Asset type (table, volume, function, model). This is reusable.",
    show_default=False,
)

UseOrOpt = typer.Option(
    False,
    "--or",
    help="Use OR instead of AND between selectors",
)

WatchOpt = typer.Option(
    False,
    "--watch",
    "-w",
    help="Show live progress until discovery completes",
)

PollOpt = typer.Option(
    1.0,
    "--poll",
    help="Seconds between progress refreshes",
)
