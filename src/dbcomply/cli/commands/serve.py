"""Command for running the HTTP API."""

import typer
import uvicorn

from dbcomply.api.app import create_app
from dbcomply.cli.common.context import AppContext
from dbcomply.cli.common.output import out


def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
):
    """
    Serve the compliance HTTP API.
    """
    appctx: AppContext = ctx.obj
    out.info(f"Serving dbcomply API on http://{host}:{port}")
    uvicorn.run(create_app(appctx.service), host=host, port=port, log_config=None)
