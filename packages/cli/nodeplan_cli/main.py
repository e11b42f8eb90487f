import typer

from nodeplan_cli import __version__
from nodeplan_cli.commands.cache_cmd import cache_app
from nodeplan_cli.commands.cost import cost
from nodeplan_cli.commands.quota_cmd import quota
from nodeplan_cli.commands.regions_cmd import regions
from nodeplan_cli.commands.resolve_cmd import resolve
from nodeplan_cli.utils import setup_logging


def _version_callback(value: bool) -> None:
    if value:
        print(f"nodeplan {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="nodeplan",
    help="Resolve blockchain node topologies onto Azure and estimate what they cost",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version", callback=_version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json_output
    setup_logging(verbose)


app.command()(regions)
app.command()(resolve)
app.command()(cost)
app.command()(quota)
app.add_typer(cache_app, name="cache")
