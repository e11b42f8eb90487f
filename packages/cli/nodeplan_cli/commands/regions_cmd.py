from __future__ import annotations

import json
from typing import Annotated

import typer
from nodeplan.regions import get_catalog
from rich.console import Console
from rich.table import Table

from nodeplan_cli.utils import handle_error, json_mode, parse_csv

console = Console()


def regions(
    ctx: typer.Context,
    classification: Annotated[str | None, typer.Option("--class", help="commercial, gov, china or dod")] = None,
    country: Annotated[str | None, typer.Option(help="Country code (US) or country name (Germany)")] = None,
    exclude: Annotated[str | None, typer.Option(help="Regions, country codes or names to leave out")] = None,
    rpc_types: Annotated[bool, typer.Option("--rpc-types", help="List RPC node presets instead of regions")] = False,
) -> None:
    """List Azure regions from the bundled catalog."""
    try:
        catalog = get_catalog()

        if rpc_types:
            presets = [catalog.rpc_type(name).to_dict() for name in catalog.rpc_types()]
            if json_mode(ctx):
                print(json.dumps({"rpc_types": presets}))
                return
            table = Table(title="RPC Node Types")
            table.add_column("Type", style="cyan")
            table.add_column("Description")
            table.add_column("Capabilities", style="dim")
            for p in presets:
                table.add_row(p["key"], p["description"], ", ".join(p["capabilities"]))
            console.print(table)
            return

        infos = catalog.all()
        if classification:
            infos = [r for r in infos if r.classification == classification]
        if country:
            code_matches = set(catalog.by_country_code(country))
            name_matches = set(catalog.by_country(country))
            infos = [r for r in infos if r.name in code_matches or r.name in name_matches]
        if exclude:
            excluded = set(catalog.resolve_exclusions(parse_csv(exclude)))
            infos = [r for r in infos if r.name not in excluded]
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if json_mode(ctx):
        print(json.dumps({"regions": [r.model_dump() for r in infos]}))
        return

    if not infos:
        console.print("[yellow]No regions match.[/yellow]")
        return

    table = Table(title=f"Azure Regions ({len(infos)})")
    table.add_column("Name", style="cyan")
    table.add_column("Display Name")
    table.add_column("Country")
    table.add_column("Class")
    table.add_column("Geography")
    table.add_column("AZs", justify="right")
    for r in infos:
        table.add_row(r.name, r.display_name, f"{r.country} ({r.country_code})", r.classification, r.geography, str(r.availability_zones))
    console.print(table)
