from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer
from nodeplan.quota import QuotaEvaluation, evaluate_quota, load_usages
from nodeplan.resolver import resolve_topology
from rich.console import Console
from rich.table import Table

from nodeplan_cli.commands.resolve_cmd import (
    AllRegions,
    ArchiveNodes,
    BootNodes,
    DeploymentDefault,
    DeploymentMap,
    Distribution,
    Exclude,
    HubRegion,
    Members,
    NetworkMode,
    Placement,
    Region,
    RegionClass,
    Regions,
    RpcDefaultType,
    RpcNodes,
    RpcNodeTypes,
    ScaleMap,
    SizeMap,
    Tags,
    TopologyPath,
    Validators,
    build_request,
)
from nodeplan_cli.utils import handle_error, json_mode

console = Console()


def _print_evaluation(evaluation: QuotaEvaluation) -> None:
    if evaluation.sufficient:
        console.print(f"[green]{evaluation.summary}[/green]")
        return

    table = Table(title="Quota Shortages")
    table.add_column("Region", style="cyan")
    table.add_column("Namespace")
    table.add_column("Required", justify="right")
    table.add_column("Deficit", justify="right", style="red")
    for s in evaluation.shortages:
        table.add_row(s.region, s.namespace, f"{s.required:g}", f"{s.deficit:g}")
    console.print(table)
    console.print(f"[yellow]{evaluation.summary}[/yellow]")


def quota(
    ctx: typer.Context,
    usages: Annotated[
        Path,
        typer.Option("--usages", help="JSON or YAML file of ARM usages, {region: {compute|network|storage: body}}", exists=True),
    ],
    validators: Validators = 4,
    boot_nodes: BootNodes = 0,
    rpc_nodes: RpcNodes = 1,
    archive_nodes: ArchiveNodes = 0,
    members: Members = None,
    rpc_node_types: RpcNodeTypes = None,
    rpc_type: RpcDefaultType = "standard",
    regions: Regions = None,
    region: Region = None,
    all_regions: AllRegions = False,
    region_class: RegionClass = "commercial",
    exclude: Exclude = None,
    deployment: DeploymentDefault = "aks",
    placement: Placement = None,
    distribution: Distribution = None,
    deployment_map: DeploymentMap = None,
    topology_file: TopologyPath = None,
    sizes: SizeMap = None,
    scale: ScaleMap = None,
    tags: Tags = None,
    network_mode: NetworkMode = None,
    hub_region: HubRegion = None,
) -> None:
    """Check a resolved topology against regional quota usages."""
    options = dict(locals())
    options.pop("ctx")
    options.pop("usages")
    try:
        request = build_request(**options)
        topology = resolve_topology(request)
        evaluation = evaluate_quota(topology, load_usages(usages))
    except (typer.BadParameter, typer.Exit):
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if json_mode(ctx):
        print(json.dumps(asdict(evaluation)))
    else:
        _print_evaluation(evaluation)
    if not evaluation.sufficient:
        raise typer.Exit(1)
