from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from nodeplan.plan import ResolvedTopology, ScaleRange
from nodeplan.resolver import TopologyRequest, resolve_topology
from rich.console import Console
from rich.table import Table

from nodeplan_cli.utils import handle_error, json_mode, parse_csv, parse_key_values

console = Console()

# Options shared by `resolve` and `cost`
Validators = Annotated[int, typer.Option("--validators", help="Validator replicas")]
BootNodes = Annotated[int, typer.Option("--boot-nodes", help="Boot node count")]
RpcNodes = Annotated[int, typer.Option("--rpc-nodes", help="Generic RPC node count")]
ArchiveNodes = Annotated[int, typer.Option("--archive-nodes", help="Archive node count")]
Members = Annotated[
    str | None,
    typer.Option("--members", help="Member node counts, e.g. admins=1,permissioned=2,private=0,public=1"),
]
RpcNodeTypes = Annotated[
    str | None, typer.Option("--rpc-node-types", help="RPC sub-roles, e.g. 'rpc-archive:archive:2;rpc-std:standard:3'")
]
RpcDefaultType = Annotated[str, typer.Option("--rpc-type", help="RPC type for the generic rpcNodes role")]
Regions = Annotated[str | None, typer.Option("--regions", help="Comma-separated Azure regions")]
Region = Annotated[str | None, typer.Option("--region", help="Single Azure region (legacy)")]
AllRegions = Annotated[bool, typer.Option("--all-regions", help="Use every region of --region-class")]
RegionClass = Annotated[str, typer.Option("--region-class", help="commercial, gov, china or dod")]
Exclude = Annotated[
    str | None, typer.Option("--exclude", help="Regions, country codes or country names to exclude (comma-separated)")
]
DeploymentDefault = Annotated[str, typer.Option("--deployment", help="Default deployment type: aks, aca, vm, vmss")]
Placement = Annotated[
    str | None, typer.Option("--placement", help="Placement DSL, e.g. 'validators:aks:eastus+westus2;rpcNodes:aca:eastus'")
]
Distribution = Annotated[
    str | None, typer.Option("--distribution", help="Regional distribution, e.g. 'eastus:validators=3+rpc=2,westus2:validators=1'")
]
DeploymentMap = Annotated[str | None, typer.Option("--deployment-map", help="Per-role deployment types, e.g. 'rpc=aca,validators=aks'")]
TopologyPath = Annotated[Path | None, typer.Option("--topology-file", help="JSON or YAML topology file", exists=True)]
SizeMap = Annotated[str | None, typer.Option("--sizes", help="VM sizes per role, e.g. validators=Standard_D8s_v5,default=Standard_D4s_v5")]
ScaleMap = Annotated[str | None, typer.Option("--scale", help="Autoscale ranges per role, e.g. rpcNodes=2:6")]
Tags = Annotated[str | None, typer.Option("--tags", help="Resource tags, e.g. env=dev,team=chain")]
NetworkMode = Annotated[str | None, typer.Option("--network-mode", help="flat, hub-spoke or isolated")]
HubRegion = Annotated[str | None, typer.Option("--hub-region", help="Hub region for hub-spoke networking")]

_MEMBER_FIELDS = {
    "admins": "member_admins",
    "permissioned": "member_permissioned",
    "private": "member_private",
    "public": "member_public",
}


def _scale_map(raw: str | None) -> dict[str, ScaleRange]:
    result: dict[str, ScaleRange] = {}
    for role, value in parse_key_values(raw, "--scale").items():
        lo, sep, hi = value.partition(":")
        if not sep or not lo.isdigit() or not hi.isdigit():
            raise typer.BadParameter(f"expected role=min:max, got {role}={value}", param_hint="--scale")
        result[role] = ScaleRange(min=int(lo), max=int(hi))
    return result


def build_request(
    validators: int = 4,
    boot_nodes: int = 0,
    rpc_nodes: int = 1,
    archive_nodes: int = 0,
    members: str | None = None,
    rpc_node_types: str | None = None,
    rpc_type: str = "standard",
    regions: str | None = None,
    region: str | None = None,
    all_regions: bool = False,
    region_class: str = "commercial",
    exclude: str | None = None,
    deployment: str = "aks",
    placement: str | None = None,
    distribution: str | None = None,
    deployment_map: str | None = None,
    topology_file: Path | None = None,
    sizes: str | None = None,
    scale: str | None = None,
    tags: str | None = None,
    network_mode: str | None = None,
    hub_region: str | None = None,
) -> TopologyRequest:
    """Translate raw CLI option values into a validated TopologyRequest."""
    member_counts: dict[str, int] = {}
    for kind, count in parse_key_values(members, "--members").items():
        field = _MEMBER_FIELDS.get(kind)
        if field is None or not count.isdigit():
            raise typer.BadParameter(f"unknown member kind or count: {kind}={count}", param_hint="--members")
        member_counts[field] = int(count)

    return TopologyRequest(
        validators=validators,
        boot_nodes=boot_nodes,
        rpc_nodes=rpc_nodes,
        archive_nodes=archive_nodes,
        rpc_node_types=rpc_node_types,
        rpc_default_type=rpc_type,
        regions=parse_csv(regions),
        region=region,
        all_regions=all_regions,
        region_class=region_class,
        region_exclude=parse_csv(exclude),
        deployment_default=deployment,
        node_placement=placement,
        regional_distribution=distribution,
        deployment_map=deployment_map,
        topology_file=topology_file,
        size_map=parse_key_values(sizes, "--sizes"),
        scale_map=_scale_map(scale),
        tags=parse_key_values(tags, "--tags") or None,
        network_mode=network_mode,
        hub_region=hub_region,
        **member_counts,
    )


def print_topology(topology: ResolvedTopology) -> None:
    table = Table(title=f"Resolved Topology — {', '.join(topology.regions)}")
    table.add_column("Role", style="cyan")
    table.add_column("Deployment")
    table.add_column("Regions")
    table.add_column("Count", justify="right")
    table.add_column("Size")
    table.add_column("RPC Type", style="dim")

    for name, p in topology.placements.items():
        table.add_row(
            name,
            p.deployment_type,
            "+".join(p.regions),
            str(p.count),
            p.vm_size or "-",
            p.rpc_type or "-",
        )

    console.print(table)
    if topology.network:
        hub = f" (hub: {topology.network.hub_region})" if topology.network.hub_region else ""
        console.print(f"[dim]Network: {topology.network.mode}{hub} {topology.network.vnet_cidr or ''}[/dim]")


def resolve(
    ctx: typer.Context,
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
    """Resolve role counts and placement inputs into a per-role, per-region plan."""
    options = dict(locals())
    options.pop("ctx")
    try:
        request = build_request(**options)
        topology = resolve_topology(request)
    except (typer.BadParameter, typer.Exit):
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if json_mode(ctx):
        print(json.dumps({"topology": topology.model_dump(exclude_none=True)}, default=str))
        return

    print_topology(topology)
