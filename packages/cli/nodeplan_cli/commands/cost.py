from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from nodeplan.config import DEFAULT_PERIODS, DEFAULT_STRATEGIES, Settings
from nodeplan.cost import CostingEngine, DeploymentContext, summarize_sources
from nodeplan.plan import COST_PERIODS, CostAnalysisReport
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
from nodeplan_cli.utils import handle_error, json_mode, parse_csv, parse_key_values

console = Console()


def _discounts(raw: str | None) -> dict[str, float]:
    result: dict[str, float] = {}
    for resource_type, value in parse_key_values(raw, "--discount").items():
        try:
            result[resource_type] = float(value)
        except ValueError:
            raise typer.BadParameter(f"discount for {resource_type} must be a number", param_hint="--discount") from None
    return result


def _periods(raw: str | None) -> list[str]:
    periods = parse_csv(raw) or list(DEFAULT_PERIODS)
    unknown = [p for p in periods if p not in COST_PERIODS]
    if unknown:
        raise typer.BadParameter(f"unknown period(s): {', '.join(unknown)}", param_hint="--periods")
    return periods


def cost(
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
    live: Annotated[
        bool,
        typer.Option("--live/--no-live", envvar="NODEPLAN_LIVE_PRICING", help="Query the Azure Retail Prices API"),
    ] = True,
    periods: Annotated[str | None, typer.Option(help=f"Burn-rate periods, any of: {', '.join(COST_PERIODS)}")] = None,
    discount: Annotated[str | None, typer.Option(help="Discount factors per resource type, e.g. aks-node-pool=0.7")] = None,
    compare: Annotated[bool, typer.Option("--compare/--no-compare", help="Compare alternative strategies")] = True,
    strategies: Annotated[str | None, typer.Option(help="Comma-separated strategies to compare")] = None,
    breakdown: Annotated[bool, typer.Option("--breakdown/--no-breakdown", help="Include per-resource costs")] = True,
    monitoring: Annotated[str | None, typer.Option(help="Monitoring stack; anything but 'loki' adds Log Analytics")] = None,
    network_name: Annotated[str, typer.Option(help="Network name shown in the report")] = "azure-network",
    cache_file: Annotated[Path | None, typer.Option(help="Persistent pricing cache file")] = None,
    no_cache: Annotated[bool, typer.Option("--no-cache", help="Disable the persistent pricing cache")] = False,
) -> None:
    """Estimate the Azure operating cost of a resolved topology."""
    try:
        request = build_request(
            validators=validators,
            boot_nodes=boot_nodes,
            rpc_nodes=rpc_nodes,
            archive_nodes=archive_nodes,
            members=members,
            rpc_node_types=rpc_node_types,
            rpc_type=rpc_type,
            regions=regions,
            region=region,
            all_regions=all_regions,
            region_class=region_class,
            exclude=exclude,
            deployment=deployment,
            placement=placement,
            distribution=distribution,
            deployment_map=deployment_map,
            topology_file=topology_file,
            sizes=sizes,
            scale=scale,
            tags=tags,
            network_mode=network_mode,
            hub_region=hub_region,
        )

        settings = Settings.from_env()
        overrides: dict = {"live_pricing": live}
        if cache_file is not None:
            overrides["cache_file"] = cache_file
        if no_cache:
            overrides["persistent_cache"] = False
        settings = settings.model_copy(update=overrides)

        options = settings.costing_options(
            periods=_periods(periods),
            enable_comparison=compare,
            comparison_strategies=parse_csv(strategies) or list(DEFAULT_STRATEGIES),
            include_resource_breakdown=breakdown,
            discount_factors=_discounts(discount),
        )

        topology = resolve_topology(request)
        context = DeploymentContext.from_topology(
            topology,
            size_map=request.size_map,
            monitoring=monitoring,
            network_name=network_name,
        )
        client = settings.build_pricing_client() if options.use_live_pricing else None
        engine = CostingEngine(options, pricing_client=client)

        with console.status("Pricing resources..."):
            report = engine.analyze(context)
    except (typer.BadParameter, typer.Exit):
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if json_mode(ctx):
        print(report.to_json(indent=None))
        return

    _print_report(report)


def _print_report(report: CostAnalysisReport) -> None:
    cur = report.currency
    console.print(
        f"[bold]{report.network_name}[/bold] — {report.deployment_strategy} "
        f"[dim](pricing region {report.region}, {report.analysis_date:%Y-%m-%d %H:%M})[/dim]"
    )

    if report.resource_breakdown:
        table = Table(title="Resource Breakdown", show_footer=True)
        table.add_column("Resource", style="cyan")
        table.add_column("Type")
        table.add_column("Region")
        table.add_column("SKU")
        table.add_column("Qty", justify="right")
        table.add_column("Unit/hr", justify="right")
        table.add_column("Total/hr", justify="right", footer=f"{report.total_hourly_cost:,.4f} {cur}")
        table.add_column("Source", style="dim")
        for item in report.resource_breakdown:
            source = item.source if item.discount_factor is None else f"{item.source} ×{item.discount_factor:g}"
            table.add_row(
                item.name,
                item.resource_type,
                item.region,
                item.sku,
                str(item.quantity),
                f"{item.unit_cost:,.4f}",
                f"{item.total_cost:,.4f}",
                source,
            )
        console.print(table)
        counts = summarize_sources(report.resource_breakdown)
        console.print("[dim]Prices: " + ", ".join(f"{n} {src}" for src, n in sorted(counts.items())) + "[/dim]")

    rates = Table(title="Burn Rates")
    rates.add_column("Period", style="cyan")
    rates.add_column("Cost", justify="right")
    for rate in report.burn_rates:
        rates.add_row(rate.period, f"{rate.cost:,.2f} {rate.currency}")
    console.print(rates)

    if report.comparison:
        comp = Table(title="Strategy Comparison")
        comp.add_column("Strategy", style="cyan")
        comp.add_column("Description")
        comp.add_column("Regions", justify="right")
        comp.add_column("Monthly", justify="right")
        comp.add_column("Annual", justify="right")
        for s in report.comparison.strategies:
            comp.add_row(s.name, s.description, str(len(s.regions)), f"${s.monthly_cost:,.2f}", f"${s.annual_cost:,.2f}")
        console.print(comp)

        for rec in report.comparison.recommendations:
            console.print(f"  [green]→[/green] [bold]{rec.strategy}[/bold]: {rec.reason}")
            console.print(f"    [dim]{', '.join(rec.tradeoffs)}[/dim]")
