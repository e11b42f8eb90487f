"""Costing engine — expands a deployment context into Azure resources and prices them.

Each region gets compute resources for the role groups placed there
(dispatched by deployment type) plus shared networking/monitoring
resources. Unit prices come from the PricingClient when live pricing is
enabled, otherwise from the static estimate table.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Literal

from pydantic import BaseModel, Field

from nodeplan.config import DEFAULT_STRATEGIES, CostingOptions
from nodeplan.errors import CostAnalysisError
from nodeplan.plan import (
    CostAnalysisReport,
    DeploymentType,
    PeriodCost,
    Recommendation,
    ResolvedTopology,
    ResourceConfig,
    ResourceCost,
    RolePlacement,
    StrategyAnalysis,
    StrategyComparison,
)
from nodeplan.pricing.client import PricingClient
from nodeplan.pricing.estimates import estimate_price

log = logging.getLogger(__name__)

RoleGroup = Literal["validators", "rpc", "boot", "archive", "members"]
ROLE_GROUPS: tuple[str, ...] = ("validators", "rpc", "boot", "archive", "members")

PERIOD_MULTIPLIERS: dict[str, float] = {
    "minute": 1 / 60,
    "hour": 1,
    "day": 24,
    "3-day": 72,
    "week": 168,
    "month": 720,
    "quarter": 2160,
    "annual": 8760,
}

HOURS_PER_MONTH = 720
MULTI_REGION_DEFAULT = ["eastus", "westus2", "centralus"]

# size_map keys checked per group, most specific first
_SIZE_KEYS: dict[str, tuple[str, ...]] = {
    "validators": ("validators",),
    "rpc": ("rpc", "rpcNodes"),
    "boot": ("boot", "bootNodes"),
    "archive": ("archive", "archiveNodes"),
    "members": ("members",),
}

_NODE_POOL_DEFAULTS = {
    "validators": {"sku": "Standard_D4s_v5", "diskSize": 128},
    "default": {"sku": "Standard_D2s_v5", "diskSize": 64},
}

_CONTAINER_PRESETS = {
    "validators": {"cpu": 2, "memory": "4Gi", "storage": "32Gi"},
    "default": {"cpu": 1, "memory": "2Gi", "storage": "16Gi"},
}

_VM_DISKS = {"osDiskSize": 128, "osDiskType": "Premium_LRS", "dataDiskSize": 256, "dataDiskType": "Premium_LRS"}

_TRADEOFFS: dict[str, list[str]] = {
    "single-region-vm": ["Lower cost", "Manual scaling", "Single point of failure"],
    "single-region-aks": ["Moderate cost", "Auto-scaling", "Kubernetes complexity"],
    "multi-region-aks": ["Higher cost", "High availability", "Complex networking"],
    "multi-region-vm": ["Moderate cost", "Geographic distribution", "Manual coordination"],
    "hybrid-aks-aca": ["Flexible scaling", "Mixed complexity", "Service coordination"],
}
_DEFAULT_TRADEOFFS = ["Strategy-specific considerations apply"]
_HA_TRADEOFFS = ["Higher cost", "Better disaster recovery", "Lower latency globally"]


def role_group(placement: RolePlacement) -> str:
    if placement.role == "validators":
        return "validators"
    if placement.is_rpc:
        return "rpc"
    if placement.role == "bootNodes":
        return "boot"
    if placement.role == "archiveNodes":
        return "archive"
    # member kinds and any other free-form compute role
    return "members"


def burn_rate(hourly_cost: float, period: str) -> float:
    return hourly_cost * PERIOD_MULTIPLIERS[period]


def region_share(count: int, regions: list[str], region: str) -> int:
    """Instances of a multi-region placement that land in ``region``.

    The count is spread evenly in region order, earlier regions taking the
    remainder, so per-region shares always add up to the placement total.
    """
    if region not in regions:
        return 0
    base, extra = divmod(count, len(regions))
    return base + (1 if regions.index(region) < extra else 0)


class DeploymentContext(BaseModel):
    """What the costing engine needs to know about one deployment."""

    regions: list[str]
    placements: dict[str, RolePlacement] = Field(default_factory=dict)
    deployment_default: DeploymentType = "aks"
    size_map: dict[str, str] = Field(default_factory=dict)
    # per role group, replaces deployment_default for that group
    deployment_overrides: dict[RoleGroup, DeploymentType] = Field(default_factory=dict)
    monitoring: str | None = None
    network_name: str = "azure-network"

    @classmethod
    def from_topology(
        cls,
        topology: ResolvedTopology,
        deployment_default: DeploymentType | None = None,
        size_map: dict[str, str] | None = None,
        monitoring: str | None = None,
        network_name: str = "azure-network",
    ) -> DeploymentContext:
        """Build a context from a resolved topology.

        Without an explicit default, the validators' deployment type (or
        the first placement's) is used. Groups whose placements all agree
        on a different type get a per-group override.
        """
        placements = dict(topology.placements)
        if deployment_default is None:
            lead = placements.get("validators") or next(iter(placements.values()), None)
            deployment_default = lead.deployment_type if lead else "aks"

        group_types: dict[str, set[str]] = {}
        for placement in placements.values():
            group_types.setdefault(role_group(placement), set()).add(placement.deployment_type)
        overrides = {}
        for group, types in group_types.items():
            if len(types) != 1:
                log.debug(
                    "Role group %s mixes deployment types %s; using default %s",
                    group,
                    ", ".join(sorted(types)),
                    deployment_default,
                )
                continue
            dtype = next(iter(types))
            if dtype != deployment_default:
                overrides[group] = dtype

        sizes = dict(size_map or {})
        for name, placement in placements.items():
            if placement.vm_size and name not in sizes:
                sizes[name] = placement.vm_size

        return cls(
            regions=list(topology.regions),
            placements=placements,
            deployment_default=deployment_default,
            size_map=sizes,
            deployment_overrides=overrides,
            monitoring=monitoring,
            network_name=network_name,
        )

    def group_counts(self, region: str) -> dict[str, int]:
        counts = dict.fromkeys(ROLE_GROUPS, 0)
        for placement in self.placements.values():
            counts[role_group(placement)] += region_share(placement.count, placement.regions, region)
        return counts

    def deployment_regions(self) -> list[str]:
        """Context regions followed by any placement region outside them."""
        regions = list(self.regions)
        for placement in self.placements.values():
            regions.extend(r for r in placement.regions if r not in regions)
        return regions

    def deployment_for(self, group: str) -> str:
        return self.deployment_overrides.get(group, self.deployment_default)

    def size_for(self, group: str, default: str) -> str:
        for key in _SIZE_KEYS.get(group, (group,)):
            if key in self.size_map:
                return self.size_map[key]
        return default

    def strategy_name(self) -> str:
        """Display name, e.g. "Single Region AKS" or "3 Regions VM+ACA"."""
        region_text = "Single Region" if len(self.regions) == 1 else f"{len(self.regions)} Regions"
        types = [self.deployment_default]
        types += sorted({t for t in self.deployment_overrides.values() if t != self.deployment_default})
        return f"{region_text} {'+'.join(t.upper() for t in types)}"


class CostingEngine:
    def __init__(self, options: CostingOptions | None = None, pricing_client: PricingClient | None = None):
        self.options = options or CostingOptions()
        self.pricing_client = pricing_client
        if self.options.use_live_pricing and self.pricing_client is None:
            self.pricing_client = PricingClient()

    def analyze(self, context: DeploymentContext) -> CostAnalysisReport:
        """Price every resource in the context and project burn rates."""
        if not context.regions:
            raise CostAnalysisError("Azure regions required for cost analysis")

        costs = self.resource_costs(context)
        hourly = sum(c.total_cost for c in costs)
        currency = self.options.currency

        comparison = None
        if self.options.enable_comparison:
            comparison = self.compare_strategies(context, self.options.comparison_strategies)

        return CostAnalysisReport(
            network_name=context.network_name,
            region=self.options.pricing_region,
            deployment_strategy=context.strategy_name(),
            burn_rates=self.burn_rates(hourly),
            resource_breakdown=costs if self.options.include_resource_breakdown else [],
            total_hourly_cost=hourly,
            total_daily_cost=hourly * 24,
            total_monthly_cost=hourly * HOURS_PER_MONTH,
            total_annual_cost=hourly * 8760,
            currency=currency,
            comparison=comparison,
        )

    def burn_rates(self, hourly: float) -> list[PeriodCost]:
        return [
            PeriodCost(period=p, cost=burn_rate(hourly, p), currency=self.options.currency) for p in self.options.periods
        ]

    # Resource expansion

    def extract_resources(self, context: DeploymentContext) -> list[ResourceConfig]:
        configs: list[ResourceConfig] = []
        regions = context.deployment_regions()
        for region in regions:
            counts = context.group_counts(region)
            by_type: dict[str, list[tuple[str, int]]] = {}
            for group in ROLE_GROUPS:
                if counts[group] > 0:
                    by_type.setdefault(context.deployment_for(group), []).append((group, counts[group]))

            if "aks" in by_type:
                configs.extend(self._aks_resources(region, by_type["aks"], context))
            if "aca" in by_type:
                configs.extend(self._aca_resources(region, by_type["aca"]))
            for dtype in ("vm", "vmss"):
                if dtype in by_type:
                    configs.append(self._vm_resource(region, dtype, by_type[dtype], context))

            configs.extend(self._shared_resources(region, counts["rpc"], context))

        log.debug("Expanded %d region(s) into %d resources", len(regions), len(configs))
        return configs

    def _aks_resources(
        self, region: str, groups: list[tuple[str, int]], context: DeploymentContext
    ) -> list[ResourceConfig]:
        configs = [
            ResourceConfig(
                resource_type="aks-cluster",
                name=f"main-aks-{region}",
                region=region,
                sku="Standard",
                quantity=1,
                properties={"version": "1.28", "networkPlugin": "kubenet"},
            )
        ]
        for group, count in groups:
            preset = _NODE_POOL_DEFAULTS.get(group, _NODE_POOL_DEFAULTS["default"])
            configs.append(
                ResourceConfig(
                    resource_type="aks-node-pool",
                    name=f"{group}-{region}",
                    region=region,
                    sku=context.size_for(group, preset["sku"]),
                    quantity=count,
                    properties={"diskSize": preset["diskSize"], "osDiskType": "Premium_LRS"},
                )
            )
        return configs

    def _aca_resources(self, region: str, groups: list[tuple[str, int]]) -> list[ResourceConfig]:
        configs = [
            ResourceConfig(resource_type="container-app", name=f"env-{region}", region=region, sku="Consumption", quantity=1)
        ]
        for group, count in groups:
            preset = _CONTAINER_PRESETS.get(group, _CONTAINER_PRESETS["default"])
            configs.append(
                ResourceConfig(
                    resource_type="container-app",
                    name=f"{group}-{region}",
                    region=region,
                    sku="Consumption",
                    quantity=count,
                    properties=dict(preset),
                )
            )
        return configs

    def _vm_resource(
        self, region: str, dtype: str, groups: list[tuple[str, int]], context: DeploymentContext
    ) -> ResourceConfig:
        scale_set = dtype == "vmss"
        return ResourceConfig(
            resource_type="virtual-machine-scale-set" if scale_set else "virtual-machine",
            name=f"{'vmss' if scale_set else 'vms'}-{region}",
            region=region,
            sku=context.size_map.get("default", "Standard_D4s_v5"),
            quantity=sum(count for _, count in groups),
            properties=dict(_VM_DISKS),
        )

    def _shared_resources(self, region: str, rpc_count: int, context: DeploymentContext) -> list[ResourceConfig]:
        configs = [ResourceConfig(resource_type="virtual-network", name=f"vnet-{region}", region=region, sku="Standard", quantity=1)]
        if rpc_count > 0:
            configs.append(ResourceConfig(resource_type="load-balancer", name=f"lb-{region}", region=region, sku="Standard", quantity=1))
            configs.append(ResourceConfig(resource_type="public-ip", name=f"ip-{region}", region=region, sku="Standard", quantity=1))
        if context.monitoring and context.monitoring != "loki":
            configs.append(
                ResourceConfig(
                    resource_type="log-analytics",
                    name=f"logs-{region}",
                    region=region,
                    sku="PerGB2018",
                    quantity=1,
                    properties={"retentionDays": 30},
                )
            )
        configs.append(
            ResourceConfig(resource_type="application-insights", name=f"insights-{region}", region=region, sku="Standard", quantity=1)
        )
        configs.append(ResourceConfig(resource_type="storage-account", name=f"st{region}", region=region, sku="Standard_LRS", quantity=1))
        return configs

    # Pricing

    def resource_costs(self, context: DeploymentContext) -> list[ResourceCost]:
        return [self.price_resource(config) for config in self.extract_resources(context)]

    def price_resource(self, config: ResourceConfig) -> ResourceCost:
        unit, source = self._unit_cost(config)

        factor = self.options.discount_factors.get(config.resource_type)
        applied: float | None = None
        if factor is not None and 0 < factor <= 1:
            unit *= factor
            applied = factor
        elif factor is not None:
            log.debug("Ignoring discount factor %s for %s: outside (0, 1]", factor, config.resource_type)

        return ResourceCost(
            resource_type=config.resource_type,
            name=config.name,
            region=config.region,
            sku=config.sku,
            quantity=config.quantity,
            unit_cost=unit,
            total_cost=unit * config.quantity,
            currency=self.options.currency,
            source=source,
            discount_factor=applied,
        )

    def _unit_cost(self, config: ResourceConfig) -> tuple[float, str]:
        if self.options.use_live_pricing and self.pricing_client is not None:
            lookup = self.pricing_client.price_for(
                config.resource_type, config.sku, config.region, self.options.currency, config.properties
            )
            return lookup.price_per_hour, lookup.source
        return estimate_price(config.resource_type, config.sku, config.properties), "estimated"

    # Strategy comparison

    def compare_strategies(self, base: DeploymentContext, strategies: list[str] | None = None) -> StrategyComparison:
        """Cost the base context as "current" plus one alternate per strategy name."""
        names = strategies if strategies is not None else DEFAULT_STRATEGIES
        analyses = [self._analyze_strategy("current", base)]
        for name in names:
            analyses.append(self._analyze_strategy(name, alternative_context(base, name)))
        return StrategyComparison(strategies=analyses, recommendations=recommend(analyses))

    def _analyze_strategy(self, name: str, context: DeploymentContext) -> StrategyAnalysis:
        costs = self.resource_costs(context)
        monthly = sum(c.total_cost for c in costs) * HOURS_PER_MONTH
        return StrategyAnalysis(
            name=name,
            description=context.strategy_name(),
            monthly_cost=monthly,
            annual_cost=monthly * 12,
            regions=list(context.regions),
            resources=costs,
        )


def alternative_context(base: DeploymentContext, strategy: str) -> DeploymentContext:
    """Derive the context a named strategy would deploy; unknown names copy the base."""
    if strategy.startswith("single-region-"):
        regions = base.regions[:1]
    elif strategy.startswith("multi-region-"):
        regions = list(base.regions) if len(base.regions) > 1 else list(MULTI_REGION_DEFAULT)
    elif strategy == "hybrid-aks-aca":
        return base.model_copy(update={"deployment_default": "aks", "deployment_overrides": {"rpc": "aca"}}, deep=True)
    else:
        return base.model_copy(deep=True)

    dtype = strategy.rsplit("-", 1)[-1]
    if dtype not in ("aks", "aca", "vm", "vmss"):
        return base.model_copy(deep=True)

    placements = {name: p.model_copy(update={"regions": list(regions)}) for name, p in base.placements.items()}
    return base.model_copy(
        update={
            "regions": regions,
            "placements": placements,
            "deployment_default": dtype,
            "deployment_overrides": {},
        },
        deep=True,
    )


def recommend(analyses: list[StrategyAnalysis]) -> list[Recommendation]:
    """Cheapest-alternative and high-availability recommendations; analyses[0] is the baseline."""
    if not analyses:
        return []
    base_cost = analyses[0].monthly_cost
    recs: list[Recommendation] = []

    cheapest = analyses[0]
    for analysis in analyses[1:]:
        if analysis.monthly_cost < cheapest.monthly_cost:
            cheapest = analysis
    if cheapest.name != "current":
        savings = base_cost - cheapest.monthly_cost
        pct = savings / base_cost * 100 if base_cost > 0 else 0.0
        recs.append(
            Recommendation(
                strategy=cheapest.name,
                reason=f"Lowest cost option - saves ${savings:.2f}/month ({pct:.1f}%)",
                savings=savings,
                savings_percent=round(pct, 1),
                tradeoffs=list(_TRADEOFFS.get(cheapest.name, _DEFAULT_TRADEOFFS)),
            )
        )

    multi = next((a for a in analyses if "multi-region" in a.name), None)
    if multi and multi.name != "current":
        extra = multi.monthly_cost - base_cost
        pct = -extra / base_cost * 100 if base_cost > 0 else 0.0
        recs.append(
            Recommendation(
                strategy=multi.name,
                reason=f"High availability across regions (+${extra:.2f}/month)",
                savings=-extra,
                savings_percent=round(pct, 1),
                tradeoffs=list(_HA_TRADEOFFS),
            )
        )
    return recs


def summarize_sources(costs: list[ResourceCost]) -> dict[str, int]:
    """How many line items were priced from each source (live/cached/estimated)."""
    return dict(Counter(c.source for c in costs))


__all__ = [
    "CostingEngine",
    "DeploymentContext",
    "PERIOD_MULTIPLIERS",
    "alternative_context",
    "burn_rate",
    "recommend",
    "summarize_sources",
]
