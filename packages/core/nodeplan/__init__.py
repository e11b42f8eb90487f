"""nodeplan — resolve blockchain node roles into Azure deployment plans and cost them."""

from nodeplan.errors import CostAnalysisError, NodeplanError, PricingError, TopologyError
from nodeplan.plan import (
    CostAnalysisReport,
    NetworkConfig,
    PeriodCost,
    Recommendation,
    RegionInfo,
    ResolvedTopology,
    ResourceConfig,
    ResourceCost,
    RolePlacement,
    RpcCapabilitySet,
    ScaleRange,
    StrategyAnalysis,
    StrategyComparison,
)

__version__ = "0.1.0"

__all__ = [
    "CostAnalysisError",
    "CostAnalysisReport",
    "CostingEngine",
    "CostingOptions",
    "DeploymentContext",
    "NetworkConfig",
    "NodeplanError",
    "PeriodCost",
    "PricingClient",
    "PricingError",
    "Recommendation",
    "RegionCatalog",
    "RegionInfo",
    "ResolvedTopology",
    "ResourceConfig",
    "ResourceCost",
    "RolePlacement",
    "RpcCapabilitySet",
    "ScaleRange",
    "Settings",
    "StrategyAnalysis",
    "StrategyComparison",
    "TopologyError",
    "TopologyRequest",
    "get_catalog",
    "resolve_topology",
]


def __getattr__(name: str):
    # Lazy imports keep `import nodeplan` free of YAML loading and HTTP setup
    if name in ("CostingEngine", "DeploymentContext"):
        from nodeplan import cost

        return getattr(cost, name)
    if name in ("CostingOptions", "Settings"):
        from nodeplan import config

        return getattr(config, name)
    if name == "PricingClient":
        from nodeplan.pricing.client import PricingClient

        return PricingClient
    if name in ("RegionCatalog", "get_catalog"):
        from nodeplan import regions

        return getattr(regions, name)
    if name in ("TopologyRequest", "resolve_topology"):
        from nodeplan import resolver

        return getattr(resolver, name)
    raise AttributeError(f"module 'nodeplan' has no attribute {name!r}")
