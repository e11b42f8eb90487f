"""Deployment plan data model.

Everything flows through these types: the resolver turns role counts and
placement inputs into a ResolvedTopology, the costing engine expands that
into ResourceConfig line items and prices them into a CostAnalysisReport.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DeploymentType = Literal["aks", "aca", "vm", "vmss"]
Classification = Literal["commercial", "gov", "china", "dod"]
RpcNodeType = Literal["standard", "archive", "graphql", "websocket", "admin", "trace", "full"]
NetworkModeName = Literal["flat", "hub-spoke", "isolated"]
PriceSource = Literal["live", "cached", "estimated"]

ResourceType = Literal[
    "aks-cluster",
    "aks-node-pool",
    "container-app",
    "virtual-machine",
    "virtual-machine-scale-set",
    "log-analytics",
    "application-insights",
    "storage-account",
    "virtual-network",
    "load-balancer",
    "public-ip",
]

CostPeriod = Literal["minute", "hour", "day", "3-day", "week", "month", "quarter", "annual"]

DEPLOYMENT_TYPES: tuple[str, ...] = ("aks", "aca", "vm", "vmss")
RESOURCE_TYPES: tuple[str, ...] = ResourceType.__args__  # type: ignore[attr-defined]
COST_PERIODS: tuple[str, ...] = CostPeriod.__args__  # type: ignore[attr-defined]

# Fixed roles in resolution order; RPC sub-roles are free-form names.
FIXED_ROLES: tuple[str, ...] = (
    "validators",
    "bootNodes",
    "rpcNodes",
    "archiveNodes",
    "memberAdmins",
    "memberPermissioned",
    "memberPrivate",
    "memberPublic",
)
MEMBER_ROLES: tuple[str, ...] = ("memberAdmins", "memberPermissioned", "memberPrivate", "memberPublic")


class RegionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    country: str
    country_code: str
    classification: Classification
    geography: str
    availability_zones: int = 0


class RpcCapabilitySet(BaseModel):
    """API surfaces exposed by an RPC node."""

    model_config = ConfigDict(frozen=True)

    eth: bool = False
    web3: bool = False
    net: bool = False
    admin: bool = False
    debug: bool = False
    trace: bool = False
    txpool: bool = False
    personal: bool = False
    miner: bool = False
    graphql: bool = False
    websocket: bool = False
    archive: bool = False

    def enabled(self) -> list[str]:
        return [name for name, on in self.model_dump().items() if on]


class ScaleRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int = Field(ge=0)
    max: int = Field(ge=0)


class RolePlacement(BaseModel):
    """Resolved (deployment type, region set, size) for one role."""

    model_config = ConfigDict(frozen=True)

    role: str
    deployment_type: DeploymentType
    regions: list[str]
    replicas: int | None = None  # validator-style roles
    instance_count: int | None = None
    vm_size: str | None = None
    node_size: str | None = None
    scale: ScaleRange | None = None
    rpc_type: RpcNodeType | None = None
    capabilities: RpcCapabilitySet | None = None

    @field_validator("regions")
    @classmethod
    def validate_regions(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("placement must target at least one region")
        return v

    @property
    def count(self) -> int:
        if self.replicas is not None:
            return self.replicas
        return self.instance_count or 0

    @property
    def is_rpc(self) -> bool:
        return self.rpc_type is not None or self.role == "rpcNodes"


class NetworkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: NetworkModeName = "flat"
    hub_region: str | None = None
    vnet_cidr: str | None = None


class ResolvedTopology(BaseModel):
    """Immutable snapshot of where every role runs."""

    model_config = ConfigDict(frozen=True)

    regions: list[str]
    placements: dict[str, RolePlacement] = Field(default_factory=dict)
    tags: dict[str, str] | None = None
    network: NetworkConfig | None = None

    def role_names(self) -> list[str]:
        return list(self.placements)

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent, exclude_none=True)


class ResourceConfig(BaseModel):
    """One concrete billable unit derived from a placement."""

    resource_type: ResourceType
    name: str
    region: str
    sku: str
    quantity: int
    properties: dict[str, Any] = Field(default_factory=dict)


class ResourceCost(BaseModel):
    resource_type: ResourceType
    name: str
    region: str
    sku: str
    quantity: int
    unit_cost: float
    total_cost: float
    currency: str = "USD"
    source: PriceSource = "estimated"
    discount_factor: float | None = None


class PeriodCost(BaseModel):
    period: CostPeriod
    cost: float
    currency: str = "USD"


class StrategyAnalysis(BaseModel):
    name: str
    description: str
    monthly_cost: float
    annual_cost: float
    regions: list[str] = Field(default_factory=list)
    resources: list[ResourceCost] = Field(default_factory=list)


class Recommendation(BaseModel):
    strategy: str
    reason: str
    savings: float
    savings_percent: float = 0.0
    tradeoffs: list[str] = Field(default_factory=list)


class StrategyComparison(BaseModel):
    strategies: list[StrategyAnalysis] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)

    def get(self, name: str) -> StrategyAnalysis | None:
        return next((s for s in self.strategies if s.name == name), None)


class CostAnalysisReport(BaseModel):
    network_name: str
    analysis_date: datetime = Field(default_factory=datetime.now)
    region: str
    deployment_strategy: str
    burn_rates: list[PeriodCost] = Field(default_factory=list)
    resource_breakdown: list[ResourceCost] = Field(default_factory=list)
    total_hourly_cost: float = 0.0
    total_daily_cost: float = 0.0
    total_monthly_cost: float = 0.0
    total_annual_cost: float = 0.0
    currency: str = "USD"
    comparison: StrategyComparison | None = None

    def burn_rate(self, period: str) -> float | None:
        item = next((b for b in self.burn_rates if b.period == period), None)
        return item.cost if item else None

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent, exclude_none=True)
