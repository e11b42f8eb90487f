"""Runtime settings read from NODEPLAN_* environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from nodeplan.plan import RESOURCE_TYPES, CostPeriod
from nodeplan.pricing.cache import DEFAULT_CACHE_FILE, DEFAULT_TTL_SECONDS, PricingCache, PricingCacheStore
from nodeplan.pricing.client import DEFAULT_TIMEOUT, PricingClient

DEFAULT_PERIODS: list[str] = ["hour", "day", "week", "month", "annual"]
DEFAULT_STRATEGIES: list[str] = [
    "single-region-aks",
    "multi-region-aks",
    "single-region-vm",
    "multi-region-vm",
    "hybrid-aks-aca",
]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


class CostingOptions(BaseModel):
    """Knobs for one cost analysis run."""

    use_live_pricing: bool = True
    pricing_region: str = "eastus"
    currency: str = "USD"
    periods: list[CostPeriod] = Field(default_factory=lambda: list(DEFAULT_PERIODS))
    enable_comparison: bool = True
    comparison_strategies: list[str] = Field(default_factory=lambda: list(DEFAULT_STRATEGIES))
    include_resource_breakdown: bool = True
    # resource type -> factor in (0, 1]; other values are ignored at costing time
    discount_factors: dict[str, float] = Field(default_factory=dict)

    @field_validator("discount_factors")
    @classmethod
    def validate_discount_keys(cls, v: dict[str, float]) -> dict[str, float]:
        unknown = [k for k in v if k not in RESOURCE_TYPES]
        if unknown:
            raise ValueError(f"unknown resource types in discount_factors: {', '.join(unknown)}")
        return v


class Settings(BaseModel):
    live_pricing: bool = True
    persistent_cache: bool = True
    cache_file: Path = DEFAULT_CACHE_FILE
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    pricing_timeout: float = DEFAULT_TIMEOUT
    currency: str = "USD"
    pricing_region: str = "eastus"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        return cls(
            live_pricing=_env_bool(env, "NODEPLAN_LIVE_PRICING", True),
            persistent_cache=_env_bool(env, "NODEPLAN_PERSISTENT_CACHE", True),
            cache_file=Path(env.get("NODEPLAN_PRICING_CACHE_FILE") or DEFAULT_CACHE_FILE).expanduser(),
            cache_ttl_seconds=_env_float(env, "NODEPLAN_PRICING_CACHE_TTL", DEFAULT_TTL_SECONDS),
            pricing_timeout=_env_float(env, "NODEPLAN_PRICING_TIMEOUT", DEFAULT_TIMEOUT),
            currency=(env.get("NODEPLAN_CURRENCY") or "USD").upper(),
            pricing_region=env.get("NODEPLAN_PRICING_REGION") or "eastus",
        )

    def costing_options(self, **overrides) -> CostingOptions:
        values = {
            "use_live_pricing": self.live_pricing,
            "pricing_region": self.pricing_region,
            "currency": self.currency,
        }
        values.update(overrides)
        return CostingOptions(**values)

    def build_pricing_client(self) -> PricingClient:
        persistent = None
        if self.persistent_cache:
            persistent = PricingCacheStore(cache_file=self.cache_file, ttl_seconds=self.cache_ttl_seconds)
        return PricingClient(cache=PricingCache(persistent=persistent), timeout=self.pricing_timeout)


__all__ = ["CostingOptions", "DEFAULT_PERIODS", "DEFAULT_STRATEGIES", "Settings"]
