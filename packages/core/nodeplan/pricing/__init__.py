"""Pricing — live Azure retail prices with a two-tier cache and static estimates."""

from __future__ import annotations

import ssl
import urllib.request
from dataclasses import dataclass

import certifi

from nodeplan.plan import PriceSource


def _ssl_context() -> ssl.SSLContext:
    """SSL context backed by the certifi CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def urlopen_safe(req: urllib.request.Request, timeout: float = 8) -> bytes:
    """urlopen with certifi SSL — use this instead of raw urllib.request.urlopen."""
    ctx = _ssl_context()
    with urllib.request.urlopen(req, timeout=timeout, context=ctx) as resp:
        return resp.read()


@dataclass(frozen=True)
class PriceLookup:
    """Outcome of one price lookup.

    ``error`` carries the text of a swallowed live-lookup failure, so callers
    can tell "no matching record" (error is None, source estimated) apart
    from "the pricing service was unreachable".
    """

    price_per_hour: float
    source: PriceSource
    error: str | None = None


def __getattr__(name: str):
    if name == "PricingClient":
        from nodeplan.pricing.client import PricingClient

        return PricingClient
    if name in ("PricingCache", "PricingCacheStore", "MemoryPricingCache", "cache_key"):
        from nodeplan.pricing import cache

        return getattr(cache, name)
    if name == "estimate_price":
        from nodeplan.pricing.estimates import estimate_price

        return estimate_price
    raise AttributeError(f"module 'nodeplan.pricing' has no attribute {name!r}")


__all__ = [
    "MemoryPricingCache",
    "PriceLookup",
    "PricingCache",
    "PricingCacheStore",
    "PricingClient",
    "cache_key",
    "estimate_price",
    "urlopen_safe",
]
