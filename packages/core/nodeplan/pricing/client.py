"""Azure Retail Prices client with scored best-match selection.

Queries https://prices.azure.com/api/retail/prices (no API key) with an
OData $filter on region, currency and sku fragment, reads at most
``max_pages`` pages, and scores every candidate record against the
requested sku and resource type. Any transport or parse failure falls back
to the static estimate table; the caller only ever sees a PriceLookup.
"""

from __future__ import annotations

import http.client
import json
import logging
import re
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from nodeplan.errors import PricingError
from nodeplan.pricing import PriceLookup, urlopen_safe
from nodeplan.pricing.cache import PricingCache, cache_key
from nodeplan.pricing.estimates import estimate_price

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://prices.azure.com/api/retail/prices"
DEFAULT_TIMEOUT = 8  # seconds
DEFAULT_MAX_PAGES = 3

_SIZE_TOKEN = re.compile(r"^[A-Z]+\d+[a-z]*$")
_VM_PATTERN = re.compile(r"vm", re.IGNORECASE)


@dataclass(frozen=True)
class ServiceHint:
    service: str | None = None
    products: tuple[str, ...] = field(default_factory=tuple)


SERVICE_HINTS: dict[str, ServiceHint] = {
    "aks-cluster": ServiceHint("Azure Kubernetes Service", ("Managed Cluster",)),
    "aks-node-pool": ServiceHint("Azure Kubernetes Service", ("Virtual Machine", "Linux")),
    "container-app": ServiceHint("Container Apps", ("Container Apps",)),
    "virtual-machine": ServiceHint("Virtual Machines", ("Virtual Machine", "Linux")),
    "virtual-machine-scale-set": ServiceHint("Virtual Machines", ("Virtual Machine", "Scale Set")),
    "storage-account": ServiceHint("Storage", ("General Purpose",)),
    "load-balancer": ServiceHint("Load Balancer", ("Load Balancer",)),
    "public-ip": ServiceHint("Networking", ("Public IP",)),
    "application-insights": ServiceHint("Monitoring", ("Application Insights",)),
    "log-analytics": ServiceHint("Monitoring", ("Log Analytics",)),
    "virtual-network": ServiceHint("Networking", ("Virtual Network",)),
}


def derive_size_token(sku: str) -> str:
    """Standard_D4s_v5 -> D4s, Standard_E8as_v5 -> E8as; the whole sku when no size segment."""
    return next((part for part in sku.split("_") if _SIZE_TOKEN.match(part)), sku)


def base_fragment(sku: str) -> str:
    return sku.split("_")[0]


def _cache_sku(resource_type: str, sku: str, properties: dict[str, Any] | None) -> str:
    # container apps share one sku; their price depends on the cpu/memory preset
    if resource_type != "container-app":
        return sku
    props = properties or {}
    return f"{sku}:{props.get('cpu', 1.0)}:{props.get('memory', '2Gi')}"


def score_item(item: dict[str, Any], resource_type: str, sku: str) -> int:
    """Relevance of one price record for (resource_type, sku)."""
    sku_name = item.get("skuName") or ""
    hint = SERVICE_HINTS.get(resource_type, ServiceHint())

    score = 0
    if derive_size_token(sku) in sku_name:
        score += 5
    if base_fragment(sku) in sku_name:
        score += 3
    if hint.service and hint.service in (item.get("serviceName") or ""):
        score += 4
    product = item.get("productName") or ""
    for fragment in hint.products:
        if fragment in product:
            score += 2
    if "hour" in (item.get("unitOfMeasure") or "").lower():
        score += 2
    else:
        score -= 2
    if "virtual-machine" in resource_type and _VM_PATTERN.search(sku_name):
        score += 1
    return score


def select_best_price(
    items: list[dict[str, Any]], resource_type: str, sku: str, region: str, currency: str
) -> float | None:
    """Highest-scoring qualifying record's retailPrice; ties keep the first seen."""
    region = region.lower()
    best_price: float | None = None
    best_score: int | None = None

    for item in items:
        price = item.get("retailPrice")
        if not isinstance(price, (int, float)) or isinstance(price, bool):
            continue
        if (item.get("armRegionName") or "").lower() != region:
            continue
        if item.get("currencyCode") != currency:
            continue
        score = score_item(item, resource_type, sku)
        if best_score is None or score > best_score:
            best_price, best_score = float(price), score

    return best_price


class PricingClient:
    """Looks up hourly prices: cache, then the live API, then the estimate table."""

    def __init__(
        self,
        cache: PricingCache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_pages: int = DEFAULT_MAX_PAGES,
        base_url: str = DEFAULT_BASE_URL,
    ):
        self.cache = cache if cache is not None else PricingCache()
        self._timeout = timeout
        self._max_pages = max_pages
        self._base_url = base_url

    # Public interface

    def price_for(
        self,
        resource_type: str,
        sku: str,
        region: str,
        currency: str = "USD",
        properties: dict[str, Any] | None = None,
    ) -> PriceLookup:
        key = cache_key(resource_type, _cache_sku(resource_type, sku, properties), region, currency)

        cached = self.cache.get(key)
        if cached is not None:
            return PriceLookup(price_per_hour=cached, source="cached")

        error: str | None = None
        try:
            live = self.fetch_live_price(resource_type, sku, region, currency)
        except PricingError as exc:
            log.warning("Live pricing failed for %s %s in %s: %s", resource_type, sku, region, exc)
            live, error = None, str(exc)

        if live is not None:
            self.cache.set(key, live)
            return PriceLookup(price_per_hour=live, source="live")

        estimated = estimate_price(resource_type, sku, properties)
        log.debug("Using estimate for %s %s in %s: %.4f/h", resource_type, sku, region, estimated)
        self.cache.set(key, estimated)
        return PriceLookup(price_per_hour=estimated, source="estimated", error=error)

    def fetch_live_price(self, resource_type: str, sku: str, region: str, currency: str = "USD") -> float | None:
        """Best live match, None when no record qualifies. Raises PricingError on transport/parse failure."""
        items = self._fetch_items(self._build_filter(sku, region, currency))
        return select_best_price(items, resource_type, sku, region, currency)

    def clear_cache(self, persistent: bool = False) -> None:
        self.cache.clear(persistent=persistent)

    # HTTP + pagination helpers

    def _build_filter(self, sku: str, region: str, currency: str) -> str:
        return (
            f"armRegionName eq '{region}' and currencyCode eq '{currency}'"
            f" and contains(skuName,'{base_fragment(sku)}')"
        )

    def _build_url(self, odata_filter: str) -> str:
        return f"{self._base_url}?{urllib.parse.urlencode({'$filter': odata_filter})}"

    def _fetch_items(self, odata_filter: str) -> list[dict[str, Any]]:
        """Collect Items from at most max_pages pages."""
        items: list[dict[str, Any]] = []
        url: str | None = self._build_url(odata_filter)
        pages = 0
        while url and pages < self._max_pages:
            try:
                data = json.loads(self._get(url))
            except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
                raise PricingError(str(exc)) from exc
            if not isinstance(data, dict):
                raise PricingError("unexpected response shape from pricing service")
            page_items = data.get("Items")
            if isinstance(page_items, list):
                items.extend(i for i in page_items if isinstance(i, dict))
            url = data.get("NextPageLink") or None
            pages += 1
        log.debug("Fetched %d price records over %d page(s)", len(items), pages)
        return items

    def _get(self, url: str) -> bytes:
        req = urllib.request.Request(url, headers={"Accept": "application/json"})
        return urlopen_safe(req, timeout=self._timeout)
