"""Shared fixtures for core tests."""

from __future__ import annotations

import json
from typing import Any

import pytest
from nodeplan.plan import RolePlacement
from nodeplan.pricing.cache import MemoryPricingCache, PricingCache
from nodeplan.pricing.client import PricingClient
from nodeplan.regions import RegionCatalog, get_catalog


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += round(seconds * 1000)


def _price_item(
    sku_name: str,
    price: Any,
    region: str = "eastus",
    currency: str = "USD",
    service: str = "Virtual Machines",
    product: str = "Virtual Machines Dsv5 Series",
    unit: str = "1 Hour",
) -> dict[str, Any]:
    return {
        "skuName": sku_name,
        "retailPrice": price,
        "armRegionName": region,
        "currencyCode": currency,
        "serviceName": service,
        "productName": product,
        "unitOfMeasure": unit,
    }


def _offline_client(pages: list[list[dict]] | None = None, fail: Exception | None = None) -> PricingClient:
    """PricingClient whose _get serves the given pages (chained via NextPageLink).

    Every requested URL is recorded on ``client.requested``.
    """
    client = PricingClient(cache=PricingCache(memory=MemoryPricingCache()))
    pages = pages if pages is not None else [[]]
    requested: list[str] = []

    def fake_get(url: str) -> bytes:
        requested.append(url)
        if fail is not None:
            raise fail
        index = len(requested) - 1
        items = pages[index] if index < len(pages) else []
        next_link = f"https://prices.example/page{index + 1}" if index + 1 < len(pages) else None
        return json.dumps({"Items": items, "NextPageLink": next_link}).encode()

    client._get = fake_get  # type: ignore[method-assign]
    client.requested = requested  # type: ignore[attr-defined]
    return client


def _placement(role: str, count: int, regions: list[str], dtype: str = "aks", **kwargs) -> RolePlacement:
    if role == "validators":
        return RolePlacement(role=role, deployment_type=dtype, regions=regions, replicas=count, **kwargs)
    return RolePlacement(role=role, deployment_type=dtype, regions=regions, instance_count=count, **kwargs)


@pytest.fixture
def catalog() -> RegionCatalog:
    return get_catalog()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def price_item():
    return _price_item


@pytest.fixture
def offline_client():
    return _offline_client


@pytest.fixture
def make_placement():
    return _placement
