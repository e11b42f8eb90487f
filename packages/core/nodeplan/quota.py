"""Regional quota headroom check for a resolved topology.

Usages come from ARM ``.../locations/{region}/usages`` responses that the
caller has already fetched; nothing here talks to Azure.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from nodeplan.cost import region_share
from nodeplan.errors import QuotaError
from nodeplan.plan import ResolvedTopology

log = logging.getLogger(__name__)

QUOTA_NAMESPACES = ("compute", "network", "storage")

# one storage account per region for logs and artifacts
STORAGE_ACCOUNTS_PER_REGION = 1


@dataclass
class QuotaUsage:
    namespace: str
    limit: float
    current: float
    unit: str
    region: str

    @property
    def available(self) -> float:
        return self.limit - self.current


@dataclass
class QuotaShortage:
    namespace: str
    required: float
    deficit: float
    region: str


@dataclass
class QuotaEvaluation:
    shortages: list[QuotaShortage] = field(default_factory=list)
    summary: str = ""

    @property
    def sufficient(self) -> bool:
        return not self.shortages


def parse_usages(payload: Any, namespace: str, region: str) -> list[QuotaUsage]:
    """QuotaUsage records from one ARM usages response body.

    Entries missing ``limit`` or ``currentValue`` count as 0; a body without
    a ``value`` list yields nothing.
    """
    if namespace not in QUOTA_NAMESPACES:
        raise ValueError(f"Unknown quota namespace: {namespace}")
    entries = payload.get("value") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        return []
    usages = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        usages.append(
            QuotaUsage(
                namespace=namespace,
                limit=float(entry.get("limit") or 0),
                current=float(entry.get("currentValue") or 0),
                unit=str(entry.get("unit") or "Count"),
                region=region,
            )
        )
    return usages


def load_usages(path: str | Path) -> list[QuotaUsage]:
    """Read a JSON or YAML snapshot shaped ``{region: {namespace: <ARM usages body>}}``."""
    p = Path(path)
    try:
        text = p.read_text()
        data = yaml.safe_load(text) if p.suffix in (".yaml", ".yml") else json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise QuotaError(f"Failed to load quota usages {p}: {exc}") from exc
    if not isinstance(data, dict):
        raise QuotaError(f"Quota usages {p} must map regions to namespaces")

    usages: list[QuotaUsage] = []
    for region, namespaces in data.items():
        if not isinstance(namespaces, dict):
            raise QuotaError(f"Quota usages for {region} must map namespaces to usage responses")
        for namespace, payload in namespaces.items():
            try:
                usages.extend(parse_usages(payload, namespace, region))
            except ValueError as exc:
                raise QuotaError(f"{p}: {exc}") from exc
    log.debug("Loaded %d quota usage record(s) from %s", len(usages), p)
    return usages


def required_in_region(topology: ResolvedTopology, region: str) -> dict[str, int]:
    """Validators need compute quota and RPC nodes need network quota."""
    compute = network = 0
    for placement in topology.placements.values():
        share = region_share(placement.count, placement.regions, region)
        if placement.role == "validators":
            compute += share
        elif placement.is_rpc:
            network += share
    return {"compute": compute, "network": network, "storage": STORAGE_ACCOUNTS_PER_REGION}


def evaluate_quota(topology: ResolvedTopology, usages: list[QuotaUsage]) -> QuotaEvaluation:
    """Compare per-region needs against summed headroom.

    Storage is only checked in regions that reported storage usages.
    """
    shortages: list[QuotaShortage] = []
    for region in topology.regions:
        needed = required_in_region(topology, region)
        for namespace in QUOTA_NAMESPACES:
            records = [u for u in usages if u.region == region and u.namespace == namespace]
            if namespace == "storage" and not records:
                continue
            available = sum(u.available for u in records)
            if available < needed[namespace]:
                shortages.append(
                    QuotaShortage(
                        namespace=namespace,
                        required=needed[namespace],
                        deficit=needed[namespace] - available,
                        region=region,
                    )
                )

    if shortages:
        summary = f"{len(shortages)} quota shortage(s) detected."
    else:
        summary = "All required quotas appear sufficient."
    log.debug("Quota check over %d region(s): %s", len(topology.regions), summary)
    return QuotaEvaluation(shortages=shortages, summary=summary)
