"""Parsers for the compact placement strings accepted on the command line.

Grammars (whitespace around tokens is ignored):

    placement      := seg (';' seg)*          seg := role ':' dtype ':' region ('+' region)*
    rpc types      := seg (';' seg)*          seg := role ':' rpc_type ':' count
    distribution   := block (',' block)*      block := region ':' pair ('+' pair)*
                                              pair := role '=' count
    deployment map := pair (',' pair)*        pair := role '=' dtype

Every parser is best-effort per segment: a malformed segment is skipped and
the rest of the string is still used. Empty or fully unparseable input
returns None ("no configuration").
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from nodeplan.plan import DEPLOYMENT_TYPES
from nodeplan.regions import RegionCatalog, get_catalog

log = logging.getLogger(__name__)

# Short role names accepted in the distribution grammar
ROLE_ALIASES = {
    "validator": "validators",
    "rpc": "rpcNodes",
    "boot": "bootNodes",
    "archive": "archiveNodes",
}


@dataclass(frozen=True)
class PlacementEntry:
    deployment_type: str
    regions: list[str]


@dataclass(frozen=True)
class RpcNodeSpec:
    rpc_type: str
    count: int


@dataclass
class RoleDistribution:
    """Summed count of one role across the regions that contribute to it."""

    count: int = 0
    regions: list[str] = field(default_factory=list)


@dataclass
class RegionalDistribution:
    regions: list[str] = field(default_factory=list)  # order of first appearance
    roles: dict[str, RoleDistribution] = field(default_factory=dict)


def _positive_int(raw: str) -> int | None:
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value > 0 else None


def parse_placement_dsl(raw: str | None) -> dict[str, PlacementEntry] | None:
    if not raw:
        return None

    placements: dict[str, PlacementEntry] = {}
    for segment in raw.split(";"):
        trimmed = segment.strip()
        if not trimmed:
            continue
        parts = [p.strip() for p in trimmed.split(":")]
        if len(parts) != 3 or not all(parts):
            log.debug("Skipping placement segment %r: expected role:type:regions", trimmed)
            continue
        role, dtype, region_list = parts
        if dtype not in DEPLOYMENT_TYPES:
            log.debug("Skipping placement segment %r: unknown deployment type %r", trimmed, dtype)
            continue
        regions = [r.strip() for r in region_list.split("+") if r.strip()]
        if not regions:
            continue
        placements[role] = PlacementEntry(deployment_type=dtype, regions=regions)

    return placements or None


def format_placement_dsl(placements: dict[str, PlacementEntry]) -> str:
    """Inverse of parse_placement_dsl."""
    return ";".join(f"{role}:{p.deployment_type}:{'+'.join(p.regions)}" for role, p in placements.items())


def parse_rpc_node_types(raw: str | None, catalog: RegionCatalog | None = None) -> dict[str, RpcNodeSpec] | None:
    if not raw:
        return None
    catalog = catalog or get_catalog()

    configs: dict[str, RpcNodeSpec] = {}
    for segment in raw.split(";"):
        trimmed = segment.strip()
        if not trimmed:
            continue
        parts = [p.strip() for p in trimmed.split(":")]
        if len(parts) != 3:
            log.debug("Skipping RPC segment %r: expected role:type:count", trimmed)
            continue
        role, rpc_type, count_raw = parts
        count = _positive_int(count_raw)
        if not role or count is None:
            log.debug("Skipping RPC segment %r: bad role or count", trimmed)
            continue
        if not catalog.is_rpc_type(rpc_type):
            log.debug("Skipping RPC segment %r: unknown RPC type %r", trimmed, rpc_type)
            continue
        configs[role] = RpcNodeSpec(rpc_type=rpc_type, count=count)

    return configs or None


def parse_regional_distribution(raw: str | None) -> RegionalDistribution | None:
    """Parse per-region role counts and fold them into per-role totals.

    "eastus:validators=3+rpc=2,westus2:validators=1" gives
    validators -> 4 over [eastus, westus2], rpcNodes -> 2 over [eastus].
    """
    if not raw:
        return None

    result = RegionalDistribution()
    roles = result.roles
    for block in raw.split(","):
        trimmed = block.strip()
        if not trimmed:
            continue
        region, sep, spec = trimmed.partition(":")
        region = region.strip()
        if not sep or not region or not spec.strip():
            log.debug("Skipping distribution block %r: expected region:role=count", trimmed)
            continue
        for pair in spec.split("+"):
            name, eq, count_raw = pair.partition("=")
            name = name.strip()
            count = _positive_int(count_raw) if eq else None
            if not name or count is None:
                log.debug("Skipping distribution pair %r in %s", pair, region)
                continue
            role = ROLE_ALIASES.get(name, name)
            dist = roles.setdefault(role, RoleDistribution())
            dist.count += count
            if region not in dist.regions:
                dist.regions.append(region)
            if region not in result.regions:
                result.regions.append(region)

    return result if roles else None


def parse_deployment_map(raw: str | None) -> dict[str, str] | None:
    if not raw:
        return None

    mapping: dict[str, str] = {}
    for pair in raw.split(","):
        role, eq, dtype = pair.partition("=")
        role, dtype = role.strip(), dtype.strip()
        if not eq or not role or dtype not in DEPLOYMENT_TYPES:
            log.debug("Skipping deployment map entry %r", pair)
            continue
        mapping[ROLE_ALIASES.get(role, role)] = dtype

    return mapping or None
