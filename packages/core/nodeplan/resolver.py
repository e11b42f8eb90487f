"""Topology resolver — turn role counts and placement inputs into a ResolvedTopology.

Inputs come from three places, highest precedence first:

1. a topology file (JSON, or YAML by suffix) with its own region strategy
   and nested per-role placement objects;
2. a regional-distribution string ("eastus:validators=3+rpc=2,westus2:...");
3. plain role counts plus the placement / RPC-type / deployment-map strings.

Fields a higher-precedence source leaves out fall back to the lower one,
never the other way around.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from nodeplan.dsl import (
    RegionalDistribution,
    parse_deployment_map,
    parse_placement_dsl,
    parse_regional_distribution,
    parse_rpc_node_types,
)
from nodeplan.errors import TopologyError
from nodeplan.plan import (
    MEMBER_ROLES,
    Classification,
    DeploymentType,
    NetworkConfig,
    NetworkModeName,
    ResolvedTopology,
    RolePlacement,
    RpcNodeType,
    ScaleRange,
)
from nodeplan.regions import RegionCatalog, get_catalog

log = logging.getLogger(__name__)

DEFAULT_REGION = "eastus"
DEFAULT_VNET_CIDR = "10.200.0.0/16"

# role name -> TopologyRequest count field
_COUNT_FIELDS = {
    "validators": "validators",
    "bootNodes": "boot_nodes",
    "rpcNodes": "rpc_nodes",
    "archiveNodes": "archive_nodes",
    "memberAdmins": "member_admins",
    "memberPermissioned": "member_permissioned",
    "memberPrivate": "member_private",
    "memberPublic": "member_public",
}

# Counts assumed when a topology file places a role without sizing it
_FILE_DEFAULT_COUNTS = {"validators": 4}


class TopologyRequest(BaseModel):
    """CLI-style inputs for a topology resolution."""

    enabled: bool = True

    validators: int = Field(default=0, ge=0)
    boot_nodes: int = Field(default=0, ge=0)
    rpc_nodes: int = Field(default=0, ge=0)
    archive_nodes: int = Field(default=0, ge=0)
    member_admins: int = Field(default=0, ge=0)
    member_permissioned: int = Field(default=0, ge=0)
    member_private: int = Field(default=0, ge=0)
    member_public: int = Field(default=0, ge=0)

    rpc_node_types: str | None = None
    rpc_default_type: RpcNodeType = "standard"

    regions: list[str] = Field(default_factory=list)
    region: str | None = None  # legacy single-region flag
    all_regions: bool = False
    region_class: Classification = "commercial"
    region_exclude: list[str] = Field(default_factory=list)

    deployment_default: DeploymentType = "aks"
    node_placement: str | None = None
    regional_distribution: str | None = None
    deployment_map: str | None = None
    topology_file: Path | None = None

    size_map: dict[str, str] = Field(default_factory=dict)
    scale_map: dict[str, ScaleRange] = Field(default_factory=dict)
    tags: dict[str, str] | None = None
    network_mode: NetworkModeName | None = None
    hub_region: str | None = None

    def role_count(self, role: str) -> int:
        field_name = _COUNT_FIELDS.get(role)
        return getattr(self, field_name) if field_name else 0


# Topology file schema (camelCase on disk)


class _FileModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FileRolePlacement(_FileModel):
    deployment_type: DeploymentType | None = None
    regions: list[str] | None = None
    replicas: int | None = Field(default=None, ge=0)
    instance_count: int | None = Field(default=None, ge=0)
    node_size: str | None = None
    vm_size: str | None = None
    scale: ScaleRange | None = None


class FileRpcPlacement(_FileModel):
    rpc_type: RpcNodeType | None = Field(default=None, alias="type")
    deployment_type: DeploymentType | None = None
    regions: list[str] | None = None
    count: int | None = Field(default=None, ge=0)
    scale: ScaleRange | None = None
    capabilities: dict[str, bool] | None = None
    vm_size: str | None = None


class FilePlacements(_FileModel):
    validators: FileRolePlacement | None = None
    boot_nodes: FileRolePlacement | None = None
    rpc_nodes: dict[str, FileRpcPlacement] | None = None
    archive_nodes: FileRolePlacement | None = None
    member_admins: FileRolePlacement | None = None
    member_permissioned: FileRolePlacement | None = None
    member_private: FileRolePlacement | None = None
    member_public: FileRolePlacement | None = None


class FileNetwork(_FileModel):
    mode: NetworkModeName | None = None
    hub_region: str | None = None
    vnet_cidr: str | None = None


class TopologyFile(_FileModel):
    strategy: Literal["single", "multi-select", "all-minus-excludes"] | None = None
    classification: Classification | None = None
    regions: list[str] | None = None
    exclude_regions: list[str] | None = None
    deployment_default: DeploymentType | None = None
    placements: FilePlacements | None = None
    tags: dict[str, str] | None = None
    network: FileNetwork | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> TopologyFile:
        """Load a JSON or YAML topology file; any failure names the path."""
        p = Path(path)
        try:
            text = p.read_text()
            data = yaml.safe_load(text) if p.suffix in (".yaml", ".yml") else json.loads(text)
            return cls.model_validate(data or {})
        except (OSError, ValueError, yaml.YAMLError, ValidationError) as exc:
            raise TopologyError(f"Failed to load topology file {p}: {exc}") from exc


# Resolution


def resolve_topology(request: TopologyRequest, catalog: RegionCatalog | None = None) -> ResolvedTopology | None:
    """Resolve a request into a validated topology, or None when Azure is disabled."""
    if not request.enabled:
        return None
    catalog = catalog or get_catalog()

    if request.topology_file:
        topology = TopologyFile.from_file(request.topology_file)
        log.debug("Resolving topology from file %s", request.topology_file)
        return _resolve_from_file(topology, request, catalog)

    distribution = parse_regional_distribution(request.regional_distribution)
    if distribution:
        log.debug("Resolving topology from regional distribution")
        return _resolve_from_distribution(distribution, request, catalog)

    regions = resolve_regions(request, catalog)
    placements = _placements_from_request(request, regions, request.deployment_default, catalog)
    return _finish(regions, placements, request.tags, _request_network(request, regions), catalog)


def resolve_regions(request: TopologyRequest, catalog: RegionCatalog | None = None) -> list[str]:
    """Apply the region precedence rules, then exclusions, then validation."""
    catalog = catalog or get_catalog()

    if request.regions:
        regions = list(request.regions)
    elif request.region:
        regions = [request.region]
    elif request.all_regions:
        regions = catalog.by_classification(request.region_class)
    else:
        regions = [DEFAULT_REGION]

    return _finalize_regions(regions, request.region_exclude, catalog)


def _finalize_regions(regions: list[str], exclude: list[str] | None, catalog: RegionCatalog) -> list[str]:
    if exclude:
        excluded = set(catalog.resolve_exclusions(exclude))
        regions = [r for r in regions if r not in excluded]

    regions = list(dict.fromkeys(r.strip() for r in regions if r.strip()))

    invalid = catalog.validate(regions)
    if invalid:
        raise TopologyError(f"Invalid Azure regions: {', '.join(invalid)}")
    if not regions:
        raise TopologyError("No Azure regions could be determined for deployment")
    return regions


def _placement(
    role: str,
    count: int,
    deployment_type: str,
    regions: list[str],
    request: TopologyRequest,
    catalog: RegionCatalog,
    rpc_type: str | None = None,
    capability_overrides: dict[str, bool] | None = None,
    vm_size: str | None = None,
    scale: ScaleRange | None = None,
) -> RolePlacement:
    size = vm_size or request.size_map.get(role)
    return RolePlacement(
        role=role,
        deployment_type=deployment_type,
        regions=regions,
        replicas=count if role == "validators" else None,
        instance_count=None if role == "validators" else count,
        vm_size=size,
        node_size=request.size_map.get(role) if role == "validators" else None,
        scale=scale or request.scale_map.get(role),
        rpc_type=rpc_type,
        capabilities=catalog.capabilities_for(rpc_type, capability_overrides) if rpc_type else None,
    )


def _placements_from_request(
    request: TopologyRequest,
    regions: list[str],
    default_deployment: str,
    catalog: RegionCatalog,
) -> dict[str, RolePlacement]:
    placement_dsl = parse_placement_dsl(request.node_placement) or {}
    deployment_map = parse_deployment_map(request.deployment_map) or {}
    rpc_specs = parse_rpc_node_types(request.rpc_node_types, catalog)
    first_region = regions[0]

    def target(role: str) -> tuple[str, list[str]]:
        entry = placement_dsl.get(role)
        if entry:
            return entry.deployment_type, list(entry.regions)
        return deployment_map.get(role, default_deployment), [first_region]

    placements: dict[str, RolePlacement] = {}

    for role in ("validators", "bootNodes"):
        count = request.role_count(role)
        if count > 0:
            dtype, role_regions = target(role)
            placements[role] = _placement(role, count, dtype, role_regions, request, catalog)

    if rpc_specs:
        # Explicit RPC types replace the generic rpcNodes count
        for name, spec in rpc_specs.items():
            dtype, role_regions = target(name)
            placements[name] = _placement(name, spec.count, dtype, role_regions, request, catalog, rpc_type=spec.rpc_type)
    elif request.rpc_nodes > 0:
        dtype, role_regions = target("rpcNodes")
        placements["rpcNodes"] = _placement(
            "rpcNodes", request.rpc_nodes, dtype, role_regions, request, catalog, rpc_type=request.rpc_default_type
        )

    for role in ("archiveNodes", *MEMBER_ROLES):
        count = request.role_count(role)
        if count > 0:
            dtype, role_regions = target(role)
            placements[role] = _placement(role, count, dtype, role_regions, request, catalog)

    return placements


def _resolve_from_distribution(
    distribution: RegionalDistribution,
    request: TopologyRequest,
    catalog: RegionCatalog,
) -> ResolvedTopology:
    regions = _finalize_regions(distribution.regions, request.region_exclude, catalog)
    deployment_map = parse_deployment_map(request.deployment_map) or {}
    rpc_specs = parse_rpc_node_types(request.rpc_node_types, catalog) or {}

    placements: dict[str, RolePlacement] = {}
    for role, dist in distribution.roles.items():
        role_regions = [r for r in dist.regions if r in regions]
        if not role_regions:
            log.debug("Dropping %s: every contributing region was excluded", role)
            continue
        if role in rpc_specs:
            rpc_type = rpc_specs[role].rpc_type
        elif role == "rpcNodes":
            rpc_type = request.rpc_default_type
        else:
            rpc_type = None
        dtype = deployment_map.get(role, request.deployment_default)
        placements[role] = _placement(role, dist.count, dtype, role_regions, request, catalog, rpc_type=rpc_type)

    return _finish(regions, placements, request.tags, _request_network(request, regions), catalog)


def _resolve_from_file(topology: TopologyFile, request: TopologyRequest, catalog: RegionCatalog) -> ResolvedTopology:
    if topology.strategy == "all-minus-excludes":
        classification = topology.classification or request.region_class
        regions = _finalize_regions(catalog.by_classification(classification), topology.exclude_regions, catalog)
    elif topology.regions:
        listed = topology.regions[:1] if topology.strategy == "single" else topology.regions
        regions = _finalize_regions(list(listed), topology.exclude_regions, catalog)
    else:
        regions = resolve_regions(request, catalog)

    default_deployment = topology.deployment_default or request.deployment_default
    first_region = regions[0]

    # Roles the file does not place keep their CLI-derived placement
    placements = _placements_from_request(request, regions, default_deployment, catalog)

    file_placements = topology.placements or FilePlacements()
    if file_placements.rpc_nodes:
        placements = {name: p for name, p in placements.items() if not p.is_rpc}
        for name, cfg in file_placements.rpc_nodes.items():
            placements[name] = _placement(
                name,
                cfg.count or 1,
                cfg.deployment_type or default_deployment,
                cfg.regions or [first_region],
                request,
                catalog,
                rpc_type=cfg.rpc_type or "standard",
                capability_overrides=cfg.capabilities,
                vm_size=cfg.vm_size,
                scale=cfg.scale,
            )

    for role in ("validators", "bootNodes", "archiveNodes", *MEMBER_ROLES):
        cfg: FileRolePlacement | None = getattr(file_placements, _COUNT_FIELDS[role])
        if cfg is None:
            continue
        file_count = cfg.replicas if role == "validators" else cfg.instance_count
        count = file_count or request.role_count(role) or _FILE_DEFAULT_COUNTS.get(role, 1)
        placements[role] = _placement(
            role,
            count,
            cfg.deployment_type or default_deployment,
            cfg.regions or [first_region],
            request,
            catalog,
            vm_size=cfg.vm_size or cfg.node_size,
            scale=cfg.scale,
        )
        if role == "validators" and cfg.node_size:
            placements[role] = placements[role].model_copy(update={"node_size": cfg.node_size})

    if topology.network:
        mode = topology.network.mode or "flat"
        network = NetworkConfig(
            mode=mode,
            hub_region=topology.network.hub_region or (first_region if mode == "hub-spoke" else None),
            vnet_cidr=topology.network.vnet_cidr or DEFAULT_VNET_CIDR,
        )
    else:
        network = _request_network(request, regions)

    return _finish(regions, placements, topology.tags or request.tags, network, catalog)


def _request_network(request: TopologyRequest, regions: list[str]) -> NetworkConfig | None:
    if not request.network_mode:
        return None
    hub = None
    if request.network_mode == "hub-spoke":
        hub = request.hub_region or regions[0]
    return NetworkConfig(mode=request.network_mode, hub_region=hub, vnet_cidr=DEFAULT_VNET_CIDR)


def _finish(
    regions: list[str],
    placements: dict[str, RolePlacement],
    tags: dict[str, str] | None,
    network: NetworkConfig | None,
    catalog: RegionCatalog,
) -> ResolvedTopology:
    referenced: list[str] = []
    for placement in placements.values():
        referenced.extend(placement.regions)
    if network and network.hub_region:
        referenced.append(network.hub_region)

    invalid = list(dict.fromkeys(catalog.validate(referenced)))
    if invalid:
        raise TopologyError(f"Invalid Azure regions: {', '.join(invalid)}")

    # placements may target regions outside the resolved list; those join it in first-seen order
    all_regions = list(regions)
    for placement in placements.values():
        for region in placement.regions:
            if region not in all_regions:
                log.debug("Adding placement region %s for %s to the topology", region, placement.role)
                all_regions.append(region)

    return ResolvedTopology(
        regions=all_regions,
        placements=placements,
        tags=dict(tags) if tags else None,
        network=network,
    )
