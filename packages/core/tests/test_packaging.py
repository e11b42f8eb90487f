"""Packaging acceptance tests — verify the package is usable after install."""

from __future__ import annotations

import json
from pathlib import Path

import nodeplan
import pytest
import yaml
from nodeplan.plan import RESOURCE_TYPES, ResolvedTopology, RolePlacement


class TestImports:
    """Verify all public API symbols are importable."""

    def test_core_models_importable(self):
        from nodeplan import CostAnalysisReport, ResolvedTopology, RolePlacement

        assert CostAnalysisReport is not None
        assert ResolvedTopology is not None
        assert RolePlacement is not None

    def test_lazy_imports(self):
        from nodeplan import CostingEngine, DeploymentContext, PricingClient, Settings, get_catalog, resolve_topology

        assert CostingEngine is not None
        assert DeploymentContext is not None
        assert PricingClient is not None
        assert Settings is not None
        assert callable(get_catalog)
        assert callable(resolve_topology)

    def test_all_names_resolve(self):
        for name in nodeplan.__all__:
            assert getattr(nodeplan, name) is not None

    def test_invalid_import_raises(self):
        with pytest.raises(AttributeError):
            _ = nodeplan.NoSuchThing  # type: ignore[attr-defined]


class TestVersion:
    def test_version_is_string(self):
        assert isinstance(nodeplan.__version__, str)

    def test_version_is_semver(self):
        parts = nodeplan.__version__.split(".")
        assert len(parts) >= 2
        assert all(p.isdigit() for p in parts[:2])


class TestPyTyped:
    def test_core_py_typed_exists(self):
        marker = Path(nodeplan.__file__).parent / "py.typed"
        assert marker.exists(), "Missing py.typed marker in core package"


class TestBundledData:
    @pytest.mark.parametrize("name", ["regions.yaml", "rpc_types.yaml"])
    def test_data_file_parses(self, name):
        path = Path(nodeplan.__file__).parent / "data" / name
        assert path.exists(), f"{name} not found at {path}"
        assert yaml.safe_load(path.read_text())

    def test_catalog_loads_from_bundled(self, catalog):
        assert len(catalog.names()) == 43
        assert catalog.rpc_types() == ["standard", "archive", "graphql", "websocket", "admin", "trace", "full"]


class TestModelRoundTrip:
    def test_topology_json_round_trip(self):
        topo = ResolvedTopology(
            regions=["eastus"],
            placements={"validators": RolePlacement(role="validators", deployment_type="aks", regions=["eastus"], replicas=4)},
        )
        data = json.loads(topo.to_json())
        assert "tags" not in data
        restored = ResolvedTopology.model_validate(data)
        assert restored == topo

    def test_resource_types_cover_pricing_estimates(self):
        from nodeplan.pricing.estimates import estimate_price

        for resource_type in RESOURCE_TYPES:
            assert estimate_price(resource_type, "Standard_D4s_v5") > 0
