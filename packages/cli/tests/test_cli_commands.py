"""CLI command tests using Typer's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from nodeplan_cli.main import app
from typer.testing import CliRunner

runner = CliRunner()

_TOPOLOGY_YAML = """\
strategy: multi-select
regions: [westeurope, northeurope]
deploymentDefault: vm
placements:
  validators:
    replicas: 4
    regions: [westeurope, northeurope]
  rpcNodes:
    archive-rpc:
      type: archive
      count: 2
"""


def _json(result) -> dict:
    return json.loads(result.output.strip().splitlines()[-1])


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path):
    for name in ("NODEPLAN_LIVE_PRICING", "NODEPLAN_CURRENCY", "NODEPLAN_PRICING_REGION"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NODEPLAN_PRICING_CACHE_FILE", str(tmp_path / "pricing-cache.json"))


@pytest.fixture
def topology_file(tmp_path: Path) -> Path:
    p = tmp_path / "topology.yaml"
    p.write_text(_TOPOLOGY_YAML)
    return p


class TestAppHelp:
    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "resolve" in result.output
        assert "cost" in result.output
        assert "regions" in result.output
        assert "cache" in result.output
        assert "quota" in result.output


class TestVersionFlag:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        parts = result.output.strip().split()
        assert parts[0] == "nodeplan"
        assert "." in parts[1]


class TestRegionsCommand:
    def test_table(self):
        result = runner.invoke(app, ["regions", "--class", "dod"])
        assert result.exit_code == 0
        assert "Azure Regions (2)" in result.output

    def test_json_by_class(self):
        result = runner.invoke(app, ["--json", "regions", "--class", "gov"])
        assert result.exit_code == 0
        names = [r["name"] for r in _json(result)["regions"]]
        assert names == ["usgovvirginia", "usgovtexas", "usgovarizona"]

    def test_country_by_name_or_code(self):
        by_code = _json(runner.invoke(app, ["--json", "regions", "--country", "CN"]))
        by_name = _json(runner.invoke(app, ["--json", "regions", "--country", "China"]))
        assert by_code == by_name
        assert len(by_code["regions"]) == 4

    def test_exclude(self):
        result = runner.invoke(app, ["--json", "regions", "--class", "china", "--exclude", "chinanorth,chinanorth2"])
        assert [r["name"] for r in _json(result)["regions"]] == ["chinaeast", "chinaeast2"]

    def test_rpc_types(self):
        result = runner.invoke(app, ["--json", "regions", "--rpc-types"])
        assert result.exit_code == 0
        presets = {p["key"]: p for p in _json(result)["rpc_types"]}
        assert len(presets) == 7
        assert "archive" in presets["archive"]["capabilities"]


class TestResolveCommand:
    def test_table_output(self):
        result = runner.invoke(app, ["resolve", "--regions", "eastus,westus2", "--validators", "3"])
        assert result.exit_code == 0
        assert "validators" in result.output
        assert "rpcNodes" in result.output

    def test_json_output(self):
        result = runner.invoke(
            app,
            ["--json", "resolve", "--regions", "eastus", "--rpc-nodes", "2", "--deployment-map", "rpc=aca", "--members", "public=1"],
        )
        assert result.exit_code == 0
        topo = _json(result)["topology"]
        assert topo["regions"] == ["eastus"]
        assert topo["placements"]["validators"]["replicas"] == 4
        assert topo["placements"]["rpcNodes"]["deployment_type"] == "aca"
        assert topo["placements"]["memberPublic"]["instance_count"] == 1

    def test_topology_file(self, topology_file: Path):
        result = runner.invoke(app, ["--json", "resolve", "--topology-file", str(topology_file)])
        assert result.exit_code == 0
        topo = _json(result)["topology"]
        assert topo["regions"] == ["westeurope", "northeurope"]
        assert topo["placements"]["archive-rpc"]["rpc_type"] == "archive"
        assert "rpcNodes" not in topo["placements"]

    def test_invalid_region_json_error(self):
        result = runner.invoke(app, ["--json", "resolve", "--regions", "eastus,mars"])
        assert result.exit_code == 1
        assert "mars" in _json(result)["error"]

    def test_invalid_region_text_error(self):
        result = runner.invoke(app, ["resolve", "--regions", "mars"])
        assert result.exit_code == 1
        assert "Invalid Azure regions" in result.output

    def test_malformed_members_rejected(self):
        result = runner.invoke(app, ["resolve", "--members", "wizards=2"])
        assert result.exit_code == 2

    def test_missing_topology_file(self, tmp_path: Path):
        result = runner.invoke(app, ["resolve", "--topology-file", str(tmp_path / "nope.yaml")])
        assert result.exit_code != 0


class TestCostCommand:
    def test_cost_table(self):
        result = runner.invoke(app, ["cost", "--no-live", "--regions", "eastus"])
        assert result.exit_code == 0
        assert "$" in result.output
        assert "Burn Rates" in result.output

    def test_cost_json(self):
        result = runner.invoke(
            app,
            ["--json", "cost", "--no-live", "--no-compare", "--validators", "3", "--periods", "hour,month"],
        )
        assert result.exit_code == 0
        report = _json(result)
        assert report["deployment_strategy"] == "Single Region AKS"
        assert [b["period"] for b in report["burn_rates"]] == ["hour", "month"]
        pools = {r["name"]: r["quantity"] for r in report["resource_breakdown"] if r["resource_type"] == "aks-node-pool"}
        assert pools == {"validators-eastus": 3, "rpc-eastus": 1}
        assert {r["source"] for r in report["resource_breakdown"]} == {"estimated"}
        assert "comparison" not in report

    def test_cost_vm_with_discount(self):
        result = runner.invoke(
            app,
            ["--json", "cost", "--no-live", "--no-compare", "--deployment", "vm", "--discount", "virtual-machine=0.5"],
        )
        assert result.exit_code == 0
        (vm,) = [r for r in _json(result)["resource_breakdown"] if r["resource_type"] == "virtual-machine"]
        assert vm["quantity"] == 5
        assert vm["unit_cost"] == pytest.approx(0.096)
        assert vm["discount_factor"] == 0.5

    def test_cost_comparison(self):
        result = runner.invoke(app, ["--json", "cost", "--no-live", "--strategies", "multi-region-vm"])
        assert result.exit_code == 0
        comparison = _json(result)["comparison"]
        assert [s["name"] for s in comparison["strategies"]] == ["current", "multi-region-vm"]

    def test_cost_from_topology_file(self, topology_file: Path):
        result = runner.invoke(app, ["--json", "cost", "--no-live", "--no-compare", "--topology-file", str(topology_file)])
        assert result.exit_code == 0
        assert _json(result)["deployment_strategy"] == "2 Regions VM"

    def test_env_disables_live_pricing(self, monkeypatch):
        monkeypatch.setenv("NODEPLAN_LIVE_PRICING", "false")
        result = runner.invoke(app, ["--json", "cost", "--no-compare"])
        assert result.exit_code == 0
        assert {r["source"] for r in _json(result)["resource_breakdown"]} == {"estimated"}

    def test_unknown_period_rejected(self):
        result = runner.invoke(app, ["cost", "--no-live", "--periods", "fortnight"])
        assert result.exit_code == 2

    def test_unknown_discount_type(self):
        result = runner.invoke(app, ["--json", "cost", "--no-live", "--discount", "spaceship=0.5"])
        assert result.exit_code == 1
        assert "spaceship" in _json(result)["error"]

    def test_invalid_region(self):
        result = runner.invoke(app, ["--json", "cost", "--no-live", "--regions", "atlantis"])
        assert result.exit_code == 1
        assert "atlantis" in _json(result)["error"]


class TestCacheCommands:
    def test_info_empty(self, tmp_path: Path):
        cache_file = tmp_path / "cache.json"
        result = runner.invoke(app, ["--json", "cache", "info", "--cache-file", str(cache_file)])
        assert result.exit_code == 0
        assert _json(result) == {"cache_file": str(cache_file), "entries": 0}

    def test_clear(self, tmp_path: Path):
        cache_file = tmp_path / "cache.json"
        cache_file.write_text(json.dumps({"k": {"pricePerHour": 0.1, "ts": 4102444800000}}))
        assert _json(runner.invoke(app, ["--json", "cache", "info", "--cache-file", str(cache_file)]))["entries"] == 1

        result = runner.invoke(app, ["--json", "cache", "clear", "--cache-file", str(cache_file)])
        assert result.exit_code == 0
        assert _json(result) == {"cache_file": str(cache_file), "removed": 1, "written": True}
        assert json.loads(cache_file.read_text()) == {}

    def test_text_output(self, tmp_path: Path):
        result = runner.invoke(app, ["cache", "info", "--cache-file", str(tmp_path / "cache.json")])
        assert result.exit_code == 0
        assert "Pricing cache:" in result.output
        assert "entries)" in result.output


class TestQuotaCommand:
    def _usages(self, tmp_path: Path, compute_limit: int) -> Path:
        path = tmp_path / "usages.json"
        path.write_text(
            json.dumps(
                {
                    "eastus": {
                        "compute": {"value": [{"limit": compute_limit, "currentValue": 0, "unit": "Count"}]},
                        "network": {"value": [{"limit": 10, "currentValue": 0, "unit": "Count"}]},
                    }
                }
            )
        )
        return path

    def test_sufficient(self, tmp_path: Path):
        usages = self._usages(tmp_path, compute_limit=10)
        result = runner.invoke(app, ["--json", "quota", "--usages", str(usages), "--regions", "eastus"])
        assert result.exit_code == 0
        assert _json(result) == {"shortages": [], "summary": "All required quotas appear sufficient."}

    def test_shortage_exits_nonzero(self, tmp_path: Path):
        usages = self._usages(tmp_path, compute_limit=1)
        result = runner.invoke(app, ["--json", "quota", "--usages", str(usages), "--regions", "eastus", "--validators", "4"])
        assert result.exit_code == 1
        (shortage,) = _json(result)["shortages"]
        assert shortage == {"namespace": "compute", "required": 4, "deficit": 3.0, "region": "eastus"}

    def test_text_output(self, tmp_path: Path):
        usages = self._usages(tmp_path, compute_limit=1)
        result = runner.invoke(app, ["quota", "--usages", str(usages), "--regions", "eastus"])
        assert result.exit_code == 1
        assert "Quota Shortages" in result.output

    def test_bad_snapshot(self, tmp_path: Path):
        path = tmp_path / "usages.json"
        path.write_text("[]")
        result = runner.invoke(app, ["--json", "quota", "--usages", str(path)])
        assert result.exit_code == 1
        assert "must map regions" in _json(result)["error"]
