"""Tests for the regional quota check."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from nodeplan.errors import QuotaError
from nodeplan.plan import ResolvedTopology
from nodeplan.quota import QuotaShortage, QuotaUsage, evaluate_quota, load_usages, parse_usages, required_in_region


def _usage(namespace: str, limit: float, current: float, region: str = "eastus") -> QuotaUsage:
    return QuotaUsage(namespace=namespace, limit=limit, current=current, unit="Count", region=region)


@pytest.fixture
def topology(make_placement) -> ResolvedTopology:
    """validators=4 over eastus+westus2, rpcNodes=2 in eastus."""
    return ResolvedTopology(
        regions=["eastus", "westus2"],
        placements={
            "validators": make_placement("validators", 4, ["eastus", "westus2"]),
            "rpcNodes": make_placement("rpcNodes", 2, ["eastus"]),
        },
    )


class TestParseUsages:
    def test_arm_body(self):
        body = {
            "value": [
                {"name": {"value": "cores"}, "limit": 100, "currentValue": 12, "unit": "Count"},
                {"name": {"value": "virtualMachines"}, "limit": 25000},
            ]
        }
        usages = parse_usages(body, "compute", "eastus")
        assert usages == [_usage("compute", 100, 12), _usage("compute", 25000, 0)]
        assert usages[0].available == 88

    @pytest.mark.parametrize("body", [{}, {"value": None}, [], None])
    def test_missing_value_list(self, body):
        assert parse_usages(body, "network", "eastus") == []

    def test_unknown_namespace(self):
        with pytest.raises(ValueError, match="gpu"):
            parse_usages({"value": []}, "gpu", "eastus")


class TestRequiredInRegion:
    def test_split_across_regions(self, topology):
        assert required_in_region(topology, "eastus") == {"compute": 2, "network": 2, "storage": 1}
        assert required_in_region(topology, "westus2") == {"compute": 2, "network": 0, "storage": 1}

    def test_rpc_sub_roles_need_network(self, make_placement):
        topo = ResolvedTopology(
            regions=["eastus"],
            placements={"rpc-archive": make_placement("rpc-archive", 3, ["eastus"], rpc_type="archive")},
        )
        assert required_in_region(topo, "eastus")["network"] == 3


class TestEvaluateQuota:
    def test_sufficient(self, topology):
        usages = [
            _usage("compute", 10, 0),
            _usage("network", 10, 0),
            _usage("compute", 10, 0, region="westus2"),
            _usage("network", 10, 0, region="westus2"),
        ]
        evaluation = evaluate_quota(topology, usages)
        assert evaluation.sufficient
        assert evaluation.shortages == []
        assert evaluation.summary == "All required quotas appear sufficient."

    def test_headroom_summed_per_namespace(self, topology):
        usages = [
            _usage("compute", 5, 4),
            _usage("compute", 3, 2),
            _usage("network", 2, 0),
            _usage("compute", 2, 0, region="westus2"),
        ]
        assert evaluate_quota(topology, usages).sufficient

    def test_shortages_reported_per_region(self, topology):
        usages = [_usage("compute", 10, 9), _usage("network", 10, 0), _usage("compute", 10, 0, region="westus2")]
        evaluation = evaluate_quota(topology, usages)
        assert evaluation.shortages == [QuotaShortage(namespace="compute", required=2, deficit=1, region="eastus")]
        assert evaluation.summary == "1 quota shortage(s) detected."
        assert not evaluation.sufficient

    def test_no_usages_means_no_headroom(self, topology):
        evaluation = evaluate_quota(topology, [])
        assert [(s.region, s.namespace, s.deficit) for s in evaluation.shortages] == [
            ("eastus", "compute", 2),
            ("eastus", "network", 2),
            ("westus2", "compute", 2),
        ]

    def test_storage_only_checked_when_reported(self, topology):
        usages = [
            _usage("compute", 10, 0),
            _usage("network", 10, 0),
            _usage("storage", 250, 250),
            _usage("compute", 10, 0, region="westus2"),
        ]
        evaluation = evaluate_quota(topology, usages)
        assert evaluation.shortages == [QuotaShortage(namespace="storage", required=1, deficit=1, region="eastus")]


class TestLoadUsages:
    def test_json_snapshot(self, tmp_path: Path):
        path = tmp_path / "usages.json"
        path.write_text(
            json.dumps(
                {
                    "eastus": {
                        "compute": {"value": [{"limit": 10, "currentValue": 3, "unit": "Count"}]},
                        "network": {"value": [{"limit": 5, "currentValue": 5}]},
                    }
                }
            )
        )
        assert load_usages(path) == [_usage("compute", 10, 3), _usage("network", 5, 5)]

    def test_yaml_snapshot(self, tmp_path: Path):
        path = tmp_path / "usages.yaml"
        path.write_text("westus2:\n  storage:\n    value:\n      - {limit: 250, currentValue: 1}\n")
        assert load_usages(path) == [_usage("storage", 250, 1, region="westus2")]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(QuotaError, match="nope.json"):
            load_usages(tmp_path / "nope.json")

    @pytest.mark.parametrize(
        "content,match",
        [
            ("[1, 2]", "must map regions"),
            ('{"eastus": [1]}', "eastus"),
            ('{"eastus": {"gpu": {"value": []}}}', "gpu"),
        ],
    )
    def test_malformed_snapshot(self, tmp_path: Path, content, match):
        path = tmp_path / "usages.json"
        path.write_text(content)
        with pytest.raises(QuotaError, match=match):
            load_usages(path)
