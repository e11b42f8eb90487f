"""Static hourly price estimates, used whenever a live price is unavailable."""

from __future__ import annotations

import re
from typing import Any

# Linux pay-as-you-go, USD/hour
VM_HOURLY: dict[str, float] = {
    "Standard_D2s_v5": 0.096,
    "Standard_D4s_v5": 0.192,
    "Standard_D8s_v5": 0.384,
    "Standard_D16s_v5": 0.768,
    "Standard_B2s": 0.041,
    "Standard_B4ms": 0.166,
}

RESOURCE_HOURLY: dict[str, float] = {
    "aks-cluster": 0.10,
    "log-analytics": 0.05,
    "application-insights": 0.01,
    "storage-account": 0.02,
    "virtual-network": 0.01,
    "load-balancer": 0.025,
    "public-ip": 0.005,
}

_VM_BACKED = ("aks-node-pool", "virtual-machine", "virtual-machine-scale-set")

DEFAULT_VM_HOURLY = 0.10
DEFAULT_HOURLY = 0.01

# Container Apps consumption rates, per second
ACA_VCPU_SECOND = 0.000024
ACA_GIB_SECOND = 0.000009

_MEMORY = re.compile(r"^\s*([\d.]+)\s*(Gi|G|Mi|M)?\s*$", re.IGNORECASE)


def memory_gib(raw: Any) -> float:
    """'4Gi' -> 4.0, '512Mi' -> 0.5, 2 -> 2.0. Unparseable values count as 0."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    match = _MEMORY.match(str(raw or ""))
    if not match:
        return 0.0
    value = float(match.group(1))
    unit = (match.group(2) or "Gi").lower()
    return value / 1024 if unit.startswith("m") else value


def container_app_hourly(cpu: float = 1.0, memory: Any = "2Gi") -> float:
    return cpu * ACA_VCPU_SECOND * 3600 + memory_gib(memory) * ACA_GIB_SECOND * 3600


def estimate_price(resource_type: str, sku: str, properties: dict[str, Any] | None = None) -> float:
    if resource_type in _VM_BACKED:
        return VM_HOURLY.get(sku, DEFAULT_VM_HOURLY)
    if resource_type == "container-app":
        props = properties or {}
        return container_app_hourly(float(props.get("cpu", 1.0)), props.get("memory", "2Gi"))
    return RESOURCE_HOURLY.get(resource_type, DEFAULT_HOURLY)
