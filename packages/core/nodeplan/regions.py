"""Region catalog — static Azure region metadata and RPC capability presets.

Reference data lives in data/regions.yaml and data/rpc_types.yaml; it is
loaded once per catalog and never mutated afterwards.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from nodeplan.plan import RegionInfo, RpcCapabilitySet

_DATA_DIR = Path(__file__).parent / "data"

_COUNTRY_CODE = re.compile(r"^[A-Z]{2,3}$")


class RpcTypeDef:
    """A named RPC preset and its default capability flags."""

    __slots__ = ("key", "name", "description", "defaults")

    def __init__(self, key: str, name: str, description: str, defaults: RpcCapabilitySet):
        self.key = key
        self.name = name
        self.description = description
        self.defaults = defaults

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "capabilities": self.defaults.enabled(),
        }


class RegionCatalog:
    """Lookup-by-classification, country and code over the bundled region table."""

    def __init__(self, data_dir: str | Path | None = None):
        self._dir = Path(data_dir) if data_dir else _DATA_DIR
        # name -> RegionInfo, in file order
        self._regions: dict[str, RegionInfo] = {}
        self._rpc_types: dict[str, RpcTypeDef] = {}
        self._load()

    def _load(self) -> None:
        data = yaml.safe_load((self._dir / "regions.yaml").read_text())
        for entry in data.get("regions", []):
            info = RegionInfo.model_validate(entry)
            self._regions[info.name] = info

        data = yaml.safe_load((self._dir / "rpc_types.yaml").read_text())
        for key, entry in (data.get("rpc_types") or {}).items():
            flags = {cap: True for cap in entry.get("capabilities", [])}
            self._rpc_types[key] = RpcTypeDef(
                key=key,
                name=entry.get("name", key),
                description=entry.get("description", ""),
                defaults=RpcCapabilitySet(**flags),
            )

    # Regions

    def get(self, name: str) -> RegionInfo | None:
        return self._regions.get(name)

    def exists(self, name: str) -> bool:
        return name in self._regions

    def names(self) -> list[str]:
        return list(self._regions)

    def all(self) -> list[RegionInfo]:
        return list(self._regions.values())

    def by_classification(self, classification: str) -> list[str]:
        return [r.name for r in self._regions.values() if r.classification == classification]

    def by_country_code(self, code: str) -> list[str]:
        code = code.lower()
        return [r.name for r in self._regions.values() if r.country_code.lower() == code]

    def by_country(self, country: str) -> list[str]:
        country = country.lower()
        return [r.name for r in self._regions.values() if r.country.lower() == country]

    def validate(self, names: Iterable[str]) -> list[str]:
        """Return the names that are not in the catalog, in input order."""
        return [n for n in names if n not in self._regions]

    def resolve_exclusions(self, tokens: Iterable[str]) -> list[str]:
        """Expand exclusion tokens into region names.

        Each token is tried as an exact region name, then as a 2-3 letter
        uppercase country code, then as a country name. Tokens that match
        nothing are ignored.
        """
        excluded: list[str] = []
        for token in tokens:
            trimmed = token.strip()
            if not trimmed:
                continue
            if trimmed in self._regions:
                matches = [trimmed]
            elif _COUNTRY_CODE.match(trimmed):
                matches = self.by_country_code(trimmed)
            else:
                matches = self.by_country(trimmed)
            for name in matches:
                if name not in excluded:
                    excluded.append(name)
        return excluded

    # RPC presets

    def rpc_types(self) -> list[str]:
        return list(self._rpc_types)

    def is_rpc_type(self, name: str) -> bool:
        return name in self._rpc_types

    def rpc_type(self, name: str) -> RpcTypeDef:
        try:
            return self._rpc_types[name]
        except KeyError:
            raise KeyError(f"Unknown RPC node type: {name!r}") from None

    def capabilities_for(self, rpc_type: str, overrides: Mapping[str, bool] | None = None) -> RpcCapabilitySet:
        """Default flags for an RPC type with overrides shallow-merged on top."""
        defaults = self.rpc_type(rpc_type).defaults
        if not overrides:
            return defaults
        return defaults.model_copy(update={k: bool(v) for k, v in overrides.items() if k in RpcCapabilitySet.model_fields})


@lru_cache(maxsize=1)
def get_catalog() -> RegionCatalog:
    """Shared catalog over the bundled reference data."""
    return RegionCatalog()
