"""Two-tier pricing cache: a JSON file shared across runs plus a per-process map.

File format (shared with other tooling, so ``ts`` stays in epoch milliseconds):

    {"virtual-machine|standard_d4s_v5|eastus|usd": {"pricePerHour": 0.192, "ts": 1700000000000}}
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_CACHE_FILE = Path.home() / ".nodeplan" / "pricing-cache.json"

Clock = Callable[[], float]


def _now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(resource_type: str, sku: str, region: str, currency: str) -> str:
    return f"{resource_type}|{sku}|{region}|{currency}".lower()


@dataclass
class CacheRecord:
    price_per_hour: float
    ts: int  # epoch ms

    def to_dict(self) -> dict:
        return {"pricePerHour": self.price_per_hour, "ts": self.ts}

    @classmethod
    def from_dict(cls, data: dict) -> CacheRecord:
        return cls(price_per_hour=float(data["pricePerHour"]), ts=int(data["ts"]))


class PricingCacheStore:
    """File-backed tier with lazy TTL expiry and explicit save()."""

    def __init__(
        self,
        cache_file: str | Path = DEFAULT_CACHE_FILE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        disabled: bool = False,
        clock: Clock = _now_ms,
    ):
        self.cache_file = Path(cache_file).expanduser()
        self.ttl_ms = int(ttl_seconds * 1000)
        self.disabled = disabled
        self._clock = clock
        self._data: dict[str, CacheRecord] = {}
        self._dirty = False
        if not disabled:
            self._load()

    def _load(self) -> None:
        if not self.cache_file.exists():
            return
        try:
            raw = json.loads(self.cache_file.read_text(encoding="utf-8"))
            self._data = {key: CacheRecord.from_dict(rec) for key, rec in raw.items()}
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as exc:
            log.warning("Ignoring unreadable pricing cache %s: %s", self.cache_file, exc)
            self._data = {}

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> CacheRecord | None:
        if self.disabled:
            return None
        rec = self._data.get(key)
        if rec is None:
            return None
        if self._clock() - rec.ts > self.ttl_ms:
            del self._data[key]
            self._dirty = True
            return None
        return rec

    def set(self, key: str, price_per_hour: float) -> None:
        if self.disabled:
            return
        self._data[key] = CacheRecord(price_per_hour=price_per_hour, ts=int(self._clock()))
        self._dirty = True

    def save(self) -> bool:
        """Write the store if it changed. Returns True only when a write happened."""
        if self.disabled or not self._dirty:
            return False
        payload = {key: rec.to_dict() for key, rec in self._data.items()}
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            log.warning("Could not write pricing cache %s: %s", self.cache_file, exc)
            return False
        self._dirty = False
        return True

    def clear(self) -> None:
        self._data = {}
        self._dirty = True


class MemoryPricingCache:
    """In-process tier; records older than the TTL read as misses."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Clock = _now_ms):
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock
        self._data: dict[str, CacheRecord] = {}

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> CacheRecord | None:
        rec = self._data.get(key)
        if rec is None or self._clock() - rec.ts > self.ttl_ms:
            return None
        return rec

    def put(self, key: str, record: CacheRecord) -> None:
        self._data[key] = record

    def set(self, key: str, price_per_hour: float) -> None:
        self._data[key] = CacheRecord(price_per_hour=price_per_hour, ts=int(self._clock()))

    def clear(self) -> None:
        self._data.clear()


class PricingCache:
    """Read-through, write-through composition of the two tiers.

    Lookups check the persistent store first and hydrate the memory tier on a
    hit, so later lookups in the same process skip the file entirely.
    """

    def __init__(self, persistent: PricingCacheStore | None = None, memory: MemoryPricingCache | None = None):
        self.persistent = persistent
        self.memory = memory if memory is not None else MemoryPricingCache()

    def get(self, key: str) -> float | None:
        if self.persistent is not None:
            rec = self.persistent.get(key)
            if rec is not None:
                self.memory.put(key, rec)
                log.debug("Pricing cache hit (persistent): %s", key)
                return rec.price_per_hour

        rec = self.memory.get(key)
        if rec is not None:
            log.debug("Pricing cache hit (memory): %s", key)
            return rec.price_per_hour
        return None

    def set(self, key: str, price_per_hour: float) -> None:
        self.memory.set(key, price_per_hour)
        if self.persistent is not None:
            self.persistent.set(key, price_per_hour)
            self.persistent.save()

    def clear(self, persistent: bool = False) -> None:
        self.memory.clear()
        if persistent and self.persistent is not None:
            self.persistent.clear()
            self.persistent.save()
