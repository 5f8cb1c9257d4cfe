from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class RedemptionSnapshot:
    totals: Dict[str, int]
    per_category: Dict[str, Dict[str, int]]

    def as_dict(self) -> Dict[str, object]:
        return {
            "totals": dict(self.totals),
            "per_category": {key: dict(value) for key, value in self.per_category.items()},
        }


class RedemptionObservabilityStore:
    """Count redemption outcomes per category for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._totals: Dict[str, int] = defaultdict(int)
        self._per_category: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def record_outcome(self, category: str, outcome: str) -> None:
        with self._lock:
            self._totals[outcome] += 1
            self._per_category[category][outcome] += 1

    def snapshot(self) -> RedemptionSnapshot:
        with self._lock:
            totals = dict(self._totals)
            per_category = {key: dict(value) for key, value in self._per_category.items()}
        return RedemptionSnapshot(totals=totals, per_category=per_category)

    def reset(self) -> None:
        with self._lock:
            self._totals.clear()
            self._per_category.clear()


_STORE = RedemptionObservabilityStore()


def get_redemption_store() -> RedemptionObservabilityStore:
    return _STORE


__all__ = ["get_redemption_store", "RedemptionObservabilityStore", "RedemptionSnapshot"]
