"""
Run Diagnostics

Collects the recoverable errors of a run so that excluded rows are reported
alongside the results instead of being dropped silently.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from sales_analytics.errors import RecoverableRecordError
from sales_analytics.quality.integrity import IntegrityCheck


@dataclass
class RunDiagnostics:
    """Counts and sample keys of everything excluded during a run"""
    sample_size: int = 5
    excluded: Dict[str, int] = field(default_factory=dict)
    samples: Dict[str, List[str]] = field(default_factory=dict)
    duplicates_removed: Dict[str, int] = field(default_factory=dict)
    undated_orders: int = 0
    integrity_checks: List[IntegrityCheck] = field(default_factory=list)

    def record(self, error: RecoverableRecordError) -> None:
        """Count an excluded row and keep its key as a sample"""
        self.excluded[error.kind] = self.excluded.get(error.kind, 0) + 1
        keys = self.samples.setdefault(error.kind, [])
        if len(keys) < self.sample_size:
            keys.append(error.key)

    def record_duplicates(self, entity: str, count: int) -> None:
        if count:
            self.duplicates_removed[entity] = self.duplicates_removed.get(entity, 0) + count

    @property
    def total_excluded(self) -> int:
        return sum(self.excluded.values())

    @property
    def failed_checks(self) -> List[IntegrityCheck]:
        return [c for c in self.integrity_checks if not c.passed]

    def merge(self, others: Iterable["RunDiagnostics"]) -> "RunDiagnostics":
        """Combine shard diagnostics into this instance"""
        for other in others:
            for kind, count in other.excluded.items():
                self.excluded[kind] = self.excluded.get(kind, 0) + count
            for kind, keys in other.samples.items():
                merged = self.samples.setdefault(kind, [])
                merged.extend(keys[: max(self.sample_size - len(merged), 0)])
            for entity, count in other.duplicates_removed.items():
                self.record_duplicates(entity, count)
            self.undated_orders += other.undated_orders
            self.integrity_checks.extend(other.integrity_checks)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_excluded": self.total_excluded,
            "excluded": dict(self.excluded),
            "samples": {k: list(v) for k, v in self.samples.items()},
            "duplicates_removed": dict(self.duplicates_removed),
            "undated_orders": self.undated_orders,
            "integrity_checks": [
                {
                    "name": c.name,
                    "passed": c.passed,
                    "severity": c.severity.value,
                    "failed_rows": c.failed_rows,
                }
                for c in self.integrity_checks
            ],
        }
