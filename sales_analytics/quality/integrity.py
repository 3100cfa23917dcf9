"""
Referential Integrity Checks

Rule-based checks over the canonical views, in the style of the platform's
data validators. Each check reports the rows that reference a missing parent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


class CheckSeverity(str, Enum):
    """Severity levels for integrity failures"""
    ERROR = "error"  # offending rows are excluded
    WARNING = "warning"  # rows kept, grouped under the unknown label


@dataclass
class IntegrityCheck:
    """Single integrity check result"""
    name: str
    passed: bool
    severity: CheckSeverity
    message: str
    failed_rows: int = 0
    total_rows: int = 0
    details: Optional[Dict[str, Any]] = None


@dataclass
class ReferenceRule:
    """Child column that must reference a parent key"""
    child: str
    column: str
    parent: str
    parent_column: str
    severity: CheckSeverity = CheckSeverity.WARNING

    @property
    def name(self) -> str:
        return f"ref_{self.child}_{self.column}"


class IntegrityValidator:
    """
    Runs referential integrity rules over a set of named frames.

    Example:
        validator = IntegrityValidator()
        validator.add_reference("order_line", "order_id", "order", "order_id",
                                severity=CheckSeverity.ERROR)
        checks = validator.validate(frames)
    """

    def __init__(self):
        self._rules: List[ReferenceRule] = []

    def add_reference(
        self,
        child: str,
        column: str,
        parent: str,
        parent_column: str,
        severity: CheckSeverity = CheckSeverity.WARNING,
    ) -> "IntegrityValidator":
        """Add a child→parent reference rule"""
        self._rules.append(ReferenceRule(child, column, parent, parent_column, severity))
        return self

    @property
    def rules(self) -> List[ReferenceRule]:
        return list(self._rules)

    @staticmethod
    def orphans(
        child_df: pl.DataFrame,
        column: str,
        parent_df: pl.DataFrame,
        parent_column: str,
    ) -> pl.DataFrame:
        """Rows of child_df whose non-null column value has no parent"""
        parents = parent_df.select(pl.col(parent_column).alias(column)).unique()
        return child_df.filter(pl.col(column).is_not_null()).join(
            parents, on=column, how="anti"
        )

    def _check(self, rule: ReferenceRule, frames: Dict[str, pl.DataFrame]) -> IntegrityCheck:
        child_df = frames[rule.child]
        orphan_rows = self.orphans(child_df, rule.column, frames[rule.parent], rule.parent_column)
        failed = orphan_rows.height
        passed = failed == 0
        return IntegrityCheck(
            name=rule.name,
            passed=passed,
            severity=rule.severity,
            message=(
                f"{rule.child}.{rule.column} has {failed} rows without a {rule.parent}"
                if not passed else "Referential integrity maintained"
            ),
            failed_rows=failed,
            total_rows=child_df.height,
            details={"sample": orphan_rows[rule.column].head(5).to_list()} if not passed else None,
        )

    def validate(self, frames: Dict[str, pl.DataFrame]) -> List[IntegrityCheck]:
        """
        Run all rules against the given frames.

        Args:
            frames: Canonical frames keyed by entity name

        Returns:
            One IntegrityCheck per rule
        """
        results = []
        for rule in self._rules:
            result = self._check(rule, frames)
            results.append(result)
            if not result.passed:
                logger.warning(
                    f"Integrity check failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )
        return results


def create_canonical_validator() -> IntegrityValidator:
    """Validator with the reference rules of the canonical model"""
    return (
        IntegrityValidator()
        .add_reference("order_line", "order_id", "order", "order_id", severity=CheckSeverity.ERROR)
        .add_reference("order_line", "product_id", "product", "product_id")
        .add_reference("product", "category_id", "category", "category_id")
        .add_reference("order", "customer_id", "customer", "customer_id")
        .add_reference("order", "employee_id", "employee", "employee_id")
        .add_reference("order", "ship_via", "shipper", "shipper_id")
    )
