"""
Error Taxonomy

Fatal errors abort a run. Recoverable record errors exclude a single row or
order line and are collected into the run diagnostics.
"""

from typing import Any, Iterable, Optional


class SalesAnalyticsError(Exception):
    """Base class for all analytics errors"""


class SchemaResolutionError(SalesAnalyticsError):
    """No known field variant matches the source schema of an entity."""

    def __init__(
        self,
        entity: str,
        field: Optional[str] = None,
        candidates: Iterable[str] = (),
        observed: Iterable[str] = (),
    ):
        self.entity = entity
        self.field = field
        self.candidates = list(candidates)
        self.observed = sorted(observed)
        if field is None:
            message = (
                f"No source table found for entity '{entity}'; "
                f"tried {self.candidates}"
            )
        else:
            message = (
                f"Cannot resolve field '{field}' of entity '{entity}': "
                f"none of {self.candidates} present in {self.observed}"
            )
        super().__init__(message)


class RunCancelled(SalesAnalyticsError):
    """Run abandoned between shards"""


class RecoverableRecordError(SalesAnalyticsError):
    """A single row or line that is excluded from the results."""

    kind = "record"

    def __init__(self, message: str, *key_parts: Any):
        self.key_parts = key_parts
        super().__init__(message)

    @property
    def key(self) -> str:
        """Identifier of the excluded row or line, e.g. '10248/11'"""
        return "/".join(str(part) for part in self.key_parts)


class DataTypeError(RecoverableRecordError):
    """A source value could not be coerced to its canonical type."""

    kind = "data_type"

    def __init__(self, entity: str, field: str, row_key: Any, value: Any = None, reason: str = "invalid value"):
        self.entity = entity
        self.field = field
        self.row_key = row_key
        self.value = value
        self.reason = reason
        super().__init__(
            f"{entity}.{field} at row {row_key!r}: {reason} ({value!r})"
        )

    @property
    def key(self) -> str:
        return f"{self.entity}:{self.row_key}"


class InvalidLineError(RecoverableRecordError):
    """An order line without quantity or unit price."""

    kind = "invalid_line"

    def __init__(self, order_id: Any, product_id: Any, field: str):
        self.order_id = order_id
        self.product_id = product_id
        self.field = field
        super().__init__(
            f"Order line {order_id}/{product_id} has no {field}", order_id, product_id
        )


class OrphanLineError(RecoverableRecordError):
    """An order line whose order does not exist."""

    kind = "orphan_line"

    def __init__(self, order_id: Any, product_id: Any):
        self.order_id = order_id
        self.product_id = product_id
        super().__init__(
            f"Order line {order_id}/{product_id} references unknown order {order_id}",
            order_id,
            product_id,
        )
