"""
Canonical View Builder

Projects the physical source tables onto the canonical entities using a
resolved schema. Handles:
- Type coercion (keys to text, numbers, timestamps)
- Explicit nulls for optional fields the source does not expose
- Defaults (freight, discount)
- Exclusion of rows that fail coercion, reported as DataTypeError
- Duplicate keys
- Referential integrity between entities
"""

from dataclasses import dataclass, fields, replace
from typing import Dict, List, Optional

import polars as pl
import structlog

from sales_analytics.config import SourceSettings, get_settings
from sales_analytics.diagnostics import RunDiagnostics
from sales_analytics.errors import DataTypeError, OrphanLineError
from sales_analytics.quality.integrity import (
    CheckSeverity,
    IntegrityValidator,
    create_canonical_validator,
)
from sales_analytics.schema.registry import REGISTRY, Entity, EntitySchema, FieldKind
from sales_analytics.schema.resolver import ResolvedEntity, ResolvedSchema
from sales_analytics.sources.base import RecordSource

logger = structlog.get_logger(__name__)

DTYPES = {
    FieldKind.KEY: pl.Utf8,
    FieldKind.TEXT: pl.Utf8,
    FieldKind.NUMBER: pl.Float64,
    FieldKind.TIMESTAMP: pl.Datetime("us"),
}

ROW_INDEX = "_row"
ERROR_FIELD = "_error_field"
ERROR_REASON = "_error_reason"


def _raw(name: str) -> str:
    return f"_raw_{name}"


@dataclass(frozen=True)
class CanonicalViews:
    """Normalized projections of every canonical entity"""
    categories: pl.DataFrame
    customers: pl.DataFrame
    employees: pl.DataFrame
    products: pl.DataFrame
    shippers: pl.DataFrame
    orders: pl.DataFrame
    order_lines: pl.DataFrame

    def frames(self) -> Dict[str, pl.DataFrame]:
        """Frames keyed by canonical entity name"""
        return {
            Entity.CATEGORY.value: self.categories,
            Entity.CUSTOMER.value: self.customers,
            Entity.EMPLOYEE.value: self.employees,
            Entity.PRODUCT.value: self.products,
            Entity.SHIPPER.value: self.shippers,
            Entity.ORDER.value: self.orders,
            Entity.ORDER_LINE.value: self.order_lines,
        }

    def with_orders(self, orders: pl.DataFrame) -> "CanonicalViews":
        """Views restricted to the given orders and their lines"""
        lines = self.order_lines.join(orders.select("order_id"), on="order_id", how="semi")
        return replace(self, orders=orders, order_lines=lines)

    @property
    def row_counts(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name).height for f in fields(self)}


ATTRIBUTES = {
    Entity.CATEGORY: "categories",
    Entity.CUSTOMER: "customers",
    Entity.EMPLOYEE: "employees",
    Entity.PRODUCT: "products",
    Entity.SHIPPER: "shippers",
    Entity.ORDER: "orders",
    Entity.ORDER_LINE: "order_lines",
}


class CanonicalViewBuilder:
    """
    Builds CanonicalViews from a source and its resolved schema.

    Example:
        builder = CanonicalViewBuilder(diagnostics=diagnostics)
        views = builder.build(source, resolver.resolve_all(source))
    """

    def __init__(
        self,
        diagnostics: Optional[RunDiagnostics] = None,
        settings: Optional[SourceSettings] = None,
        registry: Optional[Dict[Entity, EntitySchema]] = None,
        validator: Optional[IntegrityValidator] = None,
    ):
        self.settings = settings or get_settings().source
        self.diagnostics = diagnostics or RunDiagnostics()
        self.registry = registry or REGISTRY
        self.validator = validator or create_canonical_validator()

    def _blank_to_null(self, df: pl.DataFrame) -> pl.DataFrame:
        """Trim text columns and turn blank strings into nulls"""
        text_cols = [c for c, dtype in df.schema.items() if dtype == pl.Utf8]
        return df.with_columns([
            pl.when(pl.col(c).str.strip_chars().str.len_chars() == 0)
            .then(None)
            .otherwise(pl.col(c).str.strip_chars())
            .alias(c)
            for c in text_cols
        ])

    def _coerce(self, column: str, dtype: pl.DataType, kind: FieldKind) -> pl.Expr:
        """Expression converting a source column to its canonical type"""
        col = pl.col(column)
        target = DTYPES[kind]

        if dtype == pl.Null:
            return col.cast(target)

        if kind in (FieldKind.KEY, FieldKind.TEXT):
            if dtype == pl.Float64 or dtype == pl.Float32:
                # 10248.0 from a lossy source is key "10248"
                return (
                    pl.when(col == col.round(0))
                    .then(col.cast(pl.Int64, strict=False).cast(pl.Utf8))
                    .otherwise(col.cast(pl.Utf8, strict=False))
                )
            return col.cast(pl.Utf8, strict=False)

        if kind is FieldKind.NUMBER:
            if dtype == pl.Utf8:
                return (
                    col.str.replace_all(r"[$€£¥,]", "")
                    .str.strip_chars()
                    .cast(pl.Float64, strict=False)
                )
            return col.cast(pl.Float64, strict=False)

        if dtype == pl.Utf8:
            return pl.coalesce([
                col.str.strptime(target, fmt, strict=False)
                for fmt in self.settings.date_formats
            ])
        if dtype == pl.Date or dtype == pl.Datetime:
            return col.cast(target)
        return col.cast(target, strict=False)

    def _stage(self, schema: EntitySchema, resolved: ResolvedEntity, raw: pl.DataFrame) -> pl.DataFrame:
        """Raw and coerced value side by side for every canonical field"""
        raw = self._blank_to_null(raw).with_row_index(ROW_INDEX)
        exprs: List[pl.Expr] = [pl.col(ROW_INDEX)]

        for f in schema.fields:
            source_column = resolved.source_column(f.name)
            if source_column is None:
                exprs.append(pl.lit(None, dtype=DTYPES[f.kind]).alias(f.name))
                exprs.append(pl.lit(None, dtype=pl.Utf8).alias(_raw(f.name)))
                continue
            exprs.append(self._coerce(source_column, raw.schema[source_column], f.kind).alias(f.name))
            exprs.append(pl.col(source_column).cast(pl.Utf8, strict=False).alias(_raw(f.name)))

        return raw.select(exprs)

    @staticmethod
    def _error_expr(schema: EntitySchema) -> List[pl.Expr]:
        """First failing field of each row and why, or null"""
        field_expr = None
        reason_expr = None
        for f in schema.fields:
            invalid = pl.col(_raw(f.name)).is_not_null() & pl.col(f.name).is_null()
            checks = [(invalid, "cannot coerce to " + f.kind.value)]
            if not f.nullable and f.default is None:
                checks.append((pl.col(_raw(f.name)).is_null(), "missing required value"))
            for condition, reason in checks:
                if field_expr is None:
                    field_expr = pl.when(condition).then(pl.lit(f.name))
                    reason_expr = pl.when(condition).then(pl.lit(reason))
                else:
                    field_expr = field_expr.when(condition).then(pl.lit(f.name))
                    reason_expr = reason_expr.when(condition).then(pl.lit(reason))
        return [
            field_expr.otherwise(None).alias(ERROR_FIELD),
            reason_expr.otherwise(None).alias(ERROR_REASON),
        ]

    def _apply_defaults(self, schema: EntitySchema, df: pl.DataFrame) -> pl.DataFrame:
        exprs = []
        for f in schema.fields:
            if f.default is None:
                continue
            expr = pl.col(f.name).fill_null(f.default)
            if schema.entity is Entity.ORDER_LINE and f.name == "discount":
                expr = expr.clip(0.0, 1.0)
            exprs.append(expr.alias(f.name))
        return df.with_columns(exprs) if exprs else df

    def project(self, schema: EntitySchema, resolved: ResolvedEntity, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Project one physical table onto its canonical entity.

        Rows failing coercion are excluded and recorded as DataTypeError;
        duplicate keys keep their first occurrence.
        """
        entity = schema.entity.value
        staged = self._stage(schema, resolved, raw).with_columns(self._error_expr(schema))

        rejected = staged.filter(pl.col(ERROR_FIELD).is_not_null())
        for row in rejected.iter_rows(named=True):
            row_key = row[_raw(schema.key)] if schema.key and row[_raw(schema.key)] is not None else row[ROW_INDEX]
            field_name = row[ERROR_FIELD]
            error = DataTypeError(
                entity,
                field_name,
                row_key=row_key,
                value=row[_raw(field_name)],
                reason=row[ERROR_REASON],
            )
            self.diagnostics.record(error)
            logger.warning(
                "Excluded row with invalid value",
                entity=entity,
                field=field_name,
                row_key=row_key,
                value=row[_raw(field_name)],
                reason=row[ERROR_REASON],
            )

        df = staged.filter(pl.col(ERROR_FIELD).is_null()).select(list(schema.field_names))
        df = self._apply_defaults(schema, df)

        if schema.unique_key:
            before = df.height
            df = df.unique(subset=list(schema.unique_key), keep="first", maintain_order=True)
            removed = before - df.height
            if removed:
                self.diagnostics.record_duplicates(entity, removed)
                logger.warning(f"Removed {removed} duplicate {entity} rows", key=list(schema.unique_key))

        return df

    def _exclude_orphan_lines(self, views: CanonicalViews) -> CanonicalViews:
        """Apply error-severity reference rules; lines without an order are dropped"""
        checks = self.validator.validate(views.frames())
        self.diagnostics.integrity_checks.extend(checks)

        for rule, check in zip(self.validator.rules, checks):
            if check.passed or check.severity is not CheckSeverity.ERROR:
                continue
            if rule.child != Entity.ORDER_LINE.value:
                continue
            frames = views.frames()
            orphans = IntegrityValidator.orphans(
                frames[rule.child], rule.column, frames[rule.parent], rule.parent_column
            )
            for row in orphans.iter_rows(named=True):
                self.diagnostics.record(OrphanLineError(row["order_id"], row["product_id"]))
            logger.warning(f"Excluded {orphans.height} order lines without an order")
            parents = frames[rule.parent].select(pl.col(rule.parent_column).alias(rule.column))
            views = replace(
                views,
                order_lines=views.order_lines.join(parents, on=rule.column, how="semi"),
            )
        return views

    def build(self, source: RecordSource, schema: ResolvedSchema) -> CanonicalViews:
        """
        Materialize every canonical entity.

        Args:
            source: Record source of the snapshot
            schema: Resolution produced by SchemaResolver.resolve_all

        Returns:
            CanonicalViews over the snapshot
        """
        projected = {}
        for entity, attribute in ATTRIBUTES.items():
            resolved = schema[entity]
            raw = source.read(resolved.table)
            projected[attribute] = self.project(self.registry[entity], resolved, raw)
            logger.debug(
                "Projected canonical entity",
                entity=entity.value,
                input_rows=raw.height,
                output_rows=projected[attribute].height,
            )

        views = self._exclude_orphan_lines(CanonicalViews(**projected))
        logger.info("Canonical views built", **views.row_counts)
        return views
