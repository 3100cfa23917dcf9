"""
Analytics Run Orchestrator

Runs the full computation over one source snapshot:
1. Resolve the source schema (fatal on failure)
2. Build canonical views
3. Per order shard: SalesRecords, partial aggregates, monthly product revenue
4. Merge shards and finalize report tables
5. Classify product trends over the complete monthly series
"""

import contextvars
import dataclasses
import threading
from concurrent.futures import ThreadPoolExecutor
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import polars as pl
import structlog

from sales_analytics.aggregation.engine import AggregationEngine, count_undated
from sales_analytics.aggregation.reports import ReportName, build_report_requests
from sales_analytics.canonical.builder import CanonicalViewBuilder, CanonicalViews
from sales_analytics.config import Settings, get_settings
from sales_analytics.diagnostics import RunDiagnostics
from sales_analytics.errors import RunCancelled
from sales_analytics.metrics.orders import OrderMetricsComputer, from_units, monthly_product_revenue
from sales_analytics.schema.resolver import ResolvedSchema, SchemaResolver
from sales_analytics.sources.base import RecordSource
from sales_analytics.trends.classifier import Trend, TrendClassifier
from .cache import SnapshotCache
from .sharding import split_orders

logger = structlog.get_logger(__name__)

REPORT_CACHE_KEY = "report"


def report_cache_key(shard_count: int) -> str:
    return f"{REPORT_CACHE_KEY}:{shard_count}"


@dataclass
class ShardResult:
    """Partial output of one order shard"""
    index: int
    partials: Dict[ReportName, pl.DataFrame]
    sales: pl.DataFrame
    monthly: pl.DataFrame
    diagnostics: RunDiagnostics


@dataclass
class AnalyticsReport:
    """Result tables of a run together with its diagnostics"""
    tables: Dict[ReportName, pl.DataFrame]
    sales_records: pl.DataFrame
    monthly_product_revenue: pl.DataFrame
    diagnostics: RunDiagnostics
    snapshot_id: Optional[str] = None
    shard_count: int = 1
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def __getitem__(self, name: Union[str, ReportName]) -> pl.DataFrame:
        return self.tables[ReportName(name)]

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def to_dicts(self) -> Dict[str, List[Dict[str, Any]]]:
        """Every report table as a list of row dicts"""
        return {name.value: table.to_dicts() for name, table in self.tables.items()}

    def copy(self) -> "AnalyticsReport":
        """Report sharing the immutable frames but owning its table map and diagnostics"""
        return dataclasses.replace(
            self,
            tables=dict(self.tables),
            diagnostics=deepcopy(self.diagnostics),
        )


class SalesAnalytics:
    """
    Schema-tolerant sales analytics over a record source.

    Every component receives its inputs explicitly; nothing resolves names
    against global state.

    Example:
        analytics = SalesAnalytics(FileSource("data/northwind"))
        report = analytics.run(shards=4)
        report["top_products"]
        report.diagnostics.to_dict()
    """

    def __init__(
        self,
        source: RecordSource,
        settings: Optional[Settings] = None,
        resolver: Optional[SchemaResolver] = None,
        cache: Optional[SnapshotCache] = None,
    ):
        self.source = source
        self.settings = settings or get_settings()
        self.resolver = resolver or SchemaResolver()
        self.cache = cache if cache is not None else SnapshotCache()
        self.requests = build_report_requests(self.settings.analytics)
        self.classifier = TrendClassifier(self.settings.analytics)

    def _new_diagnostics(self) -> RunDiagnostics:
        return RunDiagnostics(sample_size=self.settings.analytics.diagnostics_sample_size)

    def resolve_schema(self) -> ResolvedSchema:
        """Resolve the source schema; raises SchemaResolutionError"""
        return self.resolver.resolve_all(self.source)

    def build_views(self, diagnostics: Optional[RunDiagnostics] = None) -> CanonicalViews:
        """Canonical views of the current snapshot"""
        builder = CanonicalViewBuilder(
            diagnostics=diagnostics if diagnostics is not None else self._new_diagnostics(),
            settings=self.settings.source,
            registry=self.resolver.registry,
        )
        return builder.build(self.source, self.resolve_schema())

    def sales_records(self) -> pl.DataFrame:
        """SalesRecord of every order, ordered by order_id"""
        return self.run().sales_records

    def _process_shard(
        self,
        index: int,
        views: CanonicalViews,
        shard: CanonicalViews,
        cancel_event: Optional[threading.Event],
    ) -> ShardResult:
        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelled(f"Run cancelled before shard {index}")

        with structlog.contextvars.bound_contextvars(shard=index):
            return self._compute_shard(index, views, shard)

    def _compute_shard(self, index: int, views: CanonicalViews, shard: CanonicalViews) -> ShardResult:
        diagnostics = self._new_diagnostics()
        metrics = OrderMetricsComputer(diagnostics).compute(shard)
        diagnostics.undated_orders = count_undated(metrics.sales)

        # labels come from the full dimension tables
        engine = AggregationEngine(views, self.settings.analytics)
        partials = {name: engine.partial(request, metrics) for name, request in self.requests.items()}

        logger.debug("Shard processed", orders=metrics.sales.height)
        return ShardResult(
            index=index,
            partials=partials,
            sales=metrics.sales,
            monthly=monthly_product_revenue(metrics.lines, metrics.sales),
            diagnostics=diagnostics,
        )

    def _merge(
        self,
        views: CanonicalViews,
        results: List[ShardResult],
    ) -> Dict[ReportName, pl.DataFrame]:
        engine = AggregationEngine(views, self.settings.analytics)
        tables = {
            name: engine.finalize(request, engine.merge(request, [r.partials[name] for r in results]))
            for name, request in self.requests.items()
        }
        return tables

    def run(
        self,
        shards: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AnalyticsReport:
        """
        Compute every report table.

        Cached reports are keyed by source snapshot and shard count. Every
        call returns its own AnalyticsReport, so callers may mutate tables
        or diagnostics without affecting later calls.

        Args:
            shards: Order shards to process in parallel (default from settings)
            cancel_event: When set, the run stops before the next shard

        Returns:
            AnalyticsReport

        Raises:
            SchemaResolutionError: the source schema matches no known variant
            ValueError: shards is less than one
            RunCancelled: cancel_event was set; nothing is cached
        """
        shard_count = shards if shards is not None else self.settings.analytics.shard_count
        snapshot_id = self.source.snapshot_id()

        with structlog.contextvars.bound_contextvars(snapshot_id=snapshot_id, shards=shard_count):
            use_cache = self.settings.analytics.enable_cache and snapshot_id is not None
            cache_key = report_cache_key(shard_count)
            if use_cache:
                cached = self.cache.get(snapshot_id, cache_key)
                if cached is not None:
                    logger.info("Serving cached analytics report")
                    return cached.copy()

            report = self._compute(snapshot_id, shard_count, cancel_event)

            if use_cache:
                self.cache.put(snapshot_id, cache_key, report.copy())
            return report

    def _compute(
        self,
        snapshot_id: Optional[str],
        shard_count: int,
        cancel_event: Optional[threading.Event],
    ) -> AnalyticsReport:
        started_at = datetime.utcnow()
        logger.info("Starting analytics run")

        diagnostics = self._new_diagnostics()
        views = self.build_views(diagnostics)
        shard_views = split_orders(views, shard_count)

        workers = min(shard_count, self.settings.analytics.max_workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # each shard runs in a copy of the caller's context to keep the bound run fields
            futures = [
                pool.submit(
                    contextvars.copy_context().run,
                    self._process_shard, index, views, shard, cancel_event,
                )
                for index, shard in enumerate(shard_views)
            ]
            results = [future.result() for future in futures]

        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelled("Run cancelled before merge")

        diagnostics.merge(r.diagnostics for r in results)
        tables = self._merge(views, results)

        # trend classification needs every shard's contribution
        monthly = (
            pl.concat([r.monthly for r in results], how="vertical_relaxed")
            .group_by(["product_id", "month"])
            .agg(pl.col("revenue_units").sum())
            .with_columns(from_units(pl.col("revenue_units")).alias("revenue"))
            .sort(["product_id", "month"])
        )
        classified = self.classifier.classify(monthly)
        tables[ReportName.DECLINING_PRODUCTS] = self.classifier.top(
            classified, Trend.DECLINING, views.products
        )
        tables[ReportName.INCREASING_PRODUCTS] = self.classifier.top(
            classified, Trend.INCREASING, views.products
        )

        sales = pl.concat([r.sales for r in results], how="vertical_relaxed").sort("order_id")

        report = AnalyticsReport(
            tables={name: tables[name] for name in ReportName},
            sales_records=sales,
            monthly_product_revenue=monthly,
            diagnostics=diagnostics,
            snapshot_id=snapshot_id,
            shard_count=shard_count,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )

        if diagnostics.total_excluded:
            logger.warning(
                f"Excluded {diagnostics.total_excluded} records",
                excluded=diagnostics.excluded,
                samples=diagnostics.samples,
            )
        logger.info(
            "Analytics run complete",
            orders=sales.height,
            duration=f"{report.duration_seconds:.2f}s",
        )
        return report
