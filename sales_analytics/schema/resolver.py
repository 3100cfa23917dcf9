"""
Schema Resolver

Selects, for every canonical field, the physical field a source actually
exposes. Resolution is a pure function of the observed field names; a
required field that matches no known variant aborts the run.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Mapping, Optional

import structlog

from sales_analytics.errors import SchemaResolutionError
from sales_analytics.sources.base import RecordSource
from .registry import REGISTRY, Entity, EntitySchema

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolvedEntity:
    """Physical table and field chosen for each canonical field"""
    entity: Entity
    table: str
    columns: Dict[str, Optional[str]]

    def source_column(self, canonical: str) -> Optional[str]:
        return self.columns[canonical]


@dataclass(frozen=True)
class ResolvedSchema:
    """Resolution of every canonical entity for one source"""
    entities: Dict[Entity, ResolvedEntity]

    def __getitem__(self, entity: Entity) -> ResolvedEntity:
        return self.entities[entity]


class SchemaResolver:
    """
    Resolves source schemas against the canonical registry.

    Example:
        resolver = SchemaResolver()
        resolver.register_variant(Entity.ORDER, "required_date", "dueDate")
        schema = resolver.resolve_all(source)
    """

    def __init__(self, registry: Optional[Mapping[Entity, EntitySchema]] = None):
        self._registry: Dict[Entity, EntitySchema] = dict(registry or REGISTRY)

    @property
    def registry(self) -> Dict[Entity, EntitySchema]:
        return dict(self._registry)

    def register_variant(self, entity: Entity, field: str, candidate: str, first: bool = False) -> None:
        """Add a physical name for a canonical field, lowest priority unless first"""
        schema = self._registry[entity]
        current = schema.field(field)
        if candidate in current.candidates:
            return
        candidates = (candidate,) + current.candidates if first else current.candidates + (candidate,)
        fields = tuple(
            replace(f, candidates=candidates) if f.name == field else f
            for f in schema.fields
        )
        self._registry[entity] = replace(schema, fields=fields)

    def register_table(self, entity: Entity, table: str) -> None:
        """Add a physical table name for an entity"""
        schema = self._registry[entity]
        if table not in schema.tables:
            self._registry[entity] = replace(schema, tables=schema.tables + (table,))

    def resolve(self, entity: Entity, observed: Iterable[str], table: Optional[str] = None) -> ResolvedEntity:
        """
        Resolve the field mapping of one entity.

        Args:
            entity: Canonical entity
            observed: Field names available in the source table
            table: Physical table name, defaults to the first registered one

        Returns:
            ResolvedEntity mapping canonical fields to source fields;
            optional fields absent from the source map to None

        Raises:
            SchemaResolutionError: a required field matches no known variant
        """
        schema = self._registry[entity]
        available = set(observed)
        columns: Dict[str, Optional[str]] = {}

        for f in schema.fields:
            match = next((c for c in f.candidates if c in available), None)
            if match is None and f.required:
                raise SchemaResolutionError(
                    entity.value, f.name, candidates=f.candidates, observed=available
                )
            columns[f.name] = match

        return ResolvedEntity(entity=entity, table=table or schema.tables[0], columns=columns)

    def resolve_all(self, source: RecordSource) -> ResolvedSchema:
        """Resolve every registered entity against a source"""
        entities = {}
        for entity, schema in self._registry.items():
            table = next((t for t in schema.tables if source.has_table(t)), None)
            if table is None:
                error = SchemaResolutionError(entity.value, candidates=schema.tables)
                logger.error("Schema resolution failed", entity=entity.value, error=str(error))
                raise error
            try:
                resolved = self.resolve(entity, source.fields(table), table=table)
            except SchemaResolutionError as e:
                logger.error(
                    "Schema resolution failed",
                    entity=entity.value,
                    field=e.field,
                    table=table,
                )
                raise
            entities[entity] = resolved
            logger.debug(
                "Resolved entity schema",
                entity=entity.value,
                table=table,
                columns={k: v for k, v in resolved.columns.items() if v != k},
            )

        logger.info("Source schema resolved", entities=len(entities))
        return ResolvedSchema(entities=entities)
