"""
Schema Resolution Module
"""
from .registry import REGISTRY, CanonicalField, Entity, EntitySchema, FieldKind
from .resolver import ResolvedEntity, ResolvedSchema, SchemaResolver

__all__ = [
    "REGISTRY",
    "CanonicalField",
    "Entity",
    "EntitySchema",
    "FieldKind",
    "ResolvedEntity",
    "ResolvedSchema",
    "SchemaResolver",
]
