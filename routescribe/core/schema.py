"""
Model Schema Resolution: what the engine knows about Eloquent models.

A SchemaProvider answers two questions about a class name: is it a model,
and what are its declared fields, relations and columns. Providers never
raise for an unknown or broken class; CachedSchemaResolver additionally
turns any provider failure into an empty schema and memoizes per class.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Protocol

from tree_sitter import Node

from routescribe.cache.class_cache import ClassCache
from routescribe.core.class_index import ClassIndex
from routescribe.core.migrations import read_migrations
from routescribe.core.naming import snake, table_name
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    array_items,
    basename,
    call_arguments,
    call_name,
    find_kind,
    is_this,
    kind_of,
    pretty,
    receiver,
    string_list,
    string_value,
    unwrap,
)
from routescribe.core.unit import ClassDecl, MethodDecl
from routescribe.models.schema_models import (
    RELATION_FACTORIES,
    RELATION_TYPES,
    ColumnInfo,
    ModelSchema,
    RelationInfo,
)

logger = logging.getLogger("routescribe.schema")

MODEL_BASES = (
    "Illuminate\\Database\\Eloquent\\Model",
    "Illuminate\\Foundation\\Auth\\User",
    "Illuminate\\Database\\Eloquent\\Relations\\Pivot",
)

# Short names that are never models even when they resolve into a model namespace
NON_MODEL_NAMES = frozenset(
    {
        "app", "arr", "artisan", "auth", "broadcast", "bus", "cache", "carbon", "config", "cookie",
        "crypt", "date", "db", "event", "file", "gate", "hash", "http", "lang", "log", "mail",
        "notification", "password", "queue", "ratelimiter", "redirect", "redis", "request",
        "response", "route", "schema", "session", "storage", "str", "url", "validator", "view",
    }
)
NON_MODEL_SUFFIXES = (
    "Controller", "Request", "Resource", "Collection", "Exception", "Job", "Event", "Listener",
    "Mail", "Notification", "Policy", "Service", "Repository", "Facade", "Rule", "Middleware",
)


class SchemaProvider(Protocol):
    """Pluggable model introspection."""

    def is_model(self, fqcn: str) -> bool: ...

    def resolve(self, fqcn: str) -> ModelSchema: ...


class NullSchemaProvider:
    """Nothing is a model."""

    def is_model(self, fqcn: str) -> bool:
        return False

    def resolve(self, fqcn: str) -> ModelSchema:
        return ModelSchema(class_name=fqcn)


class StaticSchemaProvider:
    """In-memory FQCN → ModelSchema mapping."""

    def __init__(self, schemas: Mapping[str, ModelSchema] | None = None) -> None:
        self._schemas: dict[str, ModelSchema] = {}
        for fqcn, schema in (schemas or {}).items():
            self.add(fqcn, schema)

    def add(self, fqcn: str, schema: ModelSchema) -> None:
        fqcn = fqcn.lstrip("\\")
        self._schemas[fqcn.lower()] = schema.model_copy(update={"class_name": schema.class_name or fqcn})

    def is_model(self, fqcn: str) -> bool:
        return fqcn.lstrip("\\").lower() in self._schemas

    def resolve(self, fqcn: str) -> ModelSchema:
        found = self._schemas.get(fqcn.lstrip("\\").lower())
        return found.model_copy(deep=True) if found is not None else ModelSchema(class_name=fqcn)


class ConventionSchemaProvider:
    """Classes declared directly in a model namespace are models with a conventional table.

    Used when no project sources are available: the schema carries only the
    table name, and examples fall back to name-based common fields.
    """

    def __init__(self, namespaces: Iterable[str]) -> None:
        self.namespaces = {ns.strip("\\").lower() for ns in namespaces}

    def is_model(self, fqcn: str) -> bool:
        namespace, _, short = fqcn.lstrip("\\").rpartition("\\")
        if not short or namespace.lower() not in self.namespaces:
            return False
        if short.lower() in NON_MODEL_NAMES or short.endswith(NON_MODEL_SUFFIXES):
            return False
        return short[:1].isupper()

    def resolve(self, fqcn: str) -> ModelSchema:
        return ModelSchema(class_name=fqcn, table=table_name(basename(fqcn)))


class SourceSchemaProvider:
    """Reads model declarations from project sources and columns from migrations."""

    def __init__(
        self,
        index: ClassIndex,
        columns: Mapping[str, dict[str, ColumnInfo]] | None = None,
    ) -> None:
        self.index = index
        self.columns = dict(columns or {})

    @classmethod
    def for_project(cls, root: str | Path, index: ClassIndex | None = None) -> SourceSchemaProvider:
        return cls(index or ClassIndex.from_directory(root), read_migrations(root))

    def is_model(self, fqcn: str) -> bool:
        decl = self.index.find(fqcn)
        if decl is None or decl.kind != "class":
            return False
        return self.index.is_subclass_of(decl.fqcn, MODEL_BASES)

    def resolve(self, fqcn: str) -> ModelSchema:
        decl = self.index.find(fqcn)
        if decl is None:
            return ModelSchema(class_name=fqcn)

        schema = ModelSchema(class_name=decl.fqcn)
        table = self._string_property(decl, "table")
        schema.table = table or table_name(decl.name)
        schema.primary_key = self._string_property(decl, "primaryKey") or "id"
        schema.fillable = self._list_property(decl, "fillable")
        schema.hidden = self._list_property(decl, "hidden")
        schema.appends = self._list_property(decl, "appends")
        schema.casts = self._casts(decl)
        schema.relations = self._relations(decl, schema.primary_key)
        schema.columns = dict(self.columns.get(schema.table, {}))
        return schema

    # ── Properties ──

    def _property(self, decl: ClassDecl, name: str) -> tuple[ClassDecl, Node] | None:
        """Nearest declaration of a property along the class and its indexed ancestors."""
        for owner_name in [decl.fqcn, *self.index.ancestors(decl.fqcn)]:
            owner = self.index.find(owner_name)
            if owner is None:
                continue
            value = owner.property_value(name)
            if value is not None:
                return owner, value
        return None

    def _string_property(self, decl: ClassDecl, name: str) -> str | None:
        found = self._property(decl, name)
        return string_value(found[1]) if found is not None else None

    def _list_property(self, decl: ClassDecl, name: str) -> list[str]:
        found = self._property(decl, name)
        return string_list(found[1]) if found is not None else []

    def _casts(self, decl: ClassDecl) -> dict[str, str]:
        casts: dict[str, str] = {}
        found = self._property(decl, "casts")
        if found is not None:
            casts.update(self._cast_map(*found))
        method = self.index.find_method(decl.fqcn, "casts")
        if method is not None:
            owner, casts_method = method
            returned = _returned_expression(casts_method)
            if returned is not None:
                casts.update(self._cast_map(owner, returned))
        return casts

    @staticmethod
    def _cast_map(owner: ClassDecl, node: Node) -> dict[str, str]:
        result: dict[str, str] = {}
        for key_node, value_node in array_items(node):
            field = string_value(key_node) if key_node is not None else None
            if not field:
                continue
            literal = string_value(value_node)
            if literal is not None:
                # decimal:2, datetime:Y-m-d
                result[field] = literal.split(":", 1)[0].lower()
            else:
                reference = owner.unit.class_reference(value_node, owner)
                result[field] = basename(reference) if reference else pretty(value_node)
        return result

    # ── Relations ──

    def _relations(self, decl: ClassDecl, primary_key: str) -> dict[str, RelationInfo]:
        relations: dict[str, RelationInfo] = {}
        for owner_name in [decl.fqcn, *self.index.ancestors(decl.fqcn)]:
            owner = self.index.find(owner_name)
            if owner is None:
                continue
            for method in owner.methods.values():
                if method.name in relations or not _relation_candidate(method):
                    continue
                try:
                    relation = self._relation(owner, decl, method, primary_key)
                except Exception as e:
                    logger.debug(f"Relation {decl.fqcn}::{method.name} skipped: {e}")
                    continue
                if relation is not None:
                    relations[method.name] = relation
        return relations

    def _relation(
        self,
        owner: ClassDecl,
        model: ClassDecl,
        method: MethodDecl,
        primary_key: str,
    ) -> RelationInfo | None:
        declared = basename(method.return_type or "").lstrip("?")
        call = _relation_call(method)
        if call is None:
            if declared in RELATION_TYPES:
                return RelationInfo(type=declared)
            return None

        factory = call_name(call)
        relation_type = declared if declared in RELATION_TYPES else RELATION_FACTORIES[factory]
        args = call_arguments(call)
        related = owner.unit.class_reference(args[0], owner) if args else None
        literal_args = [string_value(arg) for arg in args]

        def arg(position: int) -> str | None:
            return literal_args[position] if position < len(literal_args) else None

        owner_key_name = f"{snake(model.name)}_id"
        if factory in ("hasOne", "hasMany"):
            return RelationInfo(
                type=relation_type,
                related=related,
                foreign_key=arg(1) or owner_key_name,
                local_key=arg(2) or primary_key,
            )
        if factory == "belongsTo":
            return RelationInfo(
                type=relation_type,
                related=related,
                foreign_key=arg(1) or f"{snake(method.name)}_id",
                owner_key=arg(2) or "id",
            )
        if factory in ("belongsToMany", "morphToMany", "morphedByMany"):
            related_key = f"{snake(basename(related))}_id" if related else None
            return RelationInfo(
                type=relation_type,
                related=related,
                foreign_key=arg(2) or owner_key_name,
                local_key=primary_key,
                owner_key=arg(3) or related_key,
            )
        return RelationInfo(type=relation_type, related=related)


class CachedSchemaResolver:
    """Schema lookups memoized per class for one analysis run.

    Provider failures degrade to an empty schema; the empty schema is
    cached too, so a broken class is introspected only once.
    """

    def __init__(self, provider: SchemaProvider, cache: ClassCache[ModelSchema]) -> None:
        self.provider = provider
        self.cache = cache
        self._models: dict[str, bool] = {}

    def is_model(self, fqcn: str | None) -> bool:
        if not fqcn:
            return False
        key = ClassCache.normalize(fqcn)
        if key not in self._models:
            try:
                self._models[key] = bool(self.provider.is_model(fqcn.lstrip("\\")))
            except Exception as e:
                logger.warning(f"Model check failed for {fqcn}: {e}")
                self._models[key] = False
        return self._models[key]

    def resolve(self, fqcn: str) -> ModelSchema:
        return self.cache.get_or_compute(fqcn, lambda: self._introspect(fqcn))

    def _introspect(self, fqcn: str) -> ModelSchema:
        try:
            schema = self.provider.resolve(fqcn.lstrip("\\"))
        except Exception as e:
            logger.warning(f"Schema introspection failed for {fqcn}: {e}")
            return ModelSchema(class_name=fqcn.lstrip("\\"))
        if not schema.class_name:
            schema = schema.model_copy(update={"class_name": fqcn.lstrip("\\")})
        return schema


def _relation_candidate(method: MethodDecl) -> bool:
    if not method.is_public or method.is_static or method.is_magic:
        return False
    return all(param.is_optional for param in method.parameters)


def _returned_expression(method: MethodDecl) -> Node | None:
    body = method.body
    if body is None:
        return None
    for statement in find_kind(body, NodeKind.RETURN, skip_closures=True):
        named = statement.named_children
        if named:
            return unwrap(named[0])
    return None


def _relation_call(method: MethodDecl) -> Node | None:
    """The `$this->hasMany(...)` call a relation method returns, under any chained constraints."""
    returned = _returned_expression(method)
    if returned is None:
        return None
    current: Node | None = returned
    while current is not None and kind_of(current) in INSTANCE_CALL_KINDS:
        if is_this(receiver(current)) and call_name(current) in RELATION_FACTORIES:
            return current
        current = receiver(current)
    return None
