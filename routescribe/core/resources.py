"""
API Resource Shapes: the serialization structure of JsonResource classes.

A resource's shape is read from the array its toArray() returns. Flat shapes
(one class, nested resources referenced by name only) are memoized per class;
nested shapes are expanded on demand up to a depth limit, with a visited set
guarding against resources that reference each other.
"""

from __future__ import annotations

import logging

from tree_sitter import Node

from routescribe.cache.class_cache import ClassCache
from routescribe.core.class_index import ClassIndex
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    UNKNOWN,
    array_items,
    basename,
    call_arguments,
    call_name,
    created_class,
    find_kind,
    is_this,
    kind_of,
    literal_value,
    node_text,
    receiver,
    static_scope,
    string_value,
    unwrap,
)
from routescribe.core.unit import ClassDecl
from routescribe.models.analysis_models import ResourceField, ResourceRelation, ResourceShape

logger = logging.getLogger("routescribe.resources")

RESOURCE_BASES = (
    "Illuminate\\Http\\Resources\\Json\\JsonResource",
    "Illuminate\\Http\\Resources\\Json\\ResourceCollection",
)
COLLECTION_BASE = "Illuminate\\Http\\Resources\\Json\\ResourceCollection"

CONDITIONAL_METHODS = frozenset({"when", "whenLoaded", "whenPivotLoaded", "whenNotNull", "whenCounted", "whenHas"})

_CAST_TYPES = {"int": "integer", "integer": "integer", "bool": "boolean", "boolean": "boolean",
               "float": "float", "double": "float", "string": "string", "array": "array"}


def is_resource_name(class_name: str | None) -> bool:
    short = basename(class_name)
    return short.endswith("Resource") or short.endswith("Collection")


def type_from_property_name(name: str) -> str:
    lowered = name.lower()
    if lowered == "id" or lowered.endswith("_id"):
        return "integer"
    if lowered.endswith("_at") or "date" in lowered:
        return "datetime"
    if lowered.startswith(("is_", "has_")):
        return "boolean"
    if any(word in lowered for word in ("price", "amount", "total")):
        return "float"
    if any(word in lowered for word in ("count", "quantity")):
        return "integer"
    return "mixed"


class ResourceShapeResolver:
    """Parses and memoizes resource shapes from indexed sources."""

    def __init__(self, index: ClassIndex, cache: ClassCache[ResourceShape], max_depth: int = 1) -> None:
        self.index = index
        self.cache = cache
        self.max_depth = max_depth

    def is_resource(self, fqcn: str | None) -> bool:
        """Resource-like: conventional name, or a subclass of a framework resource base."""
        if not fqcn:
            return False
        fqcn = fqcn.lstrip("\\")
        if fqcn in self.index:
            return self.index.is_subclass_of(fqcn, RESOURCE_BASES)
        if fqcn.startswith("Illuminate\\"):
            return basename(fqcn) in ("JsonResource", "ResourceCollection", "AnonymousResourceCollection")
        return is_resource_name(fqcn)

    def shape(self, fqcn: str) -> ResourceShape:
        """Flat shape of one resource class; nested relations are not expanded."""
        return self.cache.get_or_compute(fqcn, lambda: self._parse(fqcn.lstrip("\\")))

    def expand(self, fqcn: str, is_collection: bool = False) -> ResourceShape:
        """Shape with nested resources filled in, bounded by max_depth and a visited set."""
        shape = self._expand(fqcn.lstrip("\\"), 0, frozenset())
        if is_collection:
            shape.is_collection = True
        return shape

    def _expand(self, fqcn: str, depth: int, visited: frozenset[str]) -> ResourceShape:
        shape = self.shape(fqcn).model_copy(deep=True)
        seen = visited | {fqcn.lower()}
        for relation in shape.relations.values():
            if relation.resource is None or depth >= self.max_depth:
                continue
            if relation.resource.lower() in seen:
                logger.debug(f"Resource cycle {fqcn} -> {relation.resource} not expanded")
                continue
            relation.shape = self._expand(relation.resource, depth + 1, seen)
        return shape

    # ── Parsing ──

    def _parse(self, fqcn: str) -> ResourceShape:
        decl = self.index.find(fqcn)
        collection = basename(fqcn).endswith("Collection")
        if decl is None:
            return ResourceShape(class_name=fqcn, is_collection=collection, resolved=False)

        collection = collection or self.index.is_subclass_of(decl.fqcn, [COLLECTION_BASE])
        shape = ResourceShape(class_name=decl.fqcn, is_collection=collection)
        found = self.index.find_method(decl.fqcn, "toArray")
        if found is None:
            return shape
        owner, method = found
        body = method.body
        if body is None:
            return shape
        try:
            for statement in find_kind(body, NodeKind.RETURN, skip_closures=True):
                returned = unwrap(statement.named_children[0]) if statement.named_children else None
                if kind_of(returned) is NodeKind.ARRAY:
                    self._read_array(returned, owner, shape)
                    break
        except Exception as e:
            logger.warning(f"Could not read toArray() of {decl.fqcn}: {e}")
        return shape

    def _read_array(self, array: Node, owner: ClassDecl, shape: ResourceShape) -> None:
        for key_node, value_node in array_items(array):
            key = string_value(key_node) if key_node is not None else None
            if not key:
                continue
            value = unwrap(value_node)
            guard = None
            if kind_of(value) in INSTANCE_CALL_KINDS and is_this(receiver(value)) and call_name(value) in CONDITIONAL_METHODS:
                guard = call_name(value)
                args = call_arguments(value)
                if guard == "whenLoaded":
                    inner = args[1] if len(args) > 1 else None
                    relation = self._nested(key, unwrap(inner), owner) if inner is not None else None
                    shape.relations[key] = relation or ResourceRelation(name=key)
                    shape.relations[key].conditional = True
                    continue
                value = unwrap(args[1]) if len(args) > 1 else None
                if value is None:
                    shape.fields[key] = ResourceField(name=key, type="mixed", conditional=guard)
                    continue

            relation = self._nested(key, value, owner)
            if relation is not None:
                relation.conditional = guard is not None
                shape.relations[key] = relation
                continue
            shape.fields[key] = ResourceField(name=key, type=self._value_type(key, value), conditional=guard)

    def _nested(self, key: str, value: Node | None, owner: ClassDecl) -> ResourceRelation | None:
        kind = kind_of(value)
        if kind is NodeKind.NEW:
            name = owner.unit.resolve_name(node_text(created_class(value)), owner)
            if self.is_resource(name):
                return ResourceRelation(name=key, resource=name, is_collection=basename(name).endswith("Collection"))
        elif kind is NodeKind.STATIC_CALL and call_name(value) in ("collection", "make"):
            name = owner.unit.resolve_name(node_text(static_scope(value)), owner)
            if self.is_resource(name):
                return ResourceRelation(name=key, resource=name, is_collection=call_name(value) == "collection")
        return None

    @staticmethod
    def _value_type(key: str, value: Node | None) -> str:
        kind = kind_of(value)
        if kind is NodeKind.CAST:
            cast = node_text(value).split(")", 1)[0].strip("( ").lower()
            return _CAST_TYPES.get(cast, "mixed")
        if kind is NodeKind.ARRAY:
            return "array"
        if kind in (NodeKind.MEMBER_ACCESS, NodeKind.NULLSAFE_MEMBER_ACCESS):
            inferred = type_from_property_name(node_text(value.child_by_field_name("name")))
            return inferred if inferred != "mixed" else type_from_property_name(key)
        literal = literal_value(value)
        if literal is UNKNOWN:
            return type_from_property_name(key)
        if literal is None:
            return "null"
        if isinstance(literal, bool):
            return "boolean"
        if isinstance(literal, int):
            return "integer"
        if isinstance(literal, float):
            return "float"
        return "string"
