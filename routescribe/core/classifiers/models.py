"""
Model Classifier: which Eloquent models an action touches and how.

Models are found three ways: route-model-bound parameters, static calls
on model classes (`Post::create()`, `Post::where()->first()`), and
instance calls on variables holding a model or a model query. Each call
is mapped to a CRUD intent through a fixed verb table.
"""

from __future__ import annotations

from typing import Any

from tree_sitter import Node

from routescribe.core.classifiers.common import nodes
from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    call_arguments,
    call_name,
    chain_root,
    created_class,
    int_value,
    kind_of,
    line_of,
    node_text,
    receiver,
    static_scope,
    unwrap,
    variable_name,
)
from routescribe.core.unit import MethodDecl
from routescribe.models.analysis_models import ModelOperation, OperationType, PaginationInfo
from routescribe.models.schema_models import ModelSchema

CLASSIFIER_ID = "models"

PAGINATION_METHODS = frozenset({"paginate", "simplepaginate", "cursorpaginate"})

# Ordered: first row containing the call name decides
VERB_INTENTS: list[tuple[frozenset[str], OperationType]] = [
    (frozenset({"all", "get", "paginate", "simplePaginate", "cursorPaginate", "query", "with", "cursor", "lazy"}),
     OperationType.INDEX),
    (frozenset({"find", "findOrFail", "findMany", "findOr", "first", "firstOrFail", "firstWhere", "sole"}),
     OperationType.SHOW),
    (frozenset({"create", "insert", "firstOrCreate", "updateOrCreate", "forceCreate", "createMany", "saveMany"}),
     OperationType.STORE),
    (frozenset({"update", "fill", "increment", "decrement", "touch", "sync", "attach", "detach", "restore"}),
     OperationType.UPDATE),
    (frozenset({"delete", "destroy", "forceDelete", "truncate"}), OperationType.DESTROY),
]


def intent_of(method: str, created: bool = False) -> OperationType | None:
    if method == "save":
        return OperationType.STORE if created else OperationType.UPDATE
    for names, intent in VERB_INTENTS:
        if method in names:
            return intent
    return None


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    return _ModelScan(ctx, method).run()


class _ModelScan:
    def __init__(self, ctx: AnalysisContext, method: MethodDecl) -> None:
        self.ctx = ctx
        self.method = method
        self.models: dict[str, ModelSchema] = {}
        self.operations: list[ModelOperation] = []
        self.pagination = PaginationInfo()
        # variable → (model FQCN, created with `new`)
        self.variables: dict[str, tuple[str, bool]] = {}

    def run(self) -> dict[str, Any]:
        for param in self.method.parameters:
            model = self.ctx.model_class(param.type) if param.type and "|" not in param.type else None
            if model is not None:
                self._touch(model)
                self.variables[param.name] = (model, False)

        kinds = (NodeKind.ASSIGNMENT, NodeKind.STATIC_CALL, NodeKind.MEMBER_CALL, NodeKind.NULLSAFE_MEMBER_CALL)
        for node in nodes(self.method, *kinds):
            kind = kind_of(node)
            if kind is NodeKind.ASSIGNMENT:
                self._assignment(node)
            elif kind is NodeKind.STATIC_CALL:
                self._static_call(node)
            else:
                self._instance_call(node)

        result: dict[str, Any] = {"models": self.models, "model_operations": self.operations}
        if self.pagination.has_pagination:
            result["pagination"] = self.pagination
        return result

    def _touch(self, model: str) -> None:
        if model not in self.models:
            self.models[model] = self.ctx.schema(model)

    def _record(self, model: str, call: Node, created: bool = False) -> None:
        name = call_name(call)
        self._touch(model)
        operation = ModelOperation(model=model, operation=name, intent=intent_of(name, created), line=line_of(call))
        self.operations.append(operation)

    def _paginates(self, call: Node) -> None:
        name = call_name(call)
        if name.lower() not in PAGINATION_METHODS or self.pagination.has_pagination:
            return
        args = call_arguments(call)
        self.pagination = PaginationInfo(
            has_pagination=True,
            method=name.lower(),
            per_page=int_value(args[0]) if args else None,
        )

    # ── Node handlers ──

    def _static_call(self, node: Node) -> None:
        model = self.ctx.model_class(node_text(static_scope(node)))
        if model is None:
            return
        self._record(model, node)
        self._paginates(node)

    def _instance_call(self, node: Node) -> None:
        owner = self._owner(receiver(node))
        self._paginates(node)
        if owner is None:
            return
        model, created = owner
        self._record(model, node, created)

    def _assignment(self, node: Node) -> None:
        name = variable_name(node.child_by_field_name("left"))
        if name is None:
            return
        owner = self._owner(node.child_by_field_name("right"))
        if owner is not None:
            self.variables[name] = owner
        else:
            self.variables.pop(name, None)

    def _owner(self, node: Node | None) -> tuple[str, bool] | None:
        """Model an expression evaluates to (or queries), and whether it was built with `new`."""
        node = unwrap(node)
        kind = kind_of(node)
        if kind is NodeKind.VARIABLE:
            return self.variables.get(variable_name(node) or "")
        if kind is NodeKind.NEW:
            model = self.ctx.model_class(node_text(created_class(node)))
            return (model, True) if model is not None else None
        if kind is NodeKind.STATIC_CALL:
            model = self.ctx.model_class(node_text(static_scope(node)))
            return (model, False) if model is not None else None
        if kind in INSTANCE_CALL_KINDS:
            root = chain_root(node)
            return self._owner(root) if kind_of(root) not in INSTANCE_CALL_KINDS else None
        return None
