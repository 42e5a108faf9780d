"""
Method Body Walker: one depth-first pass over a method body.

Builds the BodyTrace (operation tags, inferred variable types, call sites,
branch conditions, loops, return sites, thrown exceptions, dynamic fields)
and feeds the complexity counter from the same traversal.
"""

from __future__ import annotations

import logging

from tree_sitter import Node

from routescribe.core.complexity import CONDITIONED_KINDS, ComplexityCounter, condition_of, condition_weight
from routescribe.core.context import AnalysisContext
from routescribe.core.http_status import exception_status
from routescribe.core.rules import param_from_rules, rules_from_array
from routescribe.core.syntax import (
    CLOSURE_KINDS,
    INSTANCE_CALL_KINDS,
    NodeKind,
    UNKNOWN,
    array_items,
    basename,
    call_arguments,
    call_name,
    chain_root,
    created_class,
    int_value,
    is_this,
    kind_of,
    literal_value,
    line_of,
    node_text,
    pretty,
    receiver,
    static_scope,
    string_value,
    unwrap,
    variable_name,
)
from routescribe.core.unit import BUILTIN_TYPES, MethodDecl
from routescribe.models.analysis_models import (
    BodyTrace,
    CallSite,
    Complexity,
    ConditionInfo,
    DynamicField,
    ExceptionSpec,
    ResponseSpec,
    ValueInfo,
)

logger = logging.getLogger("routescribe.walker")

AUTHORIZATION_METHODS = frozenset({"authorize", "can", "cannot"})
VALIDATION_METHODS = frozenset({"validate", "validateWithBag"})
RESPONSE_METHODS = frozenset({"json", "download", "file", "stream"})
RESPONSE_FUNCTIONS = frozenset({"abort", "redirect", "view", "response"})
EAGER_METHODS = frozenset({"with", "load"})
TRANSACTION_METHODS = frozenset({"transaction", "beginTransaction"})

# Query terminators that yield a list of models
COLLECTION_METHODS = frozenset(
    {"all", "get", "paginate", "simplePaginate", "cursorPaginate", "pluck", "cursor", "lazy"}
)

LOOP_KINDS = {
    NodeKind.FOR: "for",
    NodeKind.FOREACH: "foreach",
    NodeKind.WHILE: "while",
    NodeKind.DO: "do",
}
CONDITION_LABELS = {
    NodeKind.IF: "if",
    NodeKind.ELSE_IF: "elseif",
    NodeKind.WHILE: "while",
    NodeKind.DO: "do",
    NodeKind.FOR: "for",
}


def eager_relations(args: list[Node]) -> list[str]:
    """Relation names from with()/load() arguments: strings, string lists or keyed arrays."""
    relations: list[str] = []
    for arg in args:
        literal = string_value(arg)
        if literal is not None:
            relations.append(literal)
            continue
        for key_node, value_node in array_items(arg):
            key = string_value(key_node) if key_node is not None else None
            if key:
                relations.append(key)
            elif (value := string_value(value_node)) is not None:
                relations.append(value)
    return relations


def value_type(node: Node | None) -> str:
    """Type name of a literal expression; 'mixed' for calls and other expressions."""
    node = unwrap(node)
    kind = kind_of(node)
    if kind is NodeKind.ARRAY:
        return "array"
    if kind in INSTANCE_CALL_KINDS or kind in (NodeKind.STATIC_CALL, NodeKind.FUNCTION_CALL):
        return "mixed"
    if kind is NodeKind.VARIABLE:
        return "variable"
    value = literal_value(node)
    if value is UNKNOWN:
        return "mixed"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    return "string"


_SHORT_TYPES = {"integer": "int", "boolean": "bool"}


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


class BodyWalker:
    """Walks one method body; create a new walker per method."""

    def __init__(self, ctx: AnalysisContext) -> None:
        self.ctx = ctx
        self.trace = BodyTrace()
        self.counter = ComplexityCounter()
        self._closure_depth = 0

    def walk(self, method: MethodDecl) -> tuple[BodyTrace, Complexity]:
        body = method.body
        statements = [c for c in body.named_children if kind_of(c) is not NodeKind.COMMENT] if body else []
        if not statements:
            self.trace.empty = True
            return self.trace, self.counter.result()

        self._seed_parameters(method)
        self._visit(body)
        self._finalize()
        return self.trace, self.counter.result()

    def _seed_parameters(self, method: MethodDecl) -> None:
        for param in method.parameters:
            if param.type and param.type.lower() not in BUILTIN_TYPES and "|" not in param.type:
                self.trace.variables[param.name] = ValueInfo(type="object", class_name=param.type)

    # ── Traversal ──

    def _visit(self, node: Node) -> None:
        self.counter.enter(node)
        kind = kind_of(node)
        closure = kind in CLOSURE_KINDS
        if closure:
            self._closure_depth += 1

        try:
            self._dispatch(node, kind)
        except Exception as e:
            # One unreadable construct must not lose the rest of the trace
            logger.debug(f"Skipped {node.type} at line {line_of(node)}: {e}")

        for child in node.children:
            self._visit(child)

        if closure:
            self._closure_depth -= 1
        self.counter.leave(node)

    def _dispatch(self, node: Node, kind: NodeKind) -> None:
        if kind is NodeKind.STATIC_CALL:
            self._static_call(node)
        elif kind in INSTANCE_CALL_KINDS:
            self._instance_call(node)
        elif kind is NodeKind.FUNCTION_CALL:
            self._function_call(node)
        elif kind is NodeKind.NEW:
            self._new(node)
        elif kind is NodeKind.ASSIGNMENT:
            self._assignment(node)
        elif kind is NodeKind.RETURN:
            if self._closure_depth == 0:
                self._return(node)
        elif kind in (NodeKind.THROW, NodeKind.THROW_STATEMENT):
            self._throw(node)

        if kind in CONDITIONED_KINDS:
            self.trace.conditions.append(
                ConditionInfo(
                    kind=CONDITION_LABELS[kind],
                    condition=pretty(condition_of(node)),
                    complexity=condition_weight(node),
                )
            )
        if kind in LOOP_KINDS:
            self.trace.loops.append(LOOP_KINDS[kind])

    # ── Calls ──

    def _arguments(self, node: Node) -> list[ValueInfo]:
        return [self.expression_type(arg) for arg in call_arguments(node)]

    def _static_call(self, node: Node) -> None:
        scope = static_scope(node)
        class_name = self.ctx.resolve(node_text(scope))
        short = basename(class_name)
        method = call_name(node)
        args = call_arguments(node)
        ops = self.trace.operations
        self.trace.calls.append(
            CallSite(type="static", method=method, class_name=class_name,
                     arguments=self._arguments(node), line=line_of(node))
        )

        if short == "DB":
            ops.database.append(method)
            if method in TRANSACTION_METHODS:
                ops.transaction = True
        elif short == "Validator" and method == "make":
            ops.validation.append("Validator::make")
            if len(args) > 1:
                for field, rules in rules_from_array(unwrap(args[1])).items():
                    ops.body_params[field] = param_from_rules(field, rules)
        elif "Cache" in class_name or method == "cache":
            ops.cache.append(method)
        elif short == "Log":
            ops.logging.append(method)
        elif short == "Mail":
            ops.mail.append(method)
        elif short == "Notification":
            ops.notifications.append(method)
        elif short == "Event":
            ops.events.append(method)
        elif short == "Broadcast":
            ops.broadcasts.append(method)
        elif short == "Auth":
            ops.auth.append(f"Auth::{method}")
        elif short == "Gate":
            ops.authorization.append(f"Gate::{method}")
        elif class_name in self.ctx.index and self.ctx.index.has_method(class_name, "dispatch"):
            ops.jobs.append(class_name)
        elif method == "with":
            ops.eager_relations.extend(eager_relations(args))

        if method == "collection" and self.ctx.resources.is_resource(class_name):
            ops.api_resources.append(self.ctx.resources.expand(class_name, is_collection=True))

    def _instance_call(self, node: Node) -> None:
        obj = receiver(node)
        method = call_name(node)
        receiver_type = self.expression_type(obj)
        ops = self.trace.operations
        self.trace.calls.append(
            CallSite(
                type="instance",
                method=method,
                class_name=receiver_type.class_name,
                receiver=variable_name(obj),
                variable_type=receiver_type.class_name or receiver_type.type,
                arguments=self._arguments(node),
                line=line_of(node),
            )
        )

        if method in AUTHORIZATION_METHODS:
            ops.authorization.append(method)
        elif method in VALIDATION_METHODS:
            ops.validation.append(method)
        elif method in RESPONSE_METHODS:
            ops.response_helpers.append(method)
        elif method in EAGER_METHODS:
            ops.eager_relations.extend(eager_relations(call_arguments(node)))
        elif method == "notify":
            ops.notifications.append("notify")
        elif method == "user" and not is_this(obj):
            ops.auth.append(f"{pretty(obj)}->user()")

    def _function_call(self, node: Node) -> None:
        name = call_name(node)
        args = call_arguments(node)
        ops = self.trace.operations
        self.trace.calls.append(
            CallSite(type="function", method=name, arguments=self._arguments(node), line=line_of(node))
        )
        if name in RESPONSE_FUNCTIONS:
            ops.response_helpers.append(name)
        elif name == "event":
            ops.events.append(self._dispatched_name(args))
        elif name == "broadcast":
            ops.broadcasts.append(self._dispatched_name(args))
        elif name == "dispatch":
            ops.jobs.append(self._dispatched_name(args))
        elif name == "auth":
            ops.auth.append("auth()")

    def _dispatched_name(self, args: list[Node]) -> str:
        if not args:
            return "unknown"
        first = unwrap(args[0])
        if kind_of(first) is NodeKind.NEW:
            return self.ctx.resolve(node_text(created_class(first)))
        return pretty(first)

    def _new(self, node: Node) -> None:
        class_node = created_class(node)
        if class_node is None:
            return
        class_name = self.ctx.resolve(node_text(class_node))
        if self.ctx.resources.is_resource(class_name):
            self.trace.operations.api_resources.append(self.ctx.resources.expand(class_name))

    # ── Assignments and types ──

    def _assignment(self, node: Node) -> None:
        left = unwrap(node.child_by_field_name("left"))
        right = node.child_by_field_name("right")
        kind = kind_of(left)
        if kind is NodeKind.VARIABLE:
            self.trace.variables[node_text(left).lstrip("$")] = self.expression_type(right)
        elif kind in (NodeKind.MEMBER_ACCESS, NodeKind.NULLSAFE_MEMBER_ACCESS) and not is_this(receiver(left)):
            name = left.child_by_field_name("name")
            if name is not None and kind_of(name) is NodeKind.NAME:
                self.trace.operations.dynamic_fields.append(
                    DynamicField(field=node_text(name), value_type=self._dynamic_type(right))
                )

    @staticmethod
    def _dynamic_type(node: Node | None) -> str:
        inferred = value_type(node)
        return "mixed" if inferred == "variable" else inferred

    def expression_type(self, node: Node | None) -> ValueInfo:
        """Best-effort type of an expression, using variables seen so far."""
        node = unwrap(node)
        kind = kind_of(node)
        if kind is NodeKind.VARIABLE:
            name = node_text(node).lstrip("$")
            known = self.trace.variables.get(name)
            return known.model_copy() if known is not None else ValueInfo(type="variable", value=name)
        if kind is NodeKind.NEW:
            return ValueInfo(type="object", class_name=self.ctx.resolve(node_text(created_class(node))))
        if kind is NodeKind.STATIC_CALL:
            model = self.ctx.model_class(node_text(static_scope(node)))
            if model is not None:
                return ValueInfo(type="object", class_name=model, is_collection=call_name(node) in COLLECTION_METHODS)
            return ValueInfo(type="mixed")
        if kind in INSTANCE_CALL_KINDS:
            root = chain_root(node)
            base = self.expression_type(root) if root is not node else ValueInfo(type="mixed")
            if base.class_name and self.ctx.schemas.is_model(base.class_name):
                return ValueInfo(
                    type="object",
                    class_name=base.class_name,
                    is_collection=call_name(node) in COLLECTION_METHODS or base.is_collection,
                )
            return ValueInfo(type="mixed")
        if kind is NodeKind.ARRAY:
            value = literal_value(node)
            return ValueInfo(type="array", value=None if value is UNKNOWN else value)
        value = literal_value(node)
        if value is UNKNOWN:
            return ValueInfo(type="mixed")
        inferred = value_type(node)
        return ValueInfo(type=_SHORT_TYPES.get(inferred, inferred), value=value)

    # ── Returns and throws ──

    def _return(self, node: Node) -> None:
        values = [c for c in node.named_children if kind_of(c) is not NodeKind.COMMENT]
        if not values:
            self.trace.operations.responses.append(ResponseSpec(type="void"))
            return
        expression = unwrap(values[0])
        self.trace.operations.responses.append(
            ResponseSpec(
                type=self._response_type(expression),
                content=pretty(expression),
                status=self._response_status(expression),
            )
        )

    @staticmethod
    def _response_type(node: Node | None) -> str:
        kind = kind_of(node)
        current = node
        while kind_of(current) in INSTANCE_CALL_KINDS:
            if call_name(current) in RESPONSE_METHODS:
                return "http_response"
            current = receiver(current)
        if kind is NodeKind.STATIC_CALL and basename(node_text(static_scope(node))) == "Response":
            return "http_response"
        if kind is NodeKind.FUNCTION_CALL and call_name(node) == "response":
            return "http_response"
        if kind is NodeKind.VARIABLE:
            return "variable"
        if kind is NodeKind.ARRAY or literal_value(node) is not UNKNOWN:
            return "direct"
        return "unknown"

    @staticmethod
    def _response_status(node: Node | None) -> int | None:
        """Literal status of response()->json(x, N) or Response::json(x, N) anywhere in a chain."""
        current = node
        while current is not None:
            kind = kind_of(current)
            if kind in INSTANCE_CALL_KINDS:
                if call_name(current) == "json":
                    root = chain_root(current)
                    if kind_of(root) is NodeKind.FUNCTION_CALL and call_name(root) == "response":
                        args = call_arguments(current)
                        return int_value(args[1]) if len(args) > 1 else None
                current = receiver(current)
            elif kind is NodeKind.STATIC_CALL:
                if call_name(current) == "json" and basename(node_text(static_scope(current))) == "Response":
                    args = call_arguments(current)
                    return int_value(args[1]) if len(args) > 1 else None
                return None
            else:
                return None
        return None

    def _throw(self, node: Node) -> None:
        thrown = unwrap(node.named_children[0]) if node.named_children else None
        if kind_of(thrown) is not NodeKind.NEW:
            return
        class_node = created_class(thrown)
        name = self.ctx.resolve(node_text(class_node)) if class_node is not None else "UnknownException"
        args = call_arguments(thrown)
        message = string_value(args[0]) if args else None
        self.trace.operations.exceptions.append(
            ExceptionSpec(
                exception=name,
                status=exception_status(name),
                message=message,
                arguments=[self.expression_type(arg) for arg in args],
            )
        )

    def _finalize(self) -> None:
        ops = self.trace.operations
        for name in (
            "database", "cache", "jobs", "response_helpers", "authorization", "validation",
            "eager_relations", "logging", "auth", "mail", "notifications", "events", "broadcasts",
        ):
            setattr(ops, name, _dedupe(getattr(ops, name)))

        seen_fields: set[str] = set()
        fields: list[DynamicField] = []
        for dynamic in ops.dynamic_fields:
            if dynamic.field not in seen_fields:
                seen_fields.add(dynamic.field)
                fields.append(dynamic)
        ops.dynamic_fields = fields

        seen_resources: set[tuple[str, bool]] = set()
        resources = []
        for shape in ops.api_resources:
            key = (shape.class_name.lower(), shape.is_collection)
            if key not in seen_resources:
                seen_resources.add(key)
                resources.append(shape)
        ops.api_resources = resources
