"""
Exception Classifier: error responses a method can end in.

Sources:
    - `throw new X(...)`: status from the exception status table
    - `abort(code, msg)`, `abort_if(cond, code, msg)`, `abort_unless(...)`
    - `findOrFail()` / `firstOrFail()`: an implicit ModelNotFoundException (404)
"""

from __future__ import annotations

from typing import Any

from tree_sitter import Node

from routescribe.core.classifiers.common import nodes
from routescribe.core.context import AnalysisContext
from routescribe.core.http_status import exception_status
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    UNKNOWN,
    call_arguments,
    call_name,
    created_class,
    int_value,
    kind_of,
    literal_value,
    node_text,
    string_value,
    unwrap,
)
from routescribe.core.unit import MethodDecl
from routescribe.models.analysis_models import ExceptionSpec, ValueInfo

CLASSIFIER_ID = "exceptions"

ABORT_FUNCTIONS = {"abort": 0, "abort_if": 1, "abort_unless": 1}
FAIL_METHODS = frozenset({"findOrFail", "firstOrFail", "sole"})

HTTP_EXCEPTION = "Symfony\\Component\\HttpKernel\\Exception\\HttpException"
MODEL_NOT_FOUND = "Illuminate\\Database\\Eloquent\\ModelNotFoundException"

_PY_TYPES = {str: "string", int: "int", float: "float", bool: "bool", list: "array", dict: "array"}


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    found: list[ExceptionSpec] = []
    kinds = (
        NodeKind.THROW,
        NodeKind.THROW_STATEMENT,
        NodeKind.FUNCTION_CALL,
        NodeKind.MEMBER_CALL,
        NodeKind.NULLSAFE_MEMBER_CALL,
        NodeKind.STATIC_CALL,
    )
    for node in nodes(method, *kinds):
        kind = kind_of(node)
        if kind in (NodeKind.THROW, NodeKind.THROW_STATEMENT):
            spec = _thrown(ctx, node)
        elif kind is NodeKind.FUNCTION_CALL:
            spec = _aborted(node)
        elif call_name(node) in FAIL_METHODS and (kind in INSTANCE_CALL_KINDS or kind is NodeKind.STATIC_CALL):
            spec = ExceptionSpec(exception=MODEL_NOT_FOUND, status=404)
        else:
            spec = None
        if spec is not None and spec not in found:
            found.append(spec)
    return {"exceptions": found}


def _thrown(ctx: AnalysisContext, node: Node) -> ExceptionSpec | None:
    thrown = unwrap(node.named_children[0]) if node.named_children else None
    if kind_of(thrown) is not NodeKind.NEW:
        return None
    class_node = created_class(thrown)
    if class_node is None:
        return None
    name = ctx.resolve(node_text(class_node))
    args = call_arguments(thrown)
    return ExceptionSpec(
        exception=name,
        status=exception_status(name),
        message=string_value(args[0]) if args else None,
        arguments=[_argument(arg) for arg in args],
    )


def _aborted(node: Node) -> ExceptionSpec | None:
    name = call_name(node)
    if name not in ABORT_FUNCTIONS:
        return None
    args = call_arguments(node)
    offset = ABORT_FUNCTIONS[name]
    if len(args) <= offset:
        return None
    status = int_value(args[offset])
    if status is None:
        return None
    message = string_value(args[offset + 1]) if len(args) > offset + 1 else None
    return ExceptionSpec(exception=HTTP_EXCEPTION, status=status, message=message)


def _argument(node: Node) -> ValueInfo:
    value = literal_value(node)
    if value is UNKNOWN:
        return ValueInfo(type="mixed")
    if value is None:
        return ValueInfo(type="null")
    return ValueInfo(type=_PY_TYPES.get(type(value), "mixed"), value=value)
