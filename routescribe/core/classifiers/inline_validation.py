"""
Inline Validation Classifier: rules passed straight to validate().

Recognized call shapes:
    $request->validate([...])
    request()->validate([...])
    $request->validateWithBag('bag', [...])
    $this->validate($request, [...])

Whether the fields are query or body parameters is decided once for the
whole rule set, from the method name.
"""

from __future__ import annotations

import re
from typing import Any

from tree_sitter import Node

from routescribe.core.classifiers.common import nodes
from routescribe.core.context import AnalysisContext
from routescribe.core.rules import param_from_rules, rules_from_array
from routescribe.core.syntax import (
    NodeKind,
    call_arguments,
    call_name,
    is_this,
    kind_of,
    receiver,
    unwrap,
    variable_name,
)
from routescribe.core.unit import MethodDecl

CLASSIFIER_ID = "inline_validation"

QUERY_METHOD = re.compile(r"index|list", re.IGNORECASE)

REQUEST_CLASSES = ("Illuminate\\Http\\Request",)


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    rules: dict[str, list[str]] = {}
    for call in nodes(method, NodeKind.MEMBER_CALL, NodeKind.NULLSAFE_MEMBER_CALL):
        array = _rules_argument(ctx, method, call)
        if array is not None:
            rules.update(rules_from_array(array))

    if not rules:
        return {}
    params = {field: param_from_rules(field, field_rules) for field, field_rules in rules.items()}
    target = "query_params" if QUERY_METHOD.search(method.name) else "body_params"
    return {"validation_rules": rules, target: params}


def _rules_argument(ctx: AnalysisContext, method: MethodDecl, call: Node) -> Node | None:
    name = call_name(call)
    args = call_arguments(call)
    obj = receiver(call)
    if name == "validate":
        if is_this(obj):
            return unwrap(args[1]) if len(args) > 1 else None
        if _is_request(ctx, method, obj) and args:
            return unwrap(args[0])
    elif name == "validateWithBag" and _is_request(ctx, method, obj) and len(args) > 1:
        return unwrap(args[1])
    return None


def _is_request(ctx: AnalysisContext, method: MethodDecl, node: Node | None) -> bool:
    node = unwrap(node)
    if kind_of(node) is NodeKind.FUNCTION_CALL:
        return call_name(node) == "request"
    name = variable_name(node)
    if name is None:
        return False
    if name == "request":
        return True
    # Any parameter typed as a request class also counts
    for param in method.parameters:
        if param.name == name:
            return param.type in REQUEST_CLASSES or ctx.index.is_subclass_of(param.type, REQUEST_CLASSES)
    return False
