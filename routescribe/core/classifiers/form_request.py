"""
FormRequest Classifier: validation declared on a FormRequest parameter.

Reads rules(), messages(), attributes() and a literal authorize() result
from the request class source. Fields become query parameters when the
action is reached only through GET, body parameters otherwise.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from tree_sitter import Node

from routescribe.core.context import AnalysisContext
from routescribe.core.rules import param_from_rules, rules_from_array
from routescribe.core.syntax import (
    NodeKind,
    UNKNOWN,
    array_items,
    find_all,
    find_kind,
    kind_of,
    literal_value,
    node_text,
    string_value,
    unwrap,
    variable_name,
)
from routescribe.core.unit import ClassDecl, MethodDecl
from routescribe.models.analysis_models import FormRequestInfo

logger = logging.getLogger("routescribe.classifiers.form_request")

CLASSIFIER_ID = "form_request"

FORM_REQUEST_BASE = "Illuminate\\Foundation\\Http\\FormRequest"
QUERY_METHOD = re.compile(r"index|list", re.IGNORECASE)
SAFE_VERBS = frozenset({"GET", "HEAD"})


def is_form_request(ctx: AnalysisContext, fqcn: str | None) -> bool:
    if not fqcn or fqcn.lower() in ("illuminate\\http\\request", "request"):
        return False
    if fqcn in ctx.index:
        return ctx.index.is_subclass_of(fqcn, [FORM_REQUEST_BASE])
    return fqcn.endswith("Request") and "\\" in fqcn and not fqcn.startswith("Illuminate\\")


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    requests: dict[str, FormRequestInfo] = {}
    for param in method.parameters:
        if is_form_request(ctx, param.type):
            requests[param.type] = read_form_request(ctx, param.type)
    if not requests:
        return {}

    rules: dict[str, list[str]] = {}
    params = {}
    for info in requests.values():
        for field, field_rules in info.rules.items():
            rules.setdefault(field, field_rules)
            params.setdefault(field, param_from_rules(field, field_rules, info.attributes.get(field)))

    result: dict[str, Any] = {"form_requests": requests, "validation_rules": rules}
    if params:
        result["query_params" if _is_query(ctx, method) else "body_params"] = params
    return result


def _is_query(ctx: AnalysisContext, method: MethodDecl) -> bool:
    route = ctx.route(method.name)
    if route is not None and route.methods:
        return set(route.methods) <= SAFE_VERBS
    return bool(QUERY_METHOD.search(method.name))


def read_form_request(ctx: AnalysisContext, fqcn: str) -> FormRequestInfo:
    """Rules, messages, attributes and authorize() of a request class; empty when unreadable."""
    info = FormRequestInfo(class_name=fqcn)
    decl = ctx.index.find(fqcn)
    if decl is None:
        return info
    try:
        found = ctx.index.find_method(decl.fqcn, "rules")
        if found is not None:
            info.rules = rules_from_array(_returned_array(*found))
        info.messages = _string_map(ctx, decl, "messages")
        info.attributes = _string_map(ctx, decl, "attributes")
        found = ctx.index.find_method(decl.fqcn, "authorize")
        if found is not None:
            returned = _returned_value(found[1])
            value = literal_value(returned) if returned is not None else UNKNOWN
            info.authorize = value if isinstance(value, bool) else None
    except Exception as e:
        logger.warning(f"Could not read form request {fqcn}: {e}")
    return info


def _string_map(ctx: AnalysisContext, decl: ClassDecl, method_name: str) -> dict[str, str]:
    found = ctx.index.find_method(decl.fqcn, method_name)
    if found is None:
        return {}
    values: dict[str, str] = {}
    for key_node, value_node in array_items(_returned_array(*found)):
        key = string_value(key_node) if key_node is not None else None
        value = string_value(value_node)
        if key and value is not None:
            values[key] = value
    return values


def _returned_value(method: MethodDecl) -> Node | None:
    body = method.body
    if body is None:
        return None
    for statement in find_kind(body, NodeKind.RETURN, skip_closures=True):
        if statement.named_children:
            return unwrap(statement.named_children[0])
    return None


def _returned_array(owner: ClassDecl, method: MethodDecl) -> Node | None:
    """The array a method returns: a literal, a local variable holding one, or a class constant."""
    returned = _returned_value(method)
    kind = kind_of(returned)
    if kind is NodeKind.ARRAY:
        return returned
    if kind is NodeKind.VARIABLE:
        name = variable_name(returned)
        for assignment in find_kind(method.body, NodeKind.ASSIGNMENT, skip_closures=True):
            left = assignment.child_by_field_name("left")
            right = unwrap(assignment.child_by_field_name("right"))
            if variable_name(left) == name and kind_of(right) is NodeKind.ARRAY:
                return right
        return None
    if kind is NodeKind.CLASS_CONSTANT:
        return _constant(owner, node_text(returned).rsplit("::", 1)[-1].strip())
    return None


def _constant(owner: ClassDecl, name: str) -> Node | None:
    for element in find_all(owner.node, lambda n: n.type == "const_element"):
        named = element.named_children
        if len(named) >= 2 and node_text(named[0]) == name:
            return unwrap(named[-1])
    return None
