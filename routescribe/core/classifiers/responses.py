"""
Response Classifier: JSON responses an action builds explicitly.

Matches `response()->json(...)` (also behind chained calls such as
`response()->header(...)->json(...)`), `Response::json(...)` and
`response()->noContent()`. Content is reduced to literals and
placeholders: a top-level variable becomes {"__variable__": name}, nested
expressions become "{$var}"-style strings.
"""

from __future__ import annotations

import json
from typing import Any

from tree_sitter import Node

from routescribe.core.classifiers.common import is_facade, nodes
from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    STRING_KINDS,
    UNKNOWN,
    array_items,
    binary_operator,
    call_arguments,
    call_name,
    int_value,
    kind_of,
    literal_value,
    node_text,
    receiver,
    string_value,
    unwrap,
    variable_name,
)
from routescribe.core.unit import MethodDecl
from routescribe.models.analysis_models import VARIABLE_MARKER, ResponseSpec

CLASSIFIER_ID = "responses"

EXCEPTION_MESSAGE = "{exception_message}"
DYNAMIC_VALUE = "{dynamic_value}"


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    responses: list[ResponseSpec] = []
    seen: set[str] = set()
    kinds = (NodeKind.MEMBER_CALL, NodeKind.NULLSAFE_MEMBER_CALL, NodeKind.STATIC_CALL)
    for call in nodes(method, *kinds):
        response = _response(ctx, call)
        if response is None:
            continue
        key = f"{response.status}_{json.dumps(response.content, sort_keys=True, default=str)}"
        if key not in seen:
            seen.add(key)
            responses.append(response)
    responses.sort(key=lambda r: r.status or 0)
    return {"responses": responses}


def response_kind(status: int) -> str:
    if 200 <= status < 300:
        return "success"
    if 400 <= status < 500:
        return "client_error"
    if status >= 500:
        return "server_error"
    return "unknown"


def _response(ctx: AnalysisContext, call: Node) -> ResponseSpec | None:
    name = call_name(call)
    if kind_of(call) is NodeKind.STATIC_CALL:
        if name != "json" or not is_facade(ctx, call, "Response"):
            return None
    elif not _from_response_helper(receiver(call)):
        return None
    elif name == "noContent":
        return ResponseSpec(status=204, type="success")
    elif name != "json":
        return None

    args = call_arguments(call)
    status = 200
    if len(args) > 1:
        literal = int_value(args[1])
        if literal is not None:
            status = literal
    content = content_of(args[0]) if args else None
    return ResponseSpec(status=status, type=response_kind(status), content=content, message=_message(content))


def _from_response_helper(node: Node | None) -> bool:
    node = unwrap(node)
    kind = kind_of(node)
    if kind is NodeKind.FUNCTION_CALL:
        return call_name(node) == "response"
    if kind in INSTANCE_CALL_KINDS:
        return _from_response_helper(receiver(node))
    return False


def _message(content: Any) -> str | None:
    if isinstance(content, dict):
        for key in ("message", "error"):
            value = content.get(key)
            if isinstance(value, str):
                return value
    return None


# ── Content reduction ──


def content_of(node: Node | None) -> Any:
    """Top-level response payload: literals, arrays, or a variable marker."""
    node = unwrap(node)
    kind = kind_of(node)
    if kind is NodeKind.ARRAY:
        return _array(node)
    if kind is NodeKind.VARIABLE:
        return {VARIABLE_MARKER: variable_name(node)}
    value = literal_value(node)
    return None if value is UNKNOWN else value


def _array(node: Node) -> dict[Any, Any] | list[Any]:
    items = array_items(node)
    if items and all(key is None for key, _ in items):
        return [_value(value) for _, value in items]
    result: dict[Any, Any] = {}
    for key_node, value_node in items:
        key: Any = len(result)
        if key_node is not None:
            literal = literal_value(key_node)
            key = literal if isinstance(literal, (str, int)) else node_text(key_node)
        result[key] = _value(value_node)
    return result


def _value(node: Node | None) -> Any:
    """A nested value: literal, array, or a printable placeholder."""
    node = unwrap(node)
    kind = kind_of(node)
    if kind is NodeKind.ARRAY:
        return _array(node)
    literal = literal_value(node)
    if literal is not UNKNOWN:
        return literal
    if kind in STRING_KINDS:
        # Interpolated string: keep the template text
        return node_text(node)[1:-1]
    if kind is NodeKind.VARIABLE:
        return "{$" + (variable_name(node) or "var") + "}"
    if kind in INSTANCE_CALL_KINDS:
        return EXCEPTION_MESSAGE if call_name(node) == "getMessage" else DYNAMIC_VALUE
    if kind in (NodeKind.MEMBER_ACCESS, NodeKind.NULLSAFE_MEMBER_ACCESS):
        owner = variable_name(receiver(node))
        field = node_text(node.child_by_field_name("name"))
        return "{$" + f"{owner}->{field}" + "}" if owner else DYNAMIC_VALUE
    if kind is NodeKind.SUBSCRIPT:
        return _subscript(node)
    if kind is NodeKind.BINARY and binary_operator(node) == ".":
        left, right = node.child_by_field_name("left"), node.child_by_field_name("right")
        return f"{_text(left)}{_text(right)}"
    if kind in (NodeKind.STATIC_CALL, NodeKind.FUNCTION_CALL):
        return DYNAMIC_VALUE
    return None


def _subscript(node: Node) -> str:
    named = node.named_children
    owner = variable_name(named[0]) if named else None
    index = string_value(named[1]) if len(named) > 1 else None
    if index is None and len(named) > 1:
        index = node_text(named[1])
    return "{$" + f"{owner or 'var'}['{index or ''}']" + "}"


def _text(node: Node | None) -> str:
    value = _value(node)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
