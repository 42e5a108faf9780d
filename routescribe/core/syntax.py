"""
Syntax helpers: node kinds, tree search and literal evaluation for
tree-sitter-php trees.

Every component matches nodes through NodeKind rather than raw grammar
type strings, so grammar renames are absorbed here.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable, Iterator

from tree_sitter import Node


class NodeKind(str, Enum):
    PROGRAM = "program"
    NAMESPACE = "namespace_definition"
    USE_DECLARATION = "namespace_use_declaration"
    CLASS = "class_declaration"
    INTERFACE = "interface_declaration"
    TRAIT = "trait_declaration"
    ENUM = "enum_declaration"
    METHOD = "method_declaration"
    PROPERTY = "property_declaration"
    TRAIT_USE = "use_declaration"
    COMPOUND = "compound_statement"
    EXPRESSION_STATEMENT = "expression_statement"
    RETURN = "return_statement"
    IF = "if_statement"
    ELSE_IF = "else_if_clause"
    ELSE = "else_clause"
    FOR = "for_statement"
    FOREACH = "foreach_statement"
    WHILE = "while_statement"
    DO = "do_statement"
    SWITCH = "switch_statement"
    CASE = "case_statement"
    DEFAULT = "default_statement"
    TRY = "try_statement"
    CATCH = "catch_clause"
    THROW = "throw_expression"
    THROW_STATEMENT = "throw_statement"
    CONDITIONAL = "conditional_expression"
    MATCH = "match_expression"
    ASSIGNMENT = "assignment_expression"
    AUGMENTED_ASSIGNMENT = "augmented_assignment_expression"
    BINARY = "binary_expression"
    UNARY = "unary_op_expression"
    STATIC_CALL = "scoped_call_expression"
    MEMBER_CALL = "member_call_expression"
    NULLSAFE_MEMBER_CALL = "nullsafe_member_call_expression"
    FUNCTION_CALL = "function_call_expression"
    NEW = "object_creation_expression"
    MEMBER_ACCESS = "member_access_expression"
    NULLSAFE_MEMBER_ACCESS = "nullsafe_member_access_expression"
    SCOPED_PROPERTY = "scoped_property_access_expression"
    CLASS_CONSTANT = "class_constant_access_expression"
    SUBSCRIPT = "subscript_expression"
    VARIABLE = "variable_name"
    NAME = "name"
    QUALIFIED_NAME = "qualified_name"
    RELATIVE_SCOPE = "relative_scope"
    STRING = "string"
    ENCAPSED_STRING = "encapsed_string"
    HEREDOC = "heredoc"
    NOWDOC = "nowdoc"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    NULL = "null"
    ARRAY = "array_creation_expression"
    ARRAY_ELEMENT = "array_element_initializer"
    ARGUMENTS = "arguments"
    ARGUMENT = "argument"
    PARENTHESIZED = "parenthesized_expression"
    CAST = "cast_expression"
    CLOSURE = "anonymous_function"
    LEGACY_CLOSURE = "anonymous_function_creation_expression"
    ARROW_FUNCTION = "arrow_function"
    COMMENT = "comment"
    OTHER = "__other__"


_KIND_BY_TYPE: dict[str, NodeKind] = {k.value: k for k in NodeKind if k is not NodeKind.OTHER}

CALL_KINDS = frozenset(
    {NodeKind.STATIC_CALL, NodeKind.MEMBER_CALL, NodeKind.NULLSAFE_MEMBER_CALL, NodeKind.FUNCTION_CALL}
)
INSTANCE_CALL_KINDS = frozenset({NodeKind.MEMBER_CALL, NodeKind.NULLSAFE_MEMBER_CALL})
CLOSURE_KINDS = frozenset({NodeKind.CLOSURE, NodeKind.LEGACY_CLOSURE, NodeKind.ARROW_FUNCTION})
CLASS_NAME_KINDS = frozenset({NodeKind.NAME, NodeKind.QUALIFIED_NAME})
STRING_KINDS = frozenset({NodeKind.STRING, NodeKind.ENCAPSED_STRING, NodeKind.NOWDOC, NodeKind.HEREDOC})
BOOLEAN_CONNECTIVES = frozenset({"&&", "||", "and", "or"})


class _Unknown:
    """Sentinel for "not a compile-time literal"."""

    def __repr__(self) -> str:
        return "UNKNOWN"


UNKNOWN: Any = _Unknown()

_SINGLE_QUOTE_ESCAPES = re.compile(r"\\([\\'])")
_DOUBLE_QUOTE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "v": "\v", "e": "\x1b", "f": "\f", "\\": "\\", "$": "$", '"': '"'}
_WHITESPACE = re.compile(r"\s+")


def kind_of(node: Node | None) -> NodeKind:
    """Map a tree-sitter node to its NodeKind (OTHER for anything unlisted)."""
    if node is None:
        return NodeKind.OTHER
    return _KIND_BY_TYPE.get(node.type, NodeKind.OTHER)


def node_text(node: Node | None) -> str:
    """Extract source text for a node."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def pretty(node: Node | None) -> str:
    """Side-effect-free pretty print: the node's source with whitespace collapsed."""
    return _WHITESPACE.sub(" ", node_text(node)).strip()


def line_of(node: Node) -> int:
    return node.start_point[0] + 1


def same_node(a: Node | None, b: Node | None) -> bool:
    if a is None or b is None:
        return False
    return a.start_byte == b.start_byte and a.end_byte == b.end_byte and a.type == b.type


def basename(class_name: str | None) -> str:
    """Short class name of a (possibly qualified) class name."""
    if not class_name:
        return ""
    return class_name.rstrip("\\").rsplit("\\", 1)[-1]


# ── Traversal ──


def walk(node: Node, skip: Callable[[Node], bool] | None = None) -> Iterator[Node]:
    """Pre-order traversal; subtrees of nodes for which skip() is true are not entered."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if skip is not None and current is not node and skip(current):
            continue
        stack.extend(reversed(current.children))


def find_first(node: Node, predicate: Callable[[Node], bool]) -> Node | None:
    for candidate in walk(node):
        if predicate(candidate):
            return candidate
    return None


def find_all(node: Node, predicate: Callable[[Node], bool], skip_closures: bool = False) -> list[Node]:
    skip = is_closure if skip_closures else None
    return [n for n in walk(node, skip) if predicate(n)]


def find_kind(node: Node, *kinds: NodeKind, skip_closures: bool = False) -> list[Node]:
    wanted = set(kinds)
    return find_all(node, lambda n: kind_of(n) in wanted, skip_closures)


def child_of_kind(node: Node | None, *kinds: NodeKind) -> Node | None:
    if node is None:
        return None
    wanted = set(kinds)
    for child in node.named_children:
        if kind_of(child) in wanted:
            return child
    return None


def is_closure(node: Node) -> bool:
    return kind_of(node) in CLOSURE_KINDS


def unwrap(node: Node | None) -> Node | None:
    """Strip parenthesized_expression wrappers."""
    while node is not None and kind_of(node) is NodeKind.PARENTHESIZED:
        inner = node.named_children
        if not inner:
            return None
        node = inner[0]
    return node


def count_connectives(node: Node | None) -> int:
    """Count boolean connectives (&&, ||, and, or) in an expression, closures excluded."""
    if node is None:
        return 0
    total = 0
    for candidate in walk(node, is_closure):
        if kind_of(candidate) is NodeKind.BINARY and binary_operator(candidate) in BOOLEAN_CONNECTIVES:
            total += 1
    return total


def binary_operator(node: Node) -> str:
    operator = node.child_by_field_name("operator")
    if operator is not None:
        return operator.type.lower()
    # Fall back to the first anonymous child between the operands
    for child in node.children:
        if not child.is_named:
            return child.type.lower()
    return ""


# ── Calls ──


def call_name(node: Node) -> str:
    """Method or function name of a call node."""
    kind = kind_of(node)
    if kind is NodeKind.FUNCTION_CALL:
        return basename(node_text(node.child_by_field_name("function")))
    return node_text(node.child_by_field_name("name"))


def call_arguments(node: Node) -> list[Node]:
    """Value nodes of a call's (or `new` expression's) arguments, in order."""
    args = node.child_by_field_name("arguments") or child_of_kind(node, NodeKind.ARGUMENTS)
    if args is None:
        return []
    values: list[Node] = []
    for arg in args.named_children:
        if kind_of(arg) is NodeKind.ARGUMENT:
            value = argument_value(arg)
            if value is not None:
                values.append(value)
    return values


def argument_value(arg: Node) -> Node | None:
    named = arg.named_children
    if not named:
        return None
    name_field = arg.child_by_field_name("name")
    candidates = [c for c in named if not same_node(c, name_field)]
    return candidates[-1] if candidates else named[-1]


def receiver(node: Node) -> Node | None:
    """Object of an instance call or property access."""
    return node.child_by_field_name("object")


def static_scope(node: Node) -> Node | None:
    return node.child_by_field_name("scope")


def created_class(node: Node) -> Node | None:
    """Class name node of an object_creation_expression."""
    return child_of_kind(node, NodeKind.NAME, NodeKind.QUALIFIED_NAME)


def chain_root(node: Node) -> Node:
    """Innermost receiver of a chain like A::x()->y()->z()."""
    current = node
    while kind_of(current) in INSTANCE_CALL_KINDS | {NodeKind.MEMBER_ACCESS, NodeKind.NULLSAFE_MEMBER_ACCESS}:
        inner = receiver(current)
        if inner is None:
            break
        current = inner
    return current


def variable_name(node: Node | None) -> str | None:
    """Name (without $) of a plain variable node."""
    node = unwrap(node)
    if kind_of(node) is not NodeKind.VARIABLE:
        return None
    return node_text(node).lstrip("$")


def is_this(node: Node | None) -> bool:
    return variable_name(node) == "this"


# ── Literals ──


def string_value(node: Node | None) -> str | None:
    """Literal value of a string node; None for interpolated or non-string nodes."""
    node = unwrap(node)
    kind = kind_of(node)
    if kind not in STRING_KINDS:
        return None
    if kind is NodeKind.ENCAPSED_STRING or kind is NodeKind.HEREDOC:
        for child in node.named_children:
            if child.type not in ("string_content", "string_value", "escape_sequence", "heredoc_start",
                                  "heredoc_end", "heredoc_body", "string"):
                return None
    raw = node_text(node)
    if kind in (NodeKind.HEREDOC, NodeKind.NOWDOC):
        body = raw.split("\n", 1)[1] if "\n" in raw else ""
        return body.rsplit("\n", 1)[0]
    # Binary-string prefix: b'...'
    if raw[:1] in ("b", "B"):
        raw = raw[1:]
    if len(raw) < 2:
        return None
    quote, inner = raw[0], raw[1:-1]
    if quote == "'":
        return _SINGLE_QUOTE_ESCAPES.sub(r"\1", inner)
    return re.sub(r"\\(.)", lambda m: _DOUBLE_QUOTE_ESCAPES.get(m.group(1), m.group(0)), inner)


def int_value(node: Node | None) -> int | None:
    node = unwrap(node)
    if kind_of(node) is not NodeKind.INTEGER:
        return None
    text = node_text(node).replace("_", "")
    try:
        return int(text, 0)
    except ValueError:
        try:
            return int(text, 8) if text.startswith("0") else int(text)
        except ValueError:
            return None


def literal_value(node: Node | None) -> Any:
    """Compile-time value of a literal expression, or UNKNOWN."""
    node = unwrap(node)
    kind = kind_of(node)
    if kind in STRING_KINDS:
        value = string_value(node)
        return UNKNOWN if value is None else value
    if kind is NodeKind.INTEGER:
        value = int_value(node)
        return UNKNOWN if value is None else value
    if kind is NodeKind.FLOAT:
        try:
            return float(node_text(node).replace("_", ""))
        except ValueError:
            return UNKNOWN
    if kind is NodeKind.BOOLEAN:
        return node_text(node).lower() == "true"
    if kind is NodeKind.NULL:
        return None
    if kind is NodeKind.NAME:
        lowered = node_text(node).lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        if lowered == "null":
            return None
        return UNKNOWN
    if kind is NodeKind.UNARY:
        operand = node.named_children[-1] if node.named_children else None
        value = literal_value(operand)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and node_text(node).startswith("-"):
            return -value
        return UNKNOWN
    if kind is NodeKind.ARRAY:
        items = array_items(node)
        if all(k is None for k, _ in items):
            values = [literal_value(v) for _, v in items]
            return UNKNOWN if any(v is UNKNOWN for v in values) else values
        result: dict[Any, Any] = {}
        for key_node, value_node in items:
            key = literal_value(key_node) if key_node is not None else len(result)
            value = literal_value(value_node)
            if key is UNKNOWN or value is UNKNOWN:
                return UNKNOWN
            result[key] = value
        return result
    return UNKNOWN


def array_items(node: Node) -> list[tuple[Node | None, Node]]:
    """(key, value) node pairs of an array literal; key is None for list entries."""
    node = unwrap(node)
    items: list[tuple[Node | None, Node]] = []
    if kind_of(node) is not NodeKind.ARRAY:
        return items
    for element in node.named_children:
        if kind_of(element) is not NodeKind.ARRAY_ELEMENT:
            continue
        key_node = element.child_by_field_name("key")
        value_node = element.child_by_field_name("value")
        if value_node is None:
            named = element.named_children
            has_arrow = any(not c.is_named and c.type == "=>" for c in element.children)
            if has_arrow and len(named) >= 2:
                key_node, value_node = named[0], named[-1]
            elif named:
                key_node, value_node = None, named[-1]
            else:
                continue
        if value_node.type in ("variadic_unpacking", "by_ref"):
            continue
        items.append((key_node, value_node))
    return items


def string_list(node: Node | None) -> list[str]:
    """Strings from a string literal or an array of string literals."""
    node = unwrap(node)
    single = string_value(node)
    if single is not None:
        return [single]
    if node is None:
        return []
    return [s for _, v in array_items(node) if (s := string_value(v)) is not None]
