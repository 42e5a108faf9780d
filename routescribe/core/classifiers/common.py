"""
Shared scanning helpers for the operation classifiers.

Classifiers scan the whole method body, closures included, the way a
node finder would; each one keeps its own narrow matching rules.
"""

from __future__ import annotations

from tree_sitter import Node

from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import NodeKind, find_kind, node_text, static_scope
from routescribe.core.unit import MethodDecl

FACADE_NAMESPACE = "Illuminate\\Support\\Facades\\"


def nodes(method: MethodDecl, *kinds: NodeKind) -> list[Node]:
    body = method.body
    if body is None:
        return []
    return find_kind(body, *kinds)


def scope_name(node: Node) -> str:
    """Class reference of a static call exactly as written, without a leading backslash."""
    return node_text(static_scope(node)).strip().lstrip("\\")


def is_facade(ctx: AnalysisContext, node: Node, short: str) -> bool:
    """True for `Short::x()` or `Illuminate\\Support\\Facades\\Short::x()`."""
    written = scope_name(node)
    facade = FACADE_NAMESPACE + short
    if written == short or written == facade:
        return True
    return ctx.resolve(node_text(static_scope(node))) == facade


def unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))
