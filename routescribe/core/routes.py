"""
Route Table: which HTTP verbs, URI and middleware reach a controller method.

StaticRouteTable.from_directory() reads the project's routes/*.php files
without booting the application: verb routes, resource routes, chained
middleware and nested groups (prefix, middleware, controller).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Protocol

from tree_sitter import Node

from routescribe.core.errors import SourceParseError
from routescribe.core.naming import singular
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    array_items,
    basename,
    call_arguments,
    call_name,
    is_closure,
    kind_of,
    node_text,
    receiver,
    static_scope,
    string_list,
    string_value,
    unwrap,
)
from routescribe.core.unit import SourceUnit

logger = logging.getLogger("routescribe.routes")

VERBS = {
    "get": ["GET", "HEAD"],
    "post": ["POST"],
    "put": ["PUT"],
    "patch": ["PATCH"],
    "delete": ["DELETE"],
    "options": ["OPTIONS"],
    "any": ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
}

# action → (verbs, uri suffix); {param} is replaced with the resource parameter
RESOURCE_ACTIONS: dict[str, tuple[list[str], str]] = {
    "index": (["GET", "HEAD"], ""),
    "create": (["GET", "HEAD"], "/create"),
    "store": (["POST"], ""),
    "show": (["GET", "HEAD"], "/{param}"),
    "edit": (["GET", "HEAD"], "/{param}/edit"),
    "update": (["PUT", "PATCH"], "/{param}"),
    "destroy": (["DELETE"], "/{param}"),
}
API_RESOURCE_ACTIONS = ("index", "store", "show", "update", "destroy")

_PLACEHOLDER = re.compile(r"\{(\w+)(\?)?\}")


@dataclass
class RouteEntry:
    methods: list[str] = field(default_factory=list)
    uri: str = ""
    middleware: list[str] = field(default_factory=list)

    def placeholders(self) -> list[tuple[str, bool]]:
        """(name, optional) for each {param} / {param?} in the URI."""
        return [(m.group(1), bool(m.group(2))) for m in _PLACEHOLDER.finditer(self.uri)]


class RouteTable(Protocol):
    def lookup(self, controller: str, method: str) -> RouteEntry | None: ...


class NullRouteTable:
    def lookup(self, controller: str, method: str) -> RouteEntry | None:
        return None


@dataclass
class _Group:
    prefix: str = ""
    middleware: list[str] = field(default_factory=list)
    controller: str | None = None


class StaticRouteTable:
    """(controller, method) → RouteEntry, built in memory or from route files."""

    def __init__(self, entries: Mapping[tuple[str, str], RouteEntry] | None = None) -> None:
        self._entries: dict[tuple[str, str], RouteEntry] = {}
        for (controller, method), entry in (entries or {}).items():
            self.add(controller, method, entry)

    def add(self, controller: str, method: str, entry: RouteEntry) -> None:
        key = (controller.lstrip("\\").lower(), method.lower())
        # First registration wins, as in the framework's route matching order
        self._entries.setdefault(key, entry)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, controller: str, method: str) -> RouteEntry | None:
        key = (controller.lstrip("\\").lower(), method.lower())
        found = self._entries.get(key)
        if found is not None:
            return found
        short = basename(controller).lower()
        for (candidate, candidate_method), entry in self._entries.items():
            if candidate_method == method.lower() and basename(candidate) == short:
                return entry
        return None

    @classmethod
    def from_sources(cls, sources: Mapping[str, str]) -> StaticRouteTable:
        """Build from {path: code}; a file named api.php gets the `api` URI prefix."""
        table = cls()
        for path, code in sources.items():
            try:
                unit = SourceUnit.parse(code, path)
            except SourceParseError as e:
                logger.warning(f"Skipping route file {path}: {e}")
                continue
            prefix = "api" if Path(path).name == "api.php" else ""
            table.read_unit(unit, _Group(prefix=prefix))
        return table

    @classmethod
    def from_directory(cls, root: str | Path) -> StaticRouteTable:
        directory = Path(root) / "routes"
        if not directory.is_dir():
            return cls()
        sources: dict[str, str] = {}
        for path in sorted(directory.glob("*.php")):
            try:
                sources[str(path)] = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning(f"Cannot read {path}: {e}")
        table = cls.from_sources(sources)
        logger.info(f"Loaded {len(table)} controller routes from {directory}")
        return table

    # ── Reading ──

    def read_unit(self, unit: SourceUnit, group: _Group) -> None:
        self._read_statements(unit.root, unit, group)

    def _read_statements(self, container: Node, unit: SourceUnit, group: _Group) -> None:
        for statement in container.named_children:
            kind = kind_of(statement)
            if kind is NodeKind.EXPRESSION_STATEMENT:
                expression = unwrap(statement.named_children[0]) if statement.named_children else None
                if expression is not None:
                    self._read_chain(expression, unit, group)
            elif kind in (NodeKind.NAMESPACE, NodeKind.COMPOUND):
                body = statement.child_by_field_name("body") or statement
                self._read_statements(body, unit, group)

    def _read_chain(self, expression: Node, unit: SourceUnit, group: _Group) -> None:
        calls = _flatten(expression)
        if not calls or kind_of(calls[0]) is not NodeKind.STATIC_CALL:
            return
        if basename(node_text(static_scope(calls[0]))).lower() != "route":
            return

        names = [call_name(call) for call in calls]
        if "group" in names:
            self._read_group(calls, unit, group)
            return

        head, head_name = calls[0], names[0].lower()
        middleware = list(group.middleware)
        for call, name in zip(calls[1:], names[1:]):
            if name == "middleware":
                middleware.extend(_middleware_args(call))

        if head_name in ("resource", "apiresource"):
            self._read_resource(calls, names, unit, group, middleware, api=head_name == "apiresource")
            return

        args = call_arguments(head)
        if head_name == "match" and len(args) >= 3:
            verbs = [v.upper() for v in string_list(args[0])]
            uri_node, action_node = args[1], args[2]
        elif head_name in VERBS and len(args) >= 2:
            verbs = list(VERBS[head_name])
            uri_node, action_node = args[0], args[1]
        else:
            return

        action = self._action(action_node, unit, group)
        if action is None:
            return
        controller, method = action
        self.add(controller, method, RouteEntry(verbs, _join(group.prefix, string_value(uri_node) or ""), middleware))

    def _read_group(self, calls: list[Node], unit: SourceUnit, group: _Group) -> None:
        nested = _Group(prefix=group.prefix, middleware=list(group.middleware), controller=group.controller)
        body: Node | None = None
        for call in calls:
            name = call_name(call).lower()
            args = call_arguments(call)
            if name == "prefix" and args:
                nested.prefix = _join(nested.prefix, string_value(args[0]) or "")
            elif name == "middleware" and args:
                nested.middleware.extend(_middleware_args(call))
            elif name == "controller" and args:
                nested.controller = unit.class_reference(args[0])
            elif name == "group" and args:
                closure = unwrap(args[-1])
                if closure is not None and is_closure(closure):
                    body = closure.child_by_field_name("body")
                # Route::group(['prefix' => ..., 'middleware' => ...], fn)
                if len(args) > 1:
                    for key_node, value_node in array_items(args[0]):
                        key = string_value(key_node) if key_node is not None else None
                        if key == "prefix":
                            nested.prefix = _join(nested.prefix, string_value(value_node) or "")
                        elif key == "middleware":
                            nested.middleware.extend(string_list(value_node))
        if body is not None:
            self._read_statements(body, unit, nested)

    def _read_resource(
        self,
        calls: list[Node],
        names: list[str],
        unit: SourceUnit,
        group: _Group,
        middleware: list[str],
        api: bool,
    ) -> None:
        args = call_arguments(calls[0])
        if len(args) < 2:
            return
        name = string_value(args[0])
        controller = unit.class_reference(args[1])
        if not name or not controller:
            return
        actions = list(API_RESOURCE_ACTIONS if api else RESOURCE_ACTIONS)
        for call, chained in zip(calls[1:], names[1:]):
            chained_args = call_arguments(call)
            if chained == "only" and chained_args:
                wanted = set(string_list(chained_args[0]))
                actions = [a for a in actions if a in wanted]
            elif chained == "except" and chained_args:
                unwanted = set(string_list(chained_args[0]))
                actions = [a for a in actions if a not in unwanted]

        base = _join(group.prefix, name.replace(".", "/"))
        param = singular(re.split(r"[./]", name)[-1]).replace("-", "_")
        for action in actions:
            verbs, suffix = RESOURCE_ACTIONS[action]
            uri = base + suffix.replace("{param}", "{" + param + "}")
            self.add(controller, action, RouteEntry(list(verbs), uri, list(middleware)))

    @staticmethod
    def _action(node: Node, unit: SourceUnit, group: _Group) -> tuple[str, str] | None:
        node = unwrap(node)
        items = array_items(node) if kind_of(node) is NodeKind.ARRAY else []
        if len(items) == 2:
            controller = unit.class_reference(items[0][1])
            method = string_value(items[1][1])
            return (controller, method) if controller and method else None
        literal = string_value(node)
        if literal is not None:
            if "@" in literal:
                controller, _, method = literal.partition("@")
                return unit.resolve_name(controller), method
            if group.controller:
                return group.controller, literal
            return None
        controller = unit.class_reference(node)
        return (controller, "__invoke") if controller else None


def _flatten(expression: Node) -> list[Node]:
    """Calls of a chain, innermost first: Route::a()->b()->c() → [a, b, c]."""
    calls: list[Node] = []
    current: Node | None = expression
    while current is not None:
        kind = kind_of(current)
        if kind in INSTANCE_CALL_KINDS:
            calls.append(current)
            current = receiver(current)
        elif kind is NodeKind.STATIC_CALL:
            calls.append(current)
            break
        else:
            return []
    calls.reverse()
    return calls


def _middleware_args(call: Node) -> list[str]:
    names: list[str] = []
    for arg in call_arguments(call):
        names.extend(string_list(arg))
    return names


def _join(prefix: str, uri: str) -> str:
    parts = [part.strip("/") for part in (prefix, uri) if part and part.strip("/")]
    return "/".join(parts)
