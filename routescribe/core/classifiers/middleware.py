"""
Middleware Classifier: authentication and throttling requirements.

Controller middleware comes from `$this->middleware(...)` calls in the
constructor (with a directly chained `->only()` / `->except()`) and from a
static `middleware()` declaration returning `new Middleware(...)` entries.
Route middleware comes from the route table entry for the action.
"""

from __future__ import annotations

from typing import Any

from tree_sitter import Node

from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    array_items,
    call_arguments,
    call_name,
    child_of_kind,
    created_class,
    find_kind,
    is_this,
    kind_of,
    node_text,
    receiver,
    same_node,
    string_list,
    unwrap,
)
from routescribe.core.unit import MethodDecl
from routescribe.models.analysis_models import MiddlewareEntry, MiddlewareInfo, RateLimitInfo

CLASSIFIER_ID = "middleware"

AUTH_MIDDLEWARE = ("auth", "Authenticate", "authenticated")
THROTTLE_PREFIX = "throttle"


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    info = MiddlewareInfo(controller_middleware=controller_middleware(ctx))
    route = ctx.route(method.name)
    if route is not None:
        info.route_middleware = list(route.middleware)

    applicable = [entry.name for entry in info.controller_middleware if entry.applies_to(method.name)]
    applicable.extend(info.route_middleware)

    for name in applicable:
        if is_auth_middleware(name):
            info.requires_auth = True
            info.auth_guard = auth_guard(name)
            break

    result: dict[str, Any] = {"middleware": info}
    for name in applicable:
        limit = rate_limit(name)
        if limit is not None:
            result["rate_limiting"] = limit
            break
    return result


def is_auth_middleware(name: str) -> bool:
    short = name.rsplit("\\", 1)[-1]
    return any(name.startswith(prefix) or short == prefix for prefix in AUTH_MIDDLEWARE)


def auth_guard(name: str) -> str | None:
    """'auth:sanctum' → 'sanctum'; 'auth:api,web' → 'api'."""
    if ":" not in name:
        return None
    guards = name.split(":", 1)[1]
    return guards.split(",", 1)[0].strip() or None


def rate_limit(name: str) -> RateLimitInfo | None:
    """'throttle:60,1' → 60 attempts per 1 minute; 'throttle:api' names a limiter."""
    if not name.startswith(THROTTLE_PREFIX):
        return None
    _, _, args = name.partition(":")
    if not args:
        return RateLimitInfo(enabled=True)
    parts = [part.strip() for part in args.split(",")]
    attempts: int | str = int(parts[0]) if parts[0].isdigit() else parts[0]
    decay: int | str | None = None
    if len(parts) > 1:
        decay = int(parts[1]) if parts[1].isdigit() else parts[1]
    elif isinstance(attempts, int):
        decay = 1
    return RateLimitInfo(enabled=True, max_attempts=attempts, decay_minutes=decay)


# ── Controller declarations ──


def controller_middleware(ctx: AnalysisContext) -> list[MiddlewareEntry]:
    entries: list[MiddlewareEntry] = []
    constructor = ctx.method("__construct")
    if constructor is not None and constructor.body is not None:
        for call in find_kind(constructor.body, NodeKind.MEMBER_CALL):
            if call_name(call) == "middleware" and is_this(receiver(call)):
                entries.extend(_constructor_entries(ctx, call))
    declared = ctx.method("middleware")
    if declared is not None and declared.is_static:
        entries.extend(_declared_entries(ctx, declared))
    return entries


def _names(ctx: AnalysisContext, node: Node | None) -> list[str]:
    node = unwrap(node)
    if kind_of(node) is NodeKind.CLASS_CONSTANT:
        reference = ctx.unit.class_reference(node, ctx.controller)
        return [reference] if reference else []
    if kind_of(node) is NodeKind.ARRAY:
        names: list[str] = []
        for _, value in array_items(node):
            names.extend(_names(ctx, value))
        return names
    return string_list(node)


def _constructor_entries(ctx: AnalysisContext, call: Node) -> list[MiddlewareEntry]:
    args = call_arguments(call)
    if not args:
        return []
    only = except_ = None
    # Only a filter applied directly to the middleware() result is read
    parent = call.parent
    if parent is not None and kind_of(parent) in INSTANCE_CALL_KINDS and same_node(receiver(parent), call):
        filter_name = call_name(parent)
        filter_args = call_arguments(parent)
        if filter_name == "only" and filter_args:
            only = string_list(filter_args[0])
        elif filter_name == "except" and filter_args:
            except_ = string_list(filter_args[0])
    return [MiddlewareEntry(name=name, only=only, except_=except_) for name in _names(ctx, args[0])]


def _declared_entries(ctx: AnalysisContext, declared: MethodDecl) -> list[MiddlewareEntry]:
    entries: list[MiddlewareEntry] = []
    if declared.body is None:
        return entries
    for statement in find_kind(declared.body, NodeKind.RETURN, skip_closures=True):
        returned = unwrap(statement.named_children[0]) if statement.named_children else None
        for _, value in array_items(returned):
            value = unwrap(value)
            if kind_of(value) is NodeKind.NEW and node_text(created_class(value)).endswith("Middleware"):
                entries.extend(_middleware_object(ctx, value))
            else:
                entries.extend(MiddlewareEntry(name=name) for name in _names(ctx, value))
        break
    return entries


def _middleware_object(ctx: AnalysisContext, node: Node) -> list[MiddlewareEntry]:
    """new Middleware('auth', only: ['store']) / new Middleware('auth', except: [...])."""
    arguments = child_of_kind(node, NodeKind.ARGUMENTS)
    if arguments is None:
        return []
    positional: list[Node] = []
    named: dict[str, Node] = {}
    for argument in arguments.named_children:
        if kind_of(argument) is not NodeKind.ARGUMENT or not argument.named_children:
            continue
        label = argument.child_by_field_name("name")
        value = argument.named_children[-1]
        if label is not None:
            named[node_text(label)] = value
        else:
            positional.append(value)

    def pick(label: str, position: int) -> Node | None:
        if label in named:
            return named[label]
        return positional[position] if len(positional) > position else None

    middleware, only, except_ = pick("middleware", 0), pick("only", 1), pick("except", 2)
    return [
        MiddlewareEntry(
            name=name,
            only=string_list(only) if only is not None else None,
            except_=string_list(except_) if except_ is not None else None,
        )
        for name in _names(ctx, middleware)
    ]
