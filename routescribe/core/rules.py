"""
Validation Rules: decomposition of Laravel rule strings into tokens, and
the ordered pattern tables that derive parameter type, required/nullable
flags, constraint text and error messages from a token set.

All derivations are pure functions of the token list.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from tree_sitter import Node

from routescribe.core.syntax import (
    NodeKind,
    array_items,
    kind_of,
    pretty,
    string_value,
    unwrap,
)
from routescribe.models.analysis_models import ParamSpec

_RULE_OBJECT_CALL = re.compile(r"^\\?(?:Illuminate\\Validation\\)?Rule::(\w+)\((.*)\)$", re.DOTALL)
_QUOTED = re.compile(r"""['"]([^'"]*)['"]""")


@dataclass(frozen=True)
class RuleToken:
    """One validation instruction: name plus colon-delimited arguments."""

    raw: str
    name: str
    args: tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw: str) -> RuleToken:
        raw = raw.strip()
        match = _RULE_OBJECT_CALL.match(raw)
        if match:
            return cls(raw, match.group(1).lower(), tuple(_QUOTED.findall(match.group(2))))
        name, _, rest = raw.partition(":")
        name = name.strip().lower()
        if not rest:
            return cls(raw, name)
        if name in ("regex", "not_regex", "date_format"):
            return cls(raw, name, (rest,))
        return cls(raw, name, tuple(arg.strip() for arg in rest.split(",")))

    def arg(self, index: int) -> str | None:
        return self.args[index] if index < len(self.args) else None


def tokenize(rules: str | Iterable[str]) -> list[RuleToken]:
    """Pipe-delimited strings are split; list entries are single tokens."""
    if isinstance(rules, str):
        return [RuleToken.parse(part) for part in rules.split("|") if part.strip()]
    return [RuleToken.parse(rule) for rule in rules if rule and rule.strip()]


def _names(tokens: list[RuleToken]) -> set[str]:
    return {token.name for token in tokens}


# ── Type ──

# Ordered: the first token matching any row decides, rows checked top to bottom per token
TYPE_PATTERNS: list[tuple[frozenset[str], str]] = [
    (frozenset({"file", "image", "mimes", "mimetypes", "dimensions", "extensions"}), "file"),
    (frozenset({"integer", "int", "digits", "digits_between"}), "integer"),
    (frozenset({"numeric", "decimal", "float", "double"}), "number"),
    (frozenset({"boolean", "bool", "accepted", "declined", "accepted_if", "declined_if"}), "boolean"),
    (frozenset({"array", "list"}), "array"),
    (
        frozenset({"date", "date_format", "date_equals", "after", "before", "after_or_equal", "before_or_equal"}),
        "datetime",
    ),
    (frozenset({"exists", "unique"}), "integer"),
    (
        frozenset(
            {
                "string", "email", "url", "active_url", "ip", "ipv4", "ipv6", "uuid", "ulid", "json",
                "alpha", "alpha_num", "alpha_dash", "regex", "in", "timezone", "lowercase", "uppercase",
            }
        ),
        "string",
    ),
]


def infer_type(tokens: list[RuleToken]) -> str:
    for token in tokens:
        for names, param_type in TYPE_PATTERNS:
            if token.name in names:
                return param_type
    return "string"


def is_required(tokens: list[RuleToken]) -> bool:
    names = _names(tokens)
    return "required" in names and "sometimes" not in names


def is_nullable(tokens: list[RuleToken]) -> bool:
    return "nullable" in _names(tokens)


# ── Bounds ──


def _number(text: str | None) -> int | float | None:
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            return None


def min_bound(tokens: list[RuleToken]) -> int | float | None:
    for token in tokens:
        if token.name in ("min", "between", "digits_between"):
            return _number(token.arg(0))
    return None


def max_bound(tokens: list[RuleToken]) -> int | float | None:
    for token in tokens:
        if token.name == "max":
            return _number(token.arg(0))
        if token.name in ("between", "digits_between"):
            return _number(token.arg(1))
    return None


def size_bound(tokens: list[RuleToken]) -> int | float | None:
    for token in tokens:
        if token.name == "size":
            return _number(token.arg(0))
    return None


# ── Constraints ──


def _one_of(args: tuple[str, ...]) -> str:
    shown = ", ".join(args[:5])
    return f"one of: {shown}..." if len(args) > 5 else f"one of: {shown}"


def constraints(tokens: list[RuleToken]) -> list[str]:
    """Human-readable constraint phrases in token order."""
    phrases: list[str] = []
    for token in tokens:
        name = token.name
        if name == "min" and token.args:
            phrases.append(f"min: {token.args[0]}")
        elif name == "max" and token.args:
            phrases.append(f"max: {token.args[0]}")
        elif name in ("between", "digits_between") and len(token.args) >= 2:
            phrases.append(f"between {token.args[0]} and {token.args[1]}")
        elif name == "size" and token.args:
            phrases.append(f"size: {token.args[0]}")
        elif name == "in" and token.args:
            phrases.append(_one_of(token.args))
        elif name == "exists":
            phrases.append(f"must exist in {token.args[0]}" if token.args else "must exist")
        elif name == "unique":
            phrases.append("must be unique")
        elif name == "email":
            phrases.append("valid email")
        elif name in ("url", "active_url"):
            phrases.append("valid URL")
        elif name in ("ip", "ipv4", "ipv6"):
            phrases.append("valid IP address")
        elif name == "json":
            phrases.append("valid JSON")
        elif name == "date":
            phrases.append("valid date")
        elif name == "date_format" and token.args:
            phrases.append(f"date format: {token.args[0]}")
        elif name == "mimes" and token.args:
            phrases.append(f"file types: {', '.join(token.args)}")
        elif name == "mimetypes" and token.args:
            phrases.append(f"MIME types: {', '.join(token.args)}")
        elif name == "confirmed":
            phrases.append("must be confirmed")
        elif name == "uuid":
            phrases.append("valid UUID")
    return phrases


def describe(field: str, tokens: list[RuleToken], label: str | None = None) -> str:
    subject = label or field.replace(".*.", " ").replace(".", " ").replace("_", " ")
    phrases = constraints(tokens)
    if phrases:
        return f"The {subject} ({', '.join(phrases)})."
    return f"The {subject}."


def param_from_rules(field: str, rules: str | Iterable[str], label: str | None = None) -> ParamSpec:
    tokens = tokenize(rules)
    return ParamSpec(
        field=field,
        type=infer_type(tokens),
        required=is_required(tokens),
        nullable=is_nullable(tokens),
        description=describe(field, tokens, label),
        constraints=constraints(tokens),
        rules=[token.raw for token in tokens],
    )


# ── Error messages ──


def validation_message(field: str, rules: str | Iterable[str]) -> str | None:
    """Laravel-style first error message for a field, None for optional fields with no rule to fail."""
    tokens = tokenize(rules)
    names = _names(tokens)
    subject = field.replace("_", " ")
    optional = "nullable" in names or "sometimes" in names

    if "required" in names and not optional:
        return f"The {subject} field is required."
    if "email" in names:
        return f"The {subject} must be a valid email address."
    if names & {"numeric", "integer"}:
        return f"The {subject} must be a number."
    if "string" in names:
        return f"The {subject} must be a string."
    if "array" in names:
        return f"The {subject} must be an array."
    if names & {"boolean", "bool"}:
        return f"The {subject} must be true or false."
    if "date" in names:
        return f"The {subject} is not a valid date."
    if "exists" in names:
        return f"The selected {subject} is invalid."
    if "unique" in names:
        return f"The {subject} has already been taken."
    for token in tokens:
        if token.name == "min" and token.args:
            return f"The {subject} must be at least {token.args[0]} characters."
        if token.name == "max" and token.args:
            return f"The {subject} may not be greater than {token.args[0]} characters."
    if optional:
        return None
    return f"The {subject} field is invalid."


# ── Extraction from syntax ──


def _rule_entries(value: Node) -> list[str]:
    value = unwrap(value)
    literal = string_value(value)
    if literal is not None:
        return [part for part in literal.split("|") if part.strip()]
    if kind_of(value) is NodeKind.ARRAY:
        entries: list[str] = []
        for _, item in array_items(value):
            item_literal = string_value(item)
            # Expressions (Rule::in(...), new Password(8), constants) are kept as printed text
            entries.append(item_literal if item_literal is not None else pretty(item))
        return entries
    return [pretty(value)] if value is not None else []


def rules_from_array(node: Node | None) -> dict[str, list[str]]:
    """field → rule strings from a `['field' => 'required|max:255', ...]` literal."""
    rules: dict[str, list[str]] = {}
    if node is None:
        return rules
    for key_node, value_node in array_items(node):
        field = string_value(key_node) if key_node is not None else None
        if not field:
            continue
        rules[field] = _rule_entries(value_node)
    return rules
