"""
Complexity: cyclomatic, cognitive and maintainability metrics.

The counter is driven by enter/leave events, so the body walker can feed it
during its single traversal; measure() runs it standalone for eligibility
checks.
"""

from __future__ import annotations

import math
from collections import Counter

from tree_sitter import Node

from routescribe.core.syntax import (
    CALL_KINDS,
    CLOSURE_KINDS,
    NodeKind,
    binary_operator,
    call_name,
    count_connectives,
    kind_of,
    node_text,
)
from routescribe.models.analysis_models import Complexity

DECISION_KINDS = frozenset(
    {
        NodeKind.IF,
        NodeKind.ELSE_IF,
        NodeKind.FOR,
        NodeKind.FOREACH,
        NodeKind.WHILE,
        NodeKind.DO,
        NodeKind.CASE,
        NodeKind.CATCH,
    }
)
NESTING_KINDS = frozenset(
    {
        NodeKind.IF,
        NodeKind.FOR,
        NodeKind.FOREACH,
        NodeKind.WHILE,
        NodeKind.DO,
        NodeKind.SWITCH,
        NodeKind.CATCH,
    }
)
CONDITIONED_KINDS = frozenset({NodeKind.IF, NodeKind.ELSE_IF, NodeKind.WHILE, NodeKind.DO, NodeKind.FOR})

_OPERATOR_KINDS = frozenset(
    {
        NodeKind.BINARY,
        NodeKind.UNARY,
        NodeKind.ASSIGNMENT,
        NodeKind.AUGMENTED_ASSIGNMENT,
        NodeKind.CONDITIONAL,
        NodeKind.NEW,
    }
) | CALL_KINDS
_OPERAND_KINDS = frozenset(
    {
        NodeKind.VARIABLE,
        NodeKind.STRING,
        NodeKind.ENCAPSED_STRING,
        NodeKind.INTEGER,
        NodeKind.FLOAT,
        NodeKind.BOOLEAN,
        NodeKind.NULL,
    }
)


def condition_of(node: Node) -> Node | None:
    """Condition expression of a branch or loop node."""
    if kind_of(node) in CONDITIONED_KINDS:
        return node.child_by_field_name("condition")
    return None


def condition_weight(node: Node) -> int:
    """Local complexity of a branch: 1 plus one per boolean connective in its condition."""
    return 1 + count_connectives(condition_of(node))


def _is_else_if_chain(node: Node) -> bool:
    # `else if (...)` parses as an else clause wrapping a nested if
    parent = node.parent
    return kind_of(node) is NodeKind.IF and parent is not None and kind_of(parent) is NodeKind.ELSE


class ComplexityCounter:
    """Accumulates metrics from enter/leave traversal events."""

    def __init__(self) -> None:
        self.cyclomatic = 1
        self.cognitive = 0
        self.nesting = 0
        self.max_nesting = 0
        self._pushed: list[bool] = []
        self._operators: Counter[str] = Counter()
        self._operands: Counter[str] = Counter()

    def enter(self, node: Node) -> None:
        kind = kind_of(node)
        pushed = False

        if kind in DECISION_KINDS:
            self.cyclomatic += 1
        if kind in CONDITIONED_KINDS:
            connectives = count_connectives(condition_of(node))
            self.cyclomatic += connectives
            self.cognitive += connectives

        if kind in NESTING_KINDS and not _is_else_if_chain(node):
            self.cognitive += 1 + self.nesting
            self.nesting += 1
            self.max_nesting = max(self.max_nesting, self.nesting)
            pushed = True
        elif kind in (NodeKind.ELSE_IF, NodeKind.ELSE):
            self.cognitive += 1
        elif kind in CLOSURE_KINDS:
            self.nesting += 1
            pushed = True

        if kind in _OPERATOR_KINDS:
            self._operators[self._operator_key(node, kind)] += 1
        elif kind in _OPERAND_KINDS:
            self._operands[node_text(node)] += 1

        self._pushed.append(pushed)

    def leave(self, node: Node) -> None:
        if self._pushed and self._pushed.pop():
            self.nesting -= 1

    @staticmethod
    def _operator_key(node: Node, kind: NodeKind) -> str:
        if kind is NodeKind.BINARY:
            return binary_operator(node)
        if kind in CALL_KINDS:
            return f"call:{call_name(node)}"
        return kind.value

    def halstead_volume(self) -> float:
        length = sum(self._operators.values()) + sum(self._operands.values())
        vocabulary = len(self._operators) + len(self._operands)
        if length == 0 or vocabulary < 2:
            return 0.0
        return length * math.log2(vocabulary)

    def maintainability_index(self) -> float:
        volume = max(self.halstead_volume(), 1.0)
        index = (
            171
            - 5.2 * math.log(volume)
            - 0.23 * (self.cyclomatic + self.cognitive)
            - 16.2 * math.log(self.max_nesting + 1)
        )
        return round(max(0.0, min(100.0, index)), 2)

    def result(self) -> Complexity:
        return Complexity(
            cyclomatic=self.cyclomatic,
            cognitive=self.cognitive,
            maintainability_index=self.maintainability_index(),
            max_nesting=self.max_nesting,
        )


def _feed(counter: ComplexityCounter, node: Node) -> None:
    counter.enter(node)
    for child in node.children:
        _feed(counter, child)
    counter.leave(node)


def measure(method_node: Node) -> Complexity:
    """Complexity of a method (or any subtree) in one standalone traversal."""
    counter = ComplexityCounter()
    body = method_node.child_by_field_name("body") if kind_of(method_node) is NodeKind.METHOD else method_node
    if body is not None:
        _feed(counter, body)
    return counter.result()
