"""
Authorization Classifier: policy checks made by the action itself.
"""

from __future__ import annotations

from typing import Any

from routescribe.core.classifiers.common import is_facade, nodes
from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import NodeKind, call_name, kind_of
from routescribe.core.unit import MethodDecl
from routescribe.models.analysis_models import AuthorizationInfo

CLASSIFIER_ID = "authorization"

POLICY_METHODS = frozenset({"authorize", "can", "cannot"})
GATE_METHODS = frozenset({"authorize", "allows", "denies", "check", "any", "none", "inspect"})


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    """`$x->authorize/can/cannot(...)` and `Gate::allows(...)`-style checks."""
    info = AuthorizationInfo()
    kinds = (NodeKind.MEMBER_CALL, NodeKind.NULLSAFE_MEMBER_CALL, NodeKind.STATIC_CALL)
    for call in nodes(method, *kinds):
        name = call_name(call)
        if kind_of(call) is NodeKind.STATIC_CALL:
            if name in GATE_METHODS and is_facade(ctx, call, "Gate"):
                info.required = True
                info.calls.append(f"Gate::{name}")
        elif name in POLICY_METHODS:
            info.required = True
            info.calls.append(name)
    return {"authorization": info}
