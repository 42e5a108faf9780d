"""
Cache Classifier: Cache facade calls and the cache() helper.
"""

from __future__ import annotations

from typing import Any

from routescribe.core.classifiers.common import is_facade, nodes, unique
from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import NodeKind, call_name, kind_of
from routescribe.core.unit import MethodDecl

CLASSIFIER_ID = "cache"


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    operations: list[str] = []
    for call in nodes(method, NodeKind.STATIC_CALL, NodeKind.FUNCTION_CALL):
        if kind_of(call) is NodeKind.STATIC_CALL:
            if is_facade(ctx, call, "Cache"):
                operations.append(call_name(call))
        elif call_name(call) == "cache":
            operations.append("cache")
    return {"cache_operations": unique(operations)}
