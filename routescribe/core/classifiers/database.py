"""
Database Classifier: direct query-builder calls through the DB facade.

Only `DB::` static calls with a fixed verb set are reported; Eloquent
calls are the model classifier's concern.
"""

from __future__ import annotations

from typing import Any

from routescribe.core.classifiers.common import is_facade, nodes
from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import NodeKind, call_name
from routescribe.core.unit import MethodDecl

CLASSIFIER_ID = "database"

WRITE_VERBS = frozenset({"insert", "update", "delete", "statement"})


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    """Tag DB transactions and raw write statements."""
    operations: list[str] = []
    for call in nodes(method, NodeKind.STATIC_CALL):
        if not is_facade(ctx, call, "DB"):
            continue
        verb = call_name(call)
        if verb == "transaction":
            operations.append("database_transaction")
        elif verb in WRITE_VERBS:
            operations.append(f"database_{verb}")
    return {"database_operations": operations}
