"""
Job Classifier: background job dispatch.

Static calls on classes named `*Job` report the job class; instance
`dispatch`/`dispatchSync`/`dispatchNow` calls report a generic dispatch.
"""

from __future__ import annotations

from typing import Any

from routescribe.core.classifiers.common import nodes, scope_name, unique
from routescribe.core.context import AnalysisContext
from routescribe.core.syntax import INSTANCE_CALL_KINDS, NodeKind, call_name, kind_of
from routescribe.core.unit import MethodDecl

CLASSIFIER_ID = "jobs"

DISPATCH_METHODS = frozenset({"dispatch", "dispatchSync", "dispatchNow"})


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    jobs: list[str] = []
    kinds = (NodeKind.STATIC_CALL, NodeKind.MEMBER_CALL, NodeKind.NULLSAFE_MEMBER_CALL)
    for call in nodes(method, *kinds):
        if kind_of(call) is NodeKind.STATIC_CALL:
            written = scope_name(call)
            if written.endswith("Job"):
                jobs.append(written)
        elif kind_of(call) in INSTANCE_CALL_KINDS and call_name(call) in DISPATCH_METHODS:
            jobs.append("job_dispatch")
    return {"job_operations": unique(jobs)}
