"""
Classifier Engine: runs every registered operation classifier on a method.

Classifiers are independent; each returns a partial analysis record keyed
by MethodAnalysis field names. Partials are folded into the record with
set-union semantics, so overlapping findings collapse instead of
repeating. A failing classifier is recorded on the record and skipped.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from pydantic import BaseModel

from routescribe.core.context import AnalysisContext
from routescribe.core.unit import MethodDecl
from routescribe.models.analysis_models import MethodAnalysis

# Import all classifier modules
from routescribe.core.classifiers import (
    authorization,
    cache,
    database,
    exceptions,
    form_request,
    inline_validation,
    jobs,
    middleware,
    models,
    responses,
    routing,
)

logger = logging.getLogger("routescribe.classifiers")

# Type for a classifier function
ClassifyFn = Callable[[AnalysisContext, MethodDecl], dict[str, Any]]

# Registry of all operation classifiers
CLASSIFIER_REGISTRY: dict[str, ClassifyFn] = {
    database.CLASSIFIER_ID: database.classify,
    cache.CLASSIFIER_ID: cache.classify,
    jobs.CLASSIFIER_ID: jobs.classify,
    authorization.CLASSIFIER_ID: authorization.classify,
    exceptions.CLASSIFIER_ID: exceptions.classify,
    inline_validation.CLASSIFIER_ID: inline_validation.classify,
    form_request.CLASSIFIER_ID: form_request.classify,
    middleware.CLASSIFIER_ID: middleware.classify,
    models.CLASSIFIER_ID: models.classify,
    responses.CLASSIFIER_ID: responses.classify,
    routing.CLASSIFIER_ID: routing.classify,
}


class ClassifierEngine:
    """
    Runs classifiers against one method and folds their partials into its record.
    """

    def __init__(self, classifiers: dict[str, ClassifyFn] | None = None) -> None:
        self.classifiers = classifiers or CLASSIFIER_REGISTRY

    def run(self, ctx: AnalysisContext, method: MethodDecl, analysis: MethodAnalysis) -> MethodAnalysis:
        start = time.monotonic()
        for classifier_id, classify_fn in self.classifiers.items():
            try:
                partial = classify_fn(ctx, method)
            except Exception as e:
                # Classifier failures should not lose the rest of the record
                logger.warning(f"Classifier '{classifier_id}' failed on {method.name}: {e}")
                analysis.errors.append(f"{classifier_id}: {type(e).__name__}: {e}")
                continue
            merge_partial(analysis, partial)
        elapsed = (time.monotonic() - start) * 1000
        logger.debug(f"Classified {ctx.controller.name}::{method.name} in {elapsed:.1f}ms")
        return analysis


def merge_partial(analysis: MethodAnalysis, partial: dict[str, Any]) -> None:
    """Fold a partial record into the analysis: lists union, maps keep the first entry per key."""
    for key, value in partial.items():
        current = getattr(analysis, key)
        if isinstance(current, list):
            for item in value:
                if item not in current:
                    current.append(item)
        elif isinstance(current, dict):
            for name, entry in value.items():
                if name not in current:
                    current[name] = entry
                elif isinstance(current[name], list) and isinstance(entry, list):
                    current[name] = current[name] + [e for e in entry if e not in current[name]]
        elif isinstance(current, BaseModel) and isinstance(value, BaseModel) and current != type(current)():
            # A section another classifier already filled is kept
            continue
        else:
            setattr(analysis, key, value)
