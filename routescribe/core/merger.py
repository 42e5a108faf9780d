"""
Analysis Merger: folds the body trace and classifier partials into the
final per-method record, in two passes.

Pass 1 (enrich) works on one method at a time: parameter annotations,
promoted body parameters, CRUD intent, response shapes and examples.
Pass 2 (propagate) runs once all methods of a unit are enriched and copies
dynamic fields from `$this->helper()` callees into their callers, one hop
deep, then re-synthesizes the callers' examples.
"""

from __future__ import annotations

import logging
import re

from routescribe.core.classifiers.form_request import is_form_request
from routescribe.core.context import AnalysisContext
from routescribe.core.examples import ExampleSynthesizer
from routescribe.core.http_status import is_success
from routescribe.core.syntax import basename
from routescribe.models.analysis_models import (
    ApiResourceTag,
    MethodAnalysis,
    OperationType,
    ResourceShape,
    ResponseShape,
    ResponseSpec,
)
from routescribe.models.schema_models import ModelSchema

logger = logging.getLogger("routescribe.merger")

# Strongest intent first
INTENT_PRECEDENCE = [
    OperationType.DESTROY,
    OperationType.UPDATE,
    OperationType.STORE,
    OperationType.SHOW,
    OperationType.INDEX,
]

# Method-name fallback; first matching row wins
NAME_INTENTS: list[tuple[re.Pattern[str], OperationType]] = [
    (re.compile(r"index|list|all|getAll", re.IGNORECASE), OperationType.INDEX),
    (re.compile(r"show|find|getById|details", re.IGNORECASE), OperationType.SHOW),
    (re.compile(r"store|create|save|insert", re.IGNORECASE), OperationType.STORE),
    (re.compile(r"update|edit|modify|patch", re.IGNORECASE), OperationType.UPDATE),
    (re.compile(r"destroy|delete|remove", re.IGNORECASE), OperationType.DESTROY),
]

COLLECTION_NAME = re.compile(r"index|list|all|search|filter|getall|browse", re.IGNORECASE)
GENERIC_RESPONSE_TYPES = frozenset({"success", "http_response", "unknown", "variable", "direct"})


def operation_from_name(name: str) -> OperationType:
    for pattern, intent in NAME_INTENTS:
        if pattern.search(name):
            return intent
    return OperationType.NONE


def operation_type(analysis: MethodAnalysis) -> OperationType:
    """Strongest model-call intent, else the method-name pattern."""
    intents = {op.intent for op in analysis.model_operations if op.intent is not None}
    for intent in INTENT_PRECEDENCE:
        if intent in intents:
            return intent
    return operation_from_name(analysis.name)


class AnalysisMerger:
    """Enriches the analyses of one unit; create one per unit."""

    def __init__(self, ctx: AnalysisContext, synthesizer: ExampleSynthesizer) -> None:
        self.ctx = ctx
        self.synthesizer = synthesizer

    # ── Pass 1 ──

    def enrich(self, analysis: MethodAnalysis) -> MethodAnalysis:
        self._annotate_parameters(analysis)
        self._promote_body_params(analysis)

        analysis.operation_type = operation_type(analysis)
        for op in analysis.model_operations:
            if op.intent is OperationType.STORE and analysis.creates_model is None:
                analysis.creates_model = op.model
            elif op.intent is OperationType.UPDATE and analysis.updates_model is None:
                analysis.updates_model = op.model
            elif op.intent is OperationType.DESTROY and analysis.deletes_model is None:
                analysis.deletes_model = op.model

        analysis.api_resource = self._api_resource(analysis)
        if not analysis.responses:
            analysis.responses = self._body_responses(analysis)
        self.synthesize(analysis)
        return analysis

    def _annotate_parameters(self, analysis: MethodAnalysis) -> None:
        for param in analysis.parameters:
            if not param.type or "|" in param.type:
                continue
            if is_form_request(self.ctx, param.type):
                param.form_request = param.type
            else:
                param.model_class = self.ctx.model_class(param.type)

    def _promote_body_params(self, analysis: MethodAnalysis) -> None:
        """Validator::make() rules found by the walker become body params if no classifier saw them."""
        for field, spec in analysis.body.operations.body_params.items():
            if field in analysis.body_params or field in analysis.query_params:
                continue
            analysis.body_params[field] = spec.model_copy()
            analysis.validation_rules.setdefault(field, list(spec.rules))
        for params in (analysis.body_params, analysis.query_params):
            for spec in params.values():
                if spec.example is None:
                    spec.example = self.synthesizer.for_param(spec)

    def _body_responses(self, analysis: MethodAnalysis) -> list[ResponseSpec]:
        """Return sites seen by the walker, when no explicit JSON response was classified."""
        responses: list[ResponseSpec] = []
        seen: set[int | None] = set()
        for found in analysis.body.operations.responses:
            if found.type == "void" or found.status in seen:
                continue
            seen.add(found.status)
            # Walker content is source text, not data
            responses.append(ResponseSpec(status=found.status, type=found.type))
        if responses:
            return responses
        if analysis.operation_type is OperationType.DESTROY:
            return [ResponseSpec(status=204, type="success")]
        return [ResponseSpec(status=200, type="success")]

    def _api_resource(self, analysis: MethodAnalysis) -> ApiResourceTag | None:
        shapes = analysis.body.operations.api_resources
        if not shapes:
            return None
        shape = shapes[0]
        short = basename(shape.class_name)
        stem = re.sub(r"(Resource|Collection)$", "", short) or short
        model = self._resource_model(analysis, stem)
        return ApiResourceTag(name=shape.class_name, model=model, is_collection=shape.is_collection)

    def _resource_model(self, analysis: MethodAnalysis, stem: str) -> str | None:
        """The model a resource wraps: one the method touches or binds, else an indexed model class."""
        bound = [p.model_class for p in analysis.parameters if p.model_class]
        for fqcn in [*analysis.models, *bound]:
            if basename(fqcn) == stem:
                return fqcn
        model = self.ctx.model_class(stem)
        if model is not None and self.ctx.index.find(model) is not None:
            return model
        return None

    # ── Examples ──

    def models_for(self, analysis: MethodAnalysis) -> dict[str, ModelSchema]:
        """Detected models, else the model named after the controller."""
        if analysis.models:
            return analysis.models
        stem = re.sub(r"Controller$", "", self.ctx.controller.name)
        if not stem:
            return {}
        model = self.ctx.model_class(stem)
        return {model: self.ctx.schema(model)} if model is not None else {}

    def _collection_based(self, analysis: MethodAnalysis) -> bool:
        intents = {op.intent for op in analysis.model_operations}
        if OperationType.SHOW in intents:
            # `with()` ahead of a single-record fetch
            return False
        if OperationType.INDEX in intents:
            return True
        return bool(COLLECTION_NAME.search(analysis.name))

    def _shape(self, analysis: MethodAnalysis, response: ResponseSpec, resource: ResourceShape | None) -> ResponseShape:
        if response.effective_status != 200:
            return ResponseShape.SINGLE
        if analysis.pagination.has_pagination:
            return ResponseShape.PAGINATED
        if resource is not None:
            return ResponseShape.COLLECTION if resource.is_collection else ResponseShape.RESOURCE
        if self._collection_based(analysis):
            return ResponseShape.COLLECTION
        return ResponseShape.SINGLE

    def synthesize(self, analysis: MethodAnalysis) -> None:
        """Fill shapes, hints and examples on every response; dedupe by status and example."""
        models = self.models_for(analysis)
        ops = analysis.body.operations
        resource = ops.api_resources[0] if ops.api_resources else None

        unique: list[ResponseSpec] = []
        seen: set[str] = set()
        for response in analysis.responses:
            if response.type in GENERIC_RESPONSE_TYPES or response.operation_type is None:
                response.operation_type = self._shape(analysis, response, resource)
            response.eager_relations = list(ops.eager_relations)
            response.dynamic_fields = list(ops.dynamic_fields)
            try:
                response.example = self.synthesizer.for_response(
                    response,
                    models,
                    per_page=analysis.pagination.per_page,
                    resource=resource if response.content is None else None,
                )
            except Exception as e:
                logger.warning(f"Example synthesis failed for {analysis.name} ({response.status}): {e}")
                response.example = None
            key = f"{response.effective_status}:{response.example!r}:{response.message}"
            if key not in seen:
                seen.add(key)
                unique.append(response)
        analysis.responses = unique

        if analysis.operation_type is OperationType.DESTROY:
            analysis.default_example = None
        else:
            success = next((r for r in analysis.responses if is_success(r.effective_status)), None)
            analysis.default_example = success.example if success is not None else None

    # ── Pass 2 ──

    def propagate(self, analyses: dict[str, MethodAnalysis], callees: dict[str, MethodAnalysis] | None = None) -> None:
        """Copy dynamic fields from directly called sibling methods, one hop deep.

        callees may add analyses (or bare traces) of methods that are not
        documented themselves, such as private helpers.
        """
        callees = {**(callees or {}), **analyses}
        # Fields each method sets itself, before anything is copied
        own = {name: list(callee.body.operations.dynamic_fields) for name, callee in callees.items()}
        for name, analysis in analyses.items():
            fields = analysis.body.operations.dynamic_fields
            known = {f.field for f in fields}
            added = False
            for call in analysis.body.calls:
                if call.type != "instance" or call.receiver != "this" or call.method == name:
                    continue
                for dynamic in own.get(call.method, []):
                    if dynamic.field not in known:
                        known.add(dynamic.field)
                        fields.append(dynamic.model_copy())
                        added = True
            if added:
                logger.debug(f"Propagated dynamic fields into {name}: {sorted(known)}")
                self.synthesize(analysis)
