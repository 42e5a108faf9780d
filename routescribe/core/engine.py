"""
Analysis Session: the long-lived entry point of the engine.

A session owns the collaborators that outlive a single unit: the class
index, the schema provider, the route table, and the two insert-once memo
tables (model schemas, resource shapes). Each call to analyze() parses one
source unit, walks every method body, classifies and enriches the
documentable ones, then propagates dynamic fields from helper calls.

Only unit-level failures escape analyze(): a unit without a documentable
class, a requested method that does not exist, and a source that does not
parse. analyze_batch() contains those per unit.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from routescribe.cache.class_cache import ClassCache
from routescribe.cache.unit_cache import UnitCache
from routescribe.config import Settings, settings as default_settings
from routescribe.core.body_walker import BodyWalker
from routescribe.core.class_index import ClassIndex
from routescribe.core.classifier_engine import ClassifierEngine
from routescribe.core.context import AnalysisContext
from routescribe.core.errors import AnalysisError, GenerationError, UnitResolutionError
from routescribe.core.examples import ExampleSynthesizer
from routescribe.core.merger import AnalysisMerger
from routescribe.core.renderer import CommentRenderer
from routescribe.core.resources import ResourceShapeResolver
from routescribe.core.routes import NullRouteTable, RouteTable, StaticRouteTable
from routescribe.core.schema import (
    CachedSchemaResolver,
    ConventionSchemaProvider,
    SchemaProvider,
    SourceSchemaProvider,
)
from routescribe.core.unit import BUILTIN_TYPES, ClassDecl, MethodDecl, SourceUnit
from routescribe.models.analysis_models import (
    BodyTrace,
    Complexity,
    MethodAnalysis,
    ResourceShape,
    ReturnTypeInfo,
)
from routescribe.models.schema_models import ModelSchema

logger = logging.getLogger("routescribe.engine")


@dataclass
class BatchResult:
    """Outcome of a batch run: analyses per unit path, and the units that failed."""

    analyses: dict[str, dict[str, MethodAnalysis]] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def documented(self) -> int:
        return sum(len(methods) for methods in self.analyses.values())

    @property
    def ok(self) -> bool:
        return not self.failures


class AnalysisSession:
    """
    Analyzes controller sources and renders their doc blocks.

    Collaborators default to an empty class index, no routes and the
    naming-convention schema provider, which is enough to document a
    single controller pasted in isolation.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        schema_provider: SchemaProvider | None = None,
        class_index: ClassIndex | None = None,
        route_table: RouteTable | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.index = class_index if class_index is not None else ClassIndex.empty()
        self.routes = route_table if route_table is not None else NullRouteTable()
        self.provider = schema_provider or ConventionSchemaProvider(self.settings.model_namespaces)

        self.schema_cache: ClassCache[ModelSchema] = ClassCache("model_schemas")
        self.resource_cache: ClassCache[ResourceShape] = ClassCache("resource_shapes")
        self.schemas = CachedSchemaResolver(self.provider, self.schema_cache)
        self.units = UnitCache()
        self.classifiers = ClassifierEngine()
        self.renderer = CommentRenderer(self.settings)

    @classmethod
    def for_project(cls, root: str | Path, settings: Settings | None = None) -> AnalysisSession:
        """Session backed by a Laravel checkout: indexed classes, model sources and route files."""
        start = time.monotonic()
        index = ClassIndex.from_directory(root)
        session = cls(
            settings=settings,
            schema_provider=SourceSchemaProvider.for_project(root, index),
            class_index=index,
            route_table=StaticRouteTable.from_directory(root),
        )
        elapsed = (time.monotonic() - start) * 1000
        logger.info(f"Project session ready for {root} in {elapsed:.0f}ms")
        return session

    # ── Eligibility ──

    def is_eligible(self, method: MethodDecl, complexity: Complexity) -> bool:
        """Public, not magic, not excluded, and a resource action or complex enough."""
        if not method.is_public or method.is_magic or method.is_abstract:
            return False
        if method.name in self.settings.exclude_methods:
            return False
        if method.name in self.settings.always_include_methods or self.settings.include_simple_methods:
            return True
        return complexity.cyclomatic >= self.settings.complexity_threshold

    # ── Analysis ──

    def analyze(
        self,
        source: str,
        method_name: str | None = None,
        path: str | None = None,
    ) -> dict[str, MethodAnalysis]:
        """
        Analyze one source unit.

        Args:
            source: PHP source of the unit
            method_name: Only analyze this method, eligible or not
            path: Unit path, used for caching and error messages

        Returns:
            Analyses keyed by method name, in declaration order

        Raises:
            SourceParseError: the source has syntax errors
            UnitResolutionError: no documentable class, or method_name not found
        """
        start = time.monotonic()
        unit_path = path or "<memory>"
        unit = self.units.parse(source, unit_path)
        controller = self._controller(unit, unit_path)

        if method_name is not None and controller.method(method_name) is None:
            raise UnitResolutionError.method_not_found(controller.name, method_name, unit_path)

        ctx = self._context(unit, controller)
        synthesizer = ExampleSynthesizer(
            schema_for=ctx.schema,
            seed=self.settings.example_seed,
            base_url=self.settings.example_base_url,
            max_relation_depth=self.settings.max_relation_depth,
        )
        merger = AnalysisMerger(ctx, synthesizer)

        documented: dict[str, MethodAnalysis] = {}
        helpers: dict[str, MethodAnalysis] = {}
        for decl in controller.methods.values():
            if decl.is_abstract or decl.body is None:
                continue
            analysis = self._record(ctx, decl)
            if method_name is not None:
                selected = decl.name.lower() == method_name.lower()
            else:
                selected = self.is_eligible(decl, analysis.complexity)
            if not selected:
                helpers[decl.name] = analysis
                continue
            self.classifiers.run(ctx, decl, analysis)
            merger.enrich(analysis)
            documented[decl.name] = analysis

        merger.propagate(documented, helpers)

        elapsed = (time.monotonic() - start) * 1000
        logger.info(f"Analyzed {controller.name}: {len(documented)} documented, {len(helpers)} skipped ({elapsed:.1f}ms)")
        return documented

    def _controller(self, unit: SourceUnit, unit_path: str) -> ClassDecl:
        controller = unit.primary_class()
        if controller is None:
            raise UnitResolutionError.no_class(unit_path)
        if controller.is_abstract:
            raise UnitResolutionError.not_documentable(controller.name, unit_path)
        return controller

    def _context(self, unit: SourceUnit, controller: ClassDecl) -> AnalysisContext:
        # Same-file form requests and resources resolve without touching the session index
        index = self.index.overlay(unit)
        return AnalysisContext(
            unit=unit,
            controller=controller,
            settings=self.settings,
            index=index,
            schemas=self.schemas,
            resources=ResourceShapeResolver(index, self.resource_cache, self.settings.max_resource_depth),
            routes=self.routes,
        )

    def _record(self, ctx: AnalysisContext, decl: MethodDecl) -> MethodAnalysis:
        try:
            trace, complexity = BodyWalker(ctx).walk(decl)
        except Exception as e:
            logger.warning(f"Body walk failed for {ctx.controller.name}::{decl.name}: {e}")
            trace, complexity = BodyTrace(), Complexity()

        return MethodAnalysis(
            name=decl.name,
            controller_class=ctx.controller.fqcn,
            visibility=decl.visibility,
            is_static=decl.is_static,
            parameters=[p.model_copy() for p in decl.parameters],
            attributes=[a.model_copy(deep=True) for a in decl.attributes],
            return_type=_return_type(decl.return_type, trace),
            body=trace,
            complexity=complexity,
            existing_doc=decl.doc_comment,
        )

    # ── Rendering ──

    def render(
        self,
        analysis: MethodAnalysis,
        existing_doc: str | None = None,
        merge_strategy: str | None = None,
    ) -> str:
        return self.renderer.render(analysis, existing_doc, merge_strategy)

    def render_method(
        self,
        analyses: Mapping[str, MethodAnalysis],
        method_name: str,
        existing_doc: str | None = None,
        merge_strategy: str | None = None,
    ) -> str:
        analysis = analyses.get(method_name)
        if analysis is None:
            raise GenerationError.method_not_analyzed(method_name)
        return self.render(analysis, existing_doc, merge_strategy)

    def document(
        self,
        source: str,
        method_name: str | None = None,
        path: str | None = None,
        merge_strategy: str | None = None,
    ) -> dict[str, str]:
        """Analyze and render, completing each method's own doc comment."""
        analyses = self.analyze(source, method_name, path)
        return {
            name: self.render(analysis, analysis.existing_doc, merge_strategy)
            for name, analysis in analyses.items()
        }

    # ── Batch ──

    def analyze_batch(self, units: Mapping[str, str] | Iterable[tuple[str, str]]) -> BatchResult:
        """Analyze many units; a failing unit is recorded and the run continues."""
        items = units.items() if isinstance(units, Mapping) else units
        result = BatchResult()
        for unit_path, source in items:
            try:
                result.analyses[unit_path] = self.analyze(source, path=unit_path)
            except AnalysisError as e:
                logger.warning(f"Skipping {unit_path}: {e}")
                result.failures[unit_path] = str(e)
            except Exception as e:
                logger.error(f"Unexpected failure analyzing {unit_path}: {type(e).__name__}: {e}")
                result.failures[unit_path] = f"{type(e).__name__}: {e}"
        logger.info(
            f"Batch complete: {len(result.analyses)} units, {result.documented} methods, "
            f"{len(result.failures)} failures"
        )
        return result

    def stats(self) -> dict[str, Any]:
        return {
            "classes": len(self.index),
            "units": self.units.stats(),
            "model_schemas": self.schema_cache.stats(),
            "resource_shapes": self.resource_cache.stats(),
        }


def _return_type(declared: str | None, trace: BodyTrace) -> ReturnTypeInfo:
    return_count = len(trace.operations.responses)
    if not declared:
        return ReturnTypeInfo(return_count=return_count)
    parts = [p.strip() for p in declared.lstrip("?").split("|") if p.strip()]
    return ReturnTypeInfo(
        type=declared,
        nullable=declared.startswith("?") or any(p.lower() == "null" for p in parts),
        is_builtin=bool(parts) and all(p.lower() in BUILTIN_TYPES for p in parts),
        return_count=return_count,
    )
