"""
Analysis Context: everything a walker or classifier may consult about the
controller under analysis, without reaching for globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from routescribe.config import Settings
from routescribe.core.class_index import ClassIndex
from routescribe.core.resources import ResourceShapeResolver
from routescribe.core.routes import NullRouteTable, RouteEntry, RouteTable
from routescribe.core.schema import CachedSchemaResolver
from routescribe.core.syntax import basename
from routescribe.core.unit import ClassDecl, MethodDecl, SourceUnit
from routescribe.models.schema_models import ModelSchema

logger = logging.getLogger("routescribe.context")


@dataclass
class AnalysisContext:
    unit: SourceUnit
    controller: ClassDecl
    settings: Settings
    index: ClassIndex
    schemas: CachedSchemaResolver
    resources: ResourceShapeResolver
    routes: RouteTable = field(default_factory=NullRouteTable)

    def resolve(self, name: str) -> str:
        return self.unit.resolve_name(name, self.controller)

    def method(self, name: str) -> MethodDecl | None:
        found = self.controller.method(name)
        if found is not None:
            return found
        inherited = self.index.find_method(self.controller.fqcn, name)
        return inherited[1] if inherited is not None else None

    def model_class(self, name: str | None) -> str | None:
        """FQCN of the model a class reference names, trying the configured model namespaces."""
        if not name:
            return None
        resolved = self.resolve(name)
        if self.schemas.is_model(resolved):
            return resolved
        if name.startswith("\\"):
            return None
        short = basename(name)
        for namespace in self.settings.model_namespaces:
            candidate = namespace.rstrip("\\") + "\\" + short
            if self.schemas.is_model(candidate):
                return candidate
        return None

    def schema(self, fqcn: str) -> ModelSchema:
        return self.schemas.resolve(fqcn)

    def route(self, method_name: str) -> RouteEntry | None:
        try:
            return self.routes.lookup(self.controller.fqcn, method_name)
        except Exception as e:
            logger.warning(f"Route lookup failed for {self.controller.fqcn}::{method_name}: {e}")
            return None
