"""
Routing Classifier: the route that reaches the action and its URL parameters.

With a route table entry, URL parameters come from the URI placeholders.
Without one, route-model-bound parameters and scalar id-like parameters
stand in for them.
"""

from __future__ import annotations

from typing import Any

from routescribe.core.context import AnalysisContext
from routescribe.core.naming import snake, words
from routescribe.core.syntax import basename
from routescribe.core.unit import MethodDecl
from routescribe.models.analysis_models import ParamSpec, RouteInfo

CLASSIFIER_ID = "routing"

SCALAR_URL_TYPES = {"int": "integer", "integer": "integer", "string": "string"}


def classify(ctx: AnalysisContext, method: MethodDecl) -> dict[str, Any]:
    bound = {
        param.name: model
        for param in method.parameters
        if (model := ctx.model_class(param.type) if param.type and "|" not in param.type else None)
    }
    route = ctx.route(method.name)
    params: dict[str, ParamSpec] = {}

    if route is not None:
        for name, optional in route.placeholders():
            params[name] = url_param(name, bound.get(name), required=not optional)
        return {"route": RouteInfo(methods=list(route.methods), uri=route.uri), "url_params": params}

    for param in method.parameters:
        if param.name in bound:
            params[param.name] = url_param(param.name, bound[param.name], required=not param.is_optional)
        elif param.type in SCALAR_URL_TYPES and (param.name == "id" or param.name.endswith("_id")):
            params[param.name] = url_param(param.name, None, required=not param.is_optional)
    return {"url_params": params}


def url_param(name: str, model: str | None, required: bool = True) -> ParamSpec:
    if model is not None:
        description = f"The ID of the {words(snake(basename(model)))}."
        return ParamSpec(field=name, type="integer", required=required, description=description)
    if name == "id" or name.endswith("_id"):
        subject = words(name[:-3]) if name.endswith("_id") else "resource"
        return ParamSpec(field=name, type="integer", required=required, description=f"The ID of the {subject}.")
    return ParamSpec(field=name, type="string", required=required, description=f"The {words(name)}.")
