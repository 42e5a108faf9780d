"""
Comment Renderer: turns a merged MethodAnalysis into a Scribe doc block.

Sections, in order:
    title and description, implementation notes, body / query / URL
    params, success responses, error responses, validation error (422),
    authorization error (403), @authenticated and @header, @group,
    @apiResource tags, rate limit (429 and note), side-effect notes,
    other tags carried over from the existing block.

In smart mode every entry the existing block already documents (same
param name, same status, same flag) is re-emitted with its original
lines in place of the generated one; documented entries nothing claims
are kept at the end of their section. Rendering a block produced by the
renderer therefore reproduces it byte for byte. Overwrite mode ignores
the existing block. Scribe attributes on the method count as documented
in both modes, so nothing they declare is generated twice.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from routescribe.config import Settings
from routescribe.core.docblock import DocMetadata, DocTag, apply_attributes, parse_doc_block
from routescribe.core.http_status import error_message
from routescribe.core.naming import title as title_case
from routescribe.core.rules import validation_message
from routescribe.core.syntax import basename
from routescribe.models.analysis_models import MethodAnalysis, OperationType, ParamSpec, ResponseSpec

logger = logging.getLogger("routescribe.renderer")

CRUD_TITLES = {
    "index": "List all resources",
    "show": "Display the specified resource",
    "store": "Store a newly created resource in storage",
    "update": "Update the specified resource in storage",
    "destroy": "Remove the specified resource from storage",
    "create": "Show the form for creating a new resource",
    "edit": "Show the form for editing the specified resource",
}

# Method-name keyword fallbacks; first matching row wins
KEYWORD_TITLES: list[tuple[tuple[str, ...], str]] = [
    (("index", "list", "all"), "List resources"),
    (("show", "find", "get"), "Get resource details"),
    (("store", "create", "save"), "Create new resource"),
    (("update", "edit", "modify"), "Update resource"),
    (("destroy", "delete", "remove"), "Delete resource"),
]

OPERATION_DESCRIPTIONS = {
    OperationType.INDEX: "Retrieves a paginated list of resources with optional filtering and sorting.",
    OperationType.SHOW: "Retrieves detailed information about a specific resource.",
    OperationType.STORE: "Creates a new resource with validated data.",
    OperationType.UPDATE: "Updates an existing resource with validated data.",
    OperationType.DESTROY: "Permanently removes the specified resource.",
}

DESTROY_WORDS = ("destroy", "delete", "remove")
UNAUTHORIZED_MESSAGE = "This action is unauthorized."
VALIDATION_MESSAGE = "The given data was invalid."


def to_json(value: Any) -> list[str]:
    return json.dumps(value, indent=4, ensure_ascii=False).splitlines()


def example_text(value: Any) -> str | None:
    """Inline form of a param example."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).replace("\r", "").replace("\n", ", ")


class CommentRenderer:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def render(
        self,
        analysis: MethodAnalysis,
        existing_doc: str | None = None,
        merge_strategy: str | None = None,
    ) -> str:
        strategy = merge_strategy or self.settings.merge_strategy
        meta = parse_doc_block(existing_doc) if strategy == "smart" else DocMetadata()
        if existing_doc and strategy == "smart" and meta.is_empty:
            logger.debug(f"Existing doc of {analysis.name} carried nothing to keep")
        apply_attributes(meta, analysis.attributes)
        return _Block(analysis, meta, self.settings).build()


class _Block:
    """One rendering: tracks which documented entries have been re-emitted."""

    def __init__(self, analysis: MethodAnalysis, meta: DocMetadata, settings: Settings) -> None:
        self.analysis = analysis
        self.meta = meta
        self.settings = settings
        self.emitted: set[int] = set()

    def build(self) -> str:
        sections: list[list[str]] = [self._title_and_description()]
        if self.settings.feature_implementation_notes:
            sections.append(self._implementation_notes())
        sections.append(self._params("bodyParam", self.analysis.body_params, self.meta.body_params))
        sections.append(self._params("queryParam", self.analysis.query_params, self.meta.query_params))
        sections.append(self._params("urlParam", self.analysis.url_params, self.meta.url_params))
        sections.append(self._success_responses())

        errors = self._error_responses()
        sections.append(errors)
        if self.settings.feature_validation_errors:
            sections.append(self._validation_error())
        if self.settings.feature_authorization_errors:
            sections.append(self._authorization_error())
        sections.append(self._authentication())
        sections.append(self._group())
        sections.append(self._api_resource())
        if self.settings.feature_rate_limit_info:
            sections.extend(self._rate_limit())
        if self.settings.feature_side_effect_notes:
            sections.append(self._side_effect_notes())
        sections.append([line for tag in self.meta.other for line in tag.lines])

        # Documented error statuses nothing above claimed
        for status in sorted(self.meta.responses):
            if status >= 400 and status not in self.emitted:
                errors.extend(self._documented(status))

        return self._assemble(sections)

    @staticmethod
    def _assemble(sections: list[list[str]]) -> str:
        body: list[str] = []
        for section in sections:
            if not section:
                continue
            if body and body[-1] != "":
                body.append("")
            body.extend(section)

        lines = ["/**"]
        previous_blank = False
        for line in body:
            blank = line == ""
            if blank and previous_blank:
                continue
            lines.append(" *" if blank else f" * {line}")
            previous_blank = blank
        while len(lines) > 1 and lines[-1] == " *":
            lines.pop()
        lines.append(" */")
        return "\n".join(lines)

    # ── Title and notes ──

    def _title_and_description(self) -> list[str]:
        lines = [self.meta.title or self._title()]
        description = self.meta.description if self.meta.title else []
        if not description:
            generated = self._description()
            description = [generated] if generated else []
        if description:
            lines.append("")
            lines.extend(description)
        return lines

    def _title(self) -> str:
        name = self.analysis.name
        if name in CRUD_TITLES:
            return CRUD_TITLES[name]
        lowered = name.lower()
        for keywords, text in KEYWORD_TITLES:
            if any(word in lowered for word in keywords):
                return text
        return "Process request"

    def _description(self) -> str:
        parts: list[str] = []
        if self.analysis.operation_type in OPERATION_DESCRIPTIONS:
            parts.append(OPERATION_DESCRIPTIONS[self.analysis.operation_type])
        names = [basename(fqcn) for fqcn in self.analysis.models]
        if names:
            parts.append(f"Works with {', '.join(names)} models.")
        return " ".join(parts)

    def _implementation_notes(self) -> list[str]:
        analysis = self.analysis
        ops = analysis.body.operations
        notes: list[str] = []
        if ops.transaction or "database_transaction" in analysis.database_operations:
            notes.append("⚠️ This operation is executed within a database transaction with automatic rollback on failure.")
        jobs = list(dict.fromkeys(ops.jobs + analysis.job_operations))
        if jobs:
            count = len(jobs)
            notes.append(f"🔄 {count} asynchronous background {'job is' if count == 1 else 'jobs are'} dispatched.")
        cache = list(dict.fromkeys(ops.cache + analysis.cache_operations))
        if cache:
            notes.append(f"💾 Cache operations: {', '.join(cache)}.")
        if analysis.pagination.has_pagination:
            method = analysis.pagination.method or "paginate"
            per_page = analysis.pagination.per_page or 15
            notes.append(f"📄 Results are paginated using {method} (per page: {per_page}).")
        return notes

    # ── Params ──

    def _params(self, tag: str, params: dict[str, ParamSpec], documented: dict[str, DocTag]) -> list[str]:
        lines: list[str] = []
        used: set[str] = set()
        for field, param in params.items():
            if field in documented:
                lines.extend(documented[field].lines)
                used.add(field)
            else:
                lines.append(self._param_line(tag, field, param))
        for field, doc_tag in documented.items():
            if field not in used:
                lines.extend(doc_tag.lines)
        return lines

    @staticmethod
    def _param_line(tag: str, field: str, param: ParamSpec) -> str:
        example = param.example
        if example is None and tag == "urlParam":
            example = 1 if param.type == "integer" else field
        required = "required" if param.required else "optional"
        description = param.description or title_case(field)
        line = f"@{tag} {field} {param.type} {required} {description}"
        text = example_text(example)
        return f"{line} Example: {text}" if text is not None else line

    # ── Responses ──

    def _documented(self, status: int) -> list[str]:
        """Lines of the documented response(s) for a status; marks it emitted."""
        self.emitted.add(status)
        block: list[str] = []
        for tag in self.meta.responses.get(status, []):
            block.extend(tag.lines)
            if len(tag.lines) > 1:
                block.append("")
        return block

    def _response_block(self, status: int, body: Any) -> list[str]:
        self.emitted.add(status)
        if body is None:
            return [f"@response {status}"]
        return [f"@response {status}", *to_json(body), ""]

    def _inline(self, status: int, message: str) -> list[str]:
        self.emitted.add(status)
        return [f"@response {status} {json.dumps({'message': message}, ensure_ascii=False)}"]

    def _success_responses(self) -> list[str]:
        lines: list[str] = []
        for response in self.analysis.responses:
            status = response.effective_status
            if status >= 400 or status in self.emitted:
                continue
            if status in self.meta.responses:
                lines.extend(self._documented(status))
            elif status == 204:
                lines.extend(self._response_block(204, None))
            else:
                lines.extend(self._response_block(status, self._success_body(response)))

        if not any(status < 400 for status in self.emitted):
            lines.extend(self._default_success())

        for status in sorted(self.meta.responses):
            if status < 400 and status not in self.emitted:
                lines.extend(self._documented(status))
        return lines

    def _success_body(self, response: ResponseSpec) -> Any:
        example = response.example
        if example is None or example == {} or example == []:
            example = self.analysis.default_example
        return example if example not in ({}, []) else None

    def _default_success(self) -> list[str]:
        """Fallback when no 2xx response was found: bare 204 for deletions, else the default example."""
        name = self.analysis.name.lower()
        if self.analysis.operation_type is OperationType.DESTROY or any(w in name for w in DESTROY_WORDS):
            if 204 in self.meta.responses:
                return self._documented(204)
            return self._response_block(204, None)
        if 200 in self.meta.responses:
            return self._documented(200)
        if self.analysis.default_example is not None:
            return self._response_block(200, self.analysis.default_example)
        return []

    def _error_responses(self) -> list[str]:
        lines: list[str] = []
        for response in self.analysis.responses:
            status = response.effective_status
            if status < 400 or status in self.emitted:
                continue
            if status in self.meta.responses:
                lines.extend(self._documented(status))
            elif isinstance(response.content, (dict, list)) and response.content and response.example is not None:
                lines.extend(self._response_block(status, response.example))
            else:
                lines.extend(self._inline(status, response.message or error_message(status)))

        for exception in self.analysis.exceptions:
            status = exception.status
            if status < 400 or status in self.emitted:
                continue
            if status in self.meta.responses:
                lines.extend(self._documented(status))
            else:
                lines.extend(self._inline(status, exception.message or error_message(status)))
        return lines

    def _validation_error(self) -> list[str]:
        if 422 in self.emitted:
            return []
        if 422 in self.meta.responses:
            return self._documented(422)
        errors: dict[str, list[str]] = {}
        for field, rules in list(self.analysis.validation_rules.items())[:3]:
            message = validation_message(field, rules)
            if message is not None:
                errors[field] = [message]
        if not errors:
            return []
        return self._response_block(422, {"message": VALIDATION_MESSAGE, "errors": errors})

    def _authorization_error(self) -> list[str]:
        if not self.analysis.authorization.required or 403 in self.emitted:
            return []
        if 403 in self.meta.responses:
            return self._documented(403)
        return self._inline(403, UNAUTHORIZED_MESSAGE)

    def _rate_limit(self) -> list[list[str]]:
        limit = self.analysis.rate_limiting
        if not limit.enabled:
            return []
        if 429 in self.emitted:
            response: list[str] = []
        elif 429 in self.meta.responses:
            response = self._documented(429)
        else:
            response = self._inline(429, error_message(429))
        attempts = limit.max_attempts if limit.max_attempts is not None else "unknown"
        decay = limit.decay_minutes if limit.decay_minutes is not None else "unknown"
        return [response, [f"⏱️ Rate limited to {attempts} requests per {decay} minutes."]]

    # ── Tags ──

    def _requires_auth(self) -> bool:
        analysis = self.analysis
        return (
            analysis.middleware.requires_auth
            or analysis.authorization.required
            or bool(analysis.body.operations.auth)
        )

    def _authentication(self) -> list[str]:
        lines: list[str] = []
        # An attribute-only flag (#[Authenticated] / #[Unauthenticated]) settles authentication
        settled = self.meta.authenticated is not None and not self.meta.authenticated.lines
        requires_auth = self._requires_auth() and not settled
        if self.meta.authenticated is not None:
            lines.extend(self.meta.authenticated.lines)
        elif requires_auth:
            lines.append("@authenticated")
        for doc_tag in self.meta.headers.values():
            lines.extend(doc_tag.lines)
        if requires_auth and "Authorization" not in self.meta.headers:
            guard = self.analysis.middleware.auth_guard
            header = "@header Authorization Bearer {token}"
            lines.append(f"{header} (Guard: {guard})" if guard else header)
        return lines

    def _group(self) -> list[str]:
        if self.meta.group is not None:
            return list(self.meta.group.lines)
        return [f"@group {self._group_name()}"]

    def _group_name(self) -> str:
        controller = self.analysis.controller_class
        if self.settings.group_strategy == "namespace":
            parts = controller.split("\\")
            return parts[-2] if len(parts) > 1 else self.settings.default_group
        return basename(controller).replace("Controller", "") or self.settings.default_group

    def _api_resource(self) -> list[str]:
        tag = self.analysis.api_resource
        lines: list[str] = []
        if self.meta.api_resource is not None:
            lines.extend(self.meta.api_resource.lines)
        elif tag is not None:
            lines.append(f"@apiResource {tag.name}")
        if self.meta.api_resource_model is not None:
            lines.extend(self.meta.api_resource_model.lines)
        elif tag is not None and tag.model:
            lines.append(f"@apiResourceModel {tag.model}")
        return lines

    def _side_effect_notes(self) -> list[str]:
        ops = self.analysis.body.operations
        notes: list[str] = []
        if ops.mail:
            notes.append("📧 Email notifications are sent.")
        if ops.notifications:
            notes.append("🔔 Push notifications are sent.")
        if ops.events:
            notes.append("📡 System events are fired.")
        if ops.broadcasts:
            notes.append("📡 Real-time broadcasts are sent.")
        return notes
