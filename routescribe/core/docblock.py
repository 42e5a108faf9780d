"""
Doc Block Parser: reads an existing doc comment into a metadata map.

Smart completion uses the map to decide which entries a method already
documents: its title and description, the @group, the @authenticated
flag, each @header / @bodyParam / @queryParam / @urlParam by name, each
@response by status, the @apiResource pair, and any other tag. Each entry
keeps its original lines, so re-emitting it reproduces the author's text
exactly.

Scribe attributes on the method (`#[BodyParam]`, `#[Response]`, `#[Group]`, ...)
document entries too. They are folded in as tags without lines: the entry
counts as documented and nothing is emitted for it.

A tag owns the lines that follow it up to the next tag or blank line.
Lines starting with a note marker belong to generated note sections and
are not part of the description.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from routescribe.core.syntax import basename
from routescribe.models.analysis_models import MethodAttribute

logger = logging.getLogger("routescribe.docblock")

# Lines the renderer generates from the analysis on every run
NOTE_MARKERS = ("⚠️", "🔄", "💾", "📄", "⏱️", "📧", "🔔", "📡")

PARAM_ATTRIBUTES = {"BodyParam": "body_params", "QueryParam": "query_params", "UrlParam": "url_params"}
RESPONSE_ATTRIBUTES = frozenset({"Response", "ResponseFromFile", "ResponseFromApiResource", "ResponseFromTransformer"})

_TAG = re.compile(r"^@(\w+)")
_LINE_PREFIX = re.compile(r"^\s*\*(?!/) ?")


@dataclass
class DocTag:
    """One tag and the lines it owns, prefix stripped."""

    name: str
    lines: list[str]

    @property
    def argument(self) -> str:
        """First word after the tag name."""
        parts = self.lines[0].split(None, 2)
        return parts[1] if len(parts) > 1 else ""


@dataclass
class DocMetadata:
    title: str | None = None
    description: list[str] = field(default_factory=list)
    group: DocTag | None = None
    authenticated: DocTag | None = None
    headers: dict[str, DocTag] = field(default_factory=dict)
    body_params: dict[str, DocTag] = field(default_factory=dict)
    query_params: dict[str, DocTag] = field(default_factory=dict)
    url_params: dict[str, DocTag] = field(default_factory=dict)
    responses: dict[int, list[DocTag]] = field(default_factory=dict)
    api_resource: DocTag | None = None
    api_resource_model: DocTag | None = None
    other: list[DocTag] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self == DocMetadata()


def content_lines(doc: str) -> list[str]:
    """Comment text with the /** */ delimiters and leading ' * ' removed; inner indentation kept."""
    lines: list[str] = []
    for raw in doc.strip().splitlines():
        line = raw.rstrip()
        stripped = line.strip()
        if stripped.startswith("/**"):
            line = stripped[3:]
            stripped = line.strip()
        if stripped.endswith("*/"):
            line = line.rstrip()[:-2].rstrip()
            stripped = line.strip()
        if not stripped and not line:
            lines.append("")
            continue
        lines.append(_LINE_PREFIX.sub("", line, count=1).rstrip())
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def parse_doc_block(doc: str | None) -> DocMetadata:
    """Metadata of an existing doc block; malformed input yields empty metadata."""
    if not doc or not doc.strip():
        return DocMetadata()
    try:
        return _parse(doc)
    except Exception as e:
        logger.warning(f"Ignoring unreadable doc block: {e}")
        return DocMetadata()


def _parse(doc: str) -> DocMetadata:
    text: list[str] = []
    tags: list[DocTag] = []
    current: DocTag | None = None

    for line in content_lines(doc):
        stripped = line.strip()
        match = _TAG.match(stripped)
        if match:
            current = DocTag(name=match.group(1), lines=[stripped])
            tags.append(current)
        elif not stripped:
            current = None
            if text and text[-1] != "":
                text.append("")
        elif current is not None:
            current.lines.append(line)
        elif not stripped.startswith(NOTE_MARKERS):
            text.append(stripped)

    meta = DocMetadata()
    while text and text[-1] == "":
        text.pop()
    if text:
        meta.title = text[0]
        meta.description = text[1:]
        while meta.description and meta.description[0] == "":
            meta.description.pop(0)

    for tag in tags:
        _classify(meta, tag)
    return meta


def _classify(meta: DocMetadata, tag: DocTag) -> None:
    name = tag.name
    if name == "group" and meta.group is None:
        meta.group = tag
    elif name == "authenticated" and meta.authenticated is None:
        meta.authenticated = tag
    elif name == "header" and tag.argument:
        meta.headers.setdefault(tag.argument, tag)
    elif name == "bodyParam" and tag.argument:
        meta.body_params.setdefault(tag.argument, tag)
    elif name == "queryParam" and tag.argument:
        meta.query_params.setdefault(tag.argument, tag)
    elif name == "urlParam" and tag.argument:
        meta.url_params.setdefault(tag.argument, tag)
    elif name == "response" and tag.argument.isdigit():
        meta.responses.setdefault(int(tag.argument), []).append(tag)
    elif name == "apiResource" and meta.api_resource is None:
        meta.api_resource = tag
    elif name == "apiResourceModel" and meta.api_resource_model is None:
        meta.api_resource_model = tag
    else:
        meta.other.append(tag)


def apply_attributes(meta: DocMetadata, attributes: Iterable[MethodAttribute]) -> DocMetadata:
    """Mark the entries a method's Scribe attributes document; written doc tags keep precedence."""
    for attribute in attributes:
        short = basename(attribute.name)
        if short == "Group":
            if meta.group is None:
                meta.group = DocTag(name="group", lines=[])
        elif short in ("Authenticated", "Unauthenticated"):
            if meta.authenticated is None:
                meta.authenticated = DocTag(name="authenticated", lines=[])
        elif short in PARAM_ATTRIBUTES:
            name = attribute.argument("name", 0)
            if isinstance(name, str) and name:
                getattr(meta, PARAM_ATTRIBUTES[short]).setdefault(name, DocTag(name=short, lines=[]))
        elif short == "Header":
            name = attribute.argument("name", 0)
            if isinstance(name, str) and name:
                meta.headers.setdefault(name, DocTag(name="header", lines=[]))
        elif short in RESPONSE_ATTRIBUTES:
            status = attribute.named_arguments.get("status")
            if status is None:
                status = next((a for a in attribute.arguments if isinstance(a, int) and not isinstance(a, bool)), 200)
            if isinstance(status, int) and status not in meta.responses:
                meta.responses[status] = [DocTag(name="response", lines=[])]
    return meta
