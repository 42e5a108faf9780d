"""
API Request/Response Models: public contract of the HTTP surface.

Analyses travel as full MethodAnalysis records, so a client can edit one
and post it back to /render.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from routescribe.models.analysis_models import MethodAnalysis


class AnalyzeRequest(BaseModel):
    """Request body for /analyze."""

    source: str = Field(..., min_length=1, description="PHP source of one controller file")
    method: str | None = Field(default=None, description="Only analyze this method")
    path: str | None = Field(default=None, description="File path, used in errors and caching")


class AnalyzeResponse(BaseModel):
    controller: str = ""
    analyses: dict[str, MethodAnalysis] = Field(default_factory=dict)
    duration_ms: float = 0.0


class DocumentRequest(BaseModel):
    """Request body for /document."""

    source: str = Field(..., min_length=1, description="PHP source of one controller file")
    method: str | None = None
    path: str | None = None
    merge_strategy: Literal["smart", "overwrite"] | None = Field(
        default=None, description="Overrides the configured merge strategy"
    )


class DocumentResponse(BaseModel):
    docs: dict[str, str] = Field(default_factory=dict, description="Doc block per method name")
    duration_ms: float = 0.0


class RenderRequest(BaseModel):
    """Request body for /render."""

    analysis: MethodAnalysis
    existing_doc: str | None = None
    merge_strategy: Literal["smart", "overwrite"] | None = None


class RenderResponse(BaseModel):
    method: str
    doc: str


class AuditEntry(BaseModel):
    """Audit metadata for one API call."""

    request_id: str
    endpoint: str
    unit: str | None = None
    methods: list[str] = Field(default_factory=list)
    duration_ms: float = 0.0
