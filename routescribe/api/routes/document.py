"""
Document Routes: POST /document and POST /render

/document analyzes a controller source and returns a doc block per method,
completing each method's own doc comment in smart mode. /render turns one
previously returned analysis record into a doc block.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, Depends

from routescribe.api.dependencies import get_audit_logger, get_session
from routescribe.api.errors import check_source_size, http_error
from routescribe.audit.logger import AuditLogger
from routescribe.core.engine import AnalysisSession
from routescribe.core.errors import AnalysisError
from routescribe.models.api_models import (
    AuditEntry,
    DocumentRequest,
    DocumentResponse,
    RenderRequest,
    RenderResponse,
)

logger = logging.getLogger("routescribe.api.document")

router = APIRouter()


@router.post("/document", response_model=DocumentResponse)
async def document(
    request: DocumentRequest,
    session: AnalysisSession = Depends(get_session),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Analyze a controller and render the doc block of each documented method."""
    check_source_size(request.source, session.settings.max_source_bytes)

    start = time.monotonic()
    try:
        docs = session.document(request.source, request.method, request.path, request.merge_strategy)
    except AnalysisError as e:
        logger.info(f"Document rejected: {e}")
        raise http_error(e) from e
    duration_ms = round((time.monotonic() - start) * 1000, 2)

    audit.log(
        AuditEntry(
            request_id=str(uuid.uuid4())[:8],
            endpoint="document",
            unit=request.path,
            methods=list(docs),
            duration_ms=duration_ms,
        )
    )
    return DocumentResponse(docs=docs, duration_ms=duration_ms)


@router.post("/render", response_model=RenderResponse)
async def render(
    request: RenderRequest,
    session: AnalysisSession = Depends(get_session),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Render one analysis record, optionally completing an existing doc block."""
    start = time.monotonic()
    doc = session.render(request.analysis, request.existing_doc, request.merge_strategy)

    audit.log(
        AuditEntry(
            request_id=str(uuid.uuid4())[:8],
            endpoint="render",
            unit=request.analysis.controller_class or None,
            methods=[request.analysis.name],
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
    )
    return RenderResponse(method=request.analysis.name, doc=doc)
