"""
Analyze Route: POST /analyze

Accepts one controller source and returns the analysis record of every
documentable method (or of the one requested method).
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
from routescribe.models.api_models import AnalyzeRequest, AnalyzeResponse, AuditEntry

logger = logging.getLogger("routescribe.api.analyze")

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: AnalyzeRequest,
    session: AnalysisSession = Depends(get_session),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Analyze a controller source unit."""
    check_source_size(request.source, session.settings.max_source_bytes)

    start = time.monotonic()
    try:
        analyses = session.analyze(request.source, request.method, request.path)
    except AnalysisError as e:
        logger.info(f"Analyze rejected: {e}")
        raise http_error(e) from e
    duration_ms = round((time.monotonic() - start) * 1000, 2)

    controller = next(iter(analyses.values())).controller_class if analyses else ""
    audit.log(
        AuditEntry(
            request_id=str(uuid.uuid4())[:8],
            endpoint="analyze",
            unit=request.path or controller or None,
            methods=list(analyses),
            duration_ms=duration_ms,
        )
    )
    return AnalyzeResponse(controller=controller, analyses=analyses, duration_ms=duration_ms)
