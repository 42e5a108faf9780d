"""
Health Check Route: GET /health
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from routescribe.api.dependencies import get_audit_logger, get_session
from routescribe.audit.logger import AuditLogger
from routescribe.core.engine import AnalysisSession

router = APIRouter()


@router.get("/health")
async def health(
    session: AnalysisSession = Depends(get_session),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "engine": "static",
        "merge_strategy": session.settings.merge_strategy,
        "project_root": session.settings.project_root,
        "classes_indexed": len(session.index),
        "requests": audit.totals(),
    }
