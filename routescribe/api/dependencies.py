"""
FastAPI Dependencies: shared singletons injected via Depends().
"""

from __future__ import annotations

import logging
from functools import lru_cache

from routescribe.audit.logger import AuditLogger
from routescribe.config import settings
from routescribe.core.engine import AnalysisSession

logger = logging.getLogger("routescribe.api")


@lru_cache
def get_session() -> AnalysisSession:
    """Shared analysis session; project-backed when a project root is configured."""
    if settings.project_root:
        logger.info(f"Indexing project at {settings.project_root}")
        return AnalysisSession.for_project(settings.project_root, settings)
    return AnalysisSession(settings)


@lru_cache
def get_audit_logger() -> AuditLogger:
    """Shared audit logger singleton."""
    return AuditLogger()
