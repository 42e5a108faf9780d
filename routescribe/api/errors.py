"""
HTTP error mapping for analysis failures.

Parse failures are the client's source: 422. A unit without a documentable
class or a missing method: 404. Oversized input is refused before parsing: 400.
"""

from __future__ import annotations

from fastapi import HTTPException

from routescribe.core.errors import AnalysisError, GenerationError, SourceParseError, UnitResolutionError


def check_source_size(source: str, limit: int) -> None:
    if len(source.encode("utf-8")) > limit:
        raise HTTPException(
            status_code=400,
            detail=f"Source exceeds maximum size of {limit} bytes",
        )


def http_error(error: AnalysisError | GenerationError) -> HTTPException:
    if isinstance(error, SourceParseError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, (UnitResolutionError, GenerationError)):
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))
