"""
HTTP status tables shared by the classifiers, the example synthesizer and
the renderer.
"""

from __future__ import annotations

from routescribe.core.syntax import basename

# Exception short name → status; first matching row wins
EXCEPTION_STATUS: list[tuple[tuple[str, ...], int]] = [
    (("AuthenticationException", "UnauthorizedException", "UnauthorizedHttpException"), 401),
    (("AuthorizationException", "AccessDeniedHttpException", "ForbiddenException"), 403),
    (("ModelNotFoundException", "NotFoundHttpException", "RecordsNotFoundException", "NotFoundException"), 404),
    (("MethodNotAllowedHttpException",), 405),
    (("ConflictHttpException",), 409),
    (("ValidationException",), 422),
    (("ThrottleRequestsException", "TooManyRequestsHttpException"), 429),
]

ERROR_MESSAGES: dict[int, str] = {
    400: "Bad request",
    401: "Unauthenticated",
    403: "Forbidden",
    404: "Resource not found",
    405: "Method not allowed",
    409: "Conflict",
    422: "Validation failed",
    429: "Too many requests",
    500: "Internal server error",
    503: "Service unavailable",
}

SUCCESS_MESSAGES: dict[int, str] = {
    200: "Request successful",
    201: "Resource created successfully",
    202: "Request accepted",
    204: "Resource deleted successfully",
}


def exception_status(exception: str) -> int:
    """Status for an exception class name; unmapped classes are 400."""
    short = basename(exception)
    for names, status in EXCEPTION_STATUS:
        if short in names:
            return status
    return 400


def error_message(status: int) -> str:
    return ERROR_MESSAGES.get(status, "An error occurred")


def success_message(status: int) -> str:
    return SUCCESS_MESSAGES.get(status, "Operation completed successfully")


def is_success(status: int) -> bool:
    return 200 <= status < 300
