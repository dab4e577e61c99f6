"""
Error taxonomy shared by the services and the HTTP boundary.

Each error carries the HTTP status and the short `kind` recorded on failed jobs.
"""

from typing import Optional


class ExtractionServiceError(Exception):
    """Base exception for all extraction service errors"""

    status_code = 500
    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ExtractionServiceError):
    """Bad or missing input"""

    status_code = 400
    kind = "validation"


class BackendError(ExtractionServiceError):
    """The extraction backend failed to process the document"""

    status_code = 500
    kind = "backend"


class ExtractionTimeout(ExtractionServiceError, TimeoutError):
    """The backend did not answer within the allotted time"""

    status_code = 504
    kind = "timeout"


class InternalError(ExtractionServiceError):
    """Unexpected failure inside the service"""


class InvalidJobTransition(InternalError):
    pass


class JobNotFound(ExtractionServiceError):
    status_code = 404
    kind = "not_found"


_ERRORS_BY_KIND = {
    cls.kind: cls for cls in (ValidationError, BackendError, ExtractionTimeout, InternalError, JobNotFound)
}


def error_for_kind(kind: Optional[str], message: str) -> ExtractionServiceError:
    """Rebuild the exception recorded on a failed job; unknown kinds map to InternalError."""
    return _ERRORS_BY_KIND.get(kind or "", InternalError)(message)
