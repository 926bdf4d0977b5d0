"""Exception taxonomy for the ingestion pipeline.

Components raise a :class:`PipelineError` subclass and declare the
:class:`ErrorKind` at the raise site.  The resilience layer reads that
declaration to choose a recovery strategy; only :class:`GuardError`
subclasses ever reach the HTTP boundary.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from app.models.error_context import ErrorContext


class ErrorKind(str, Enum):
    CONNECTION_REFUSED = "ECONNREFUSED"
    RATE_LIMITED = "RATE_LIMIT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN = "UNKNOWN"


class PipelineError(Exception):
    """Base exception for all pipeline failures."""

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        kind: Optional[ErrorKind] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if kind is not None:
            self.kind = kind


class FetchError(PipelineError):
    """Network or upstream-HTTP failure while fetching a page."""

    kind = ErrorKind.UNKNOWN


class StorageError(PipelineError):
    """The document store could not be written."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class TemplateUnavailable(PipelineError):
    """No template file could be read."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class ExtractionFailed(PipelineError):
    """No extraction strategy produced usable body text."""

    kind = ErrorKind.SERVICE_UNAVAILABLE

    def __init__(self, strategies_attempted: int, details: Optional[dict] = None):
        super().__init__(
            f"Could not extract content with any of {strategies_attempted} strategies",
            details={"strategies_attempted": strategies_attempted, **(details or {})},
        )
        self.strategies_attempted = strategies_attempted


class DataValidationError(PipelineError):
    """Data does not match its declared shape.

    ``schema`` maps field name to ``{"type": ..., "required": bool}``; the
    resilience layer uses it to repair ``data``.
    """

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, data: Dict[str, Any], schema: Dict[str, Dict[str, Any]]):
        super().__init__(message, details={"fields": sorted(schema)})
        self.data = data
        self.schema = schema


class GuardError(PipelineError):
    """Enhanced error raised by the resilience layer once recovery is impossible."""

    recoverable = False

    def __init__(self, original: BaseException, context: ErrorContext, kind: ErrorKind):
        message = getattr(original, "message", None) or str(original) or type(original).__name__
        super().__init__(message, kind=kind)
        self.original = original
        self.context = context
        self.timestamp = datetime.now(timezone.utc).isoformat()
        if isinstance(original, PipelineError):
            self.details = dict(original.details)

    def to_response(self, include_original: bool = False) -> dict:
        body = {
            "error": self.message,
            "kind": self.kind.value,
            "context": self.context.serializable(),
            "details": self.details,
            "timestamp": self.timestamp,
        }
        if include_original:
            body["original"] = f"{type(self.original).__name__}: {self.original}"
        return body


class RecoveryExhausted(GuardError):
    """Every retry, backoff, or fallback for a failure was consumed."""


class Rejected(GuardError):
    """The failure kind has no recovery path."""
