"""
Error taxonomy for the job search engine.

Every failure that can reach a client carries a machine-readable ErrorCode,
a human-readable message and an HTTP status. Scraper errors normally stay
inside a ScraperResult and only surface when every source failed.

Hierarchy:
    JobSearchError
    ├── ValidationError        (400)
    ├── ScraperError           (contained per source)
    ├── AllSourcesFailedError  (503)
    └── SearchTimeoutError     (504)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    # Scraper errors
    SCRAPER_FAILED = "SCRAPER_FAILED"
    SCRAPER_TIMEOUT = "SCRAPER_TIMEOUT"
    SCRAPER_RATE_LIMITED = "SCRAPER_RATE_LIMITED"
    SCRAPER_INVALID_CONFIG = "SCRAPER_INVALID_CONFIG"
    SCRAPER_NETWORK_ERROR = "SCRAPER_NETWORK_ERROR"
    SCRAPER_PARSE_ERROR = "SCRAPER_PARSE_ERROR"

    # Validation errors
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Request outcome errors
    ALL_SOURCES_FAILED = "ALL_SOURCES_FAILED"
    SEARCH_TIMEOUT = "SEARCH_TIMEOUT"

    SCORING_FAILED = "SCORING_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class JobSearchError(Exception):
    """Base error with code, message and structured context."""

    status_code: int = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.context:
            error["details"] = self.context
        return {
            "success": False,
            "error": error,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationError(JobSearchError):
    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = dict(context or {})
        if field:
            context.setdefault("field", field)
        super().__init__(code, message, context)
        self.field = field


class ScraperError(JobSearchError):
    """Failure inside one source. `retryable` marks transient causes."""

    def __init__(
        self,
        source: str,
        message: str,
        code: ErrorCode = ErrorCode.SCRAPER_FAILED,
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, {"source": source, **(context or {})})
        self.source = source
        self.retryable = retryable


class AllSourcesFailedError(JobSearchError):
    status_code = 503


class SearchTimeoutError(JobSearchError):
    status_code = 504

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.SEARCH_TIMEOUT, message, context)
