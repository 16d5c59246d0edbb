"""Error taxonomy and the error-reporting collaborator.

Components raise the exceptions below internally and catch them at their own
boundary, where they are turned into a safe default plus an ErrorReport.
"""

import logging
import time
from enum import Enum
from typing import Callable, Protocol

from pydantic import BaseModel

import config

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Base class for every failure raised inside the discovery core."""


class ValidationError(DiscoveryError):
    """Malformed coordinates or query."""


class NetworkError(DiscoveryError):
    """Timeout, connectivity loss, or a failing provider."""

    def __init__(self, message: str, kind: str = "server", status_code: int | None = None):
        super().__init__(message)
        self.kind = kind  # "timeout" | "offline" | "server"
        self.status_code = status_code


class RateLimitError(NetworkError):
    """Provider answered HTTP 429."""

    def __init__(self, message: str, status_code: int = 429):
        super().__init__(message, kind="server", status_code=status_code)


class ParseError(DiscoveryError):
    """Malformed provider or scoring payload."""


class NotFoundError(DiscoveryError):
    """No matching results."""


# ---------- Reports ----------

class ErrorCategory(str, Enum):
    NETWORK = "network"
    API = "api"
    RATE_LIMIT = "rate_limit"
    PARSE = "parse"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    STORAGE = "storage"
    UNKNOWN = "unknown"


class ErrorSource(str, Enum):
    GEO_SEARCH = "geoSearch"
    REVERSE_GEOCODER = "reverseGeocoder"
    ATTRACTIONS = "attractionsService"
    SCORING = "scoringService"
    STORAGE = "storageService"
    WIKI = "wikiService"
    PIPELINE = "discoveryPipeline"


class ErrorSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ErrorReport(BaseModel):
    category: ErrorCategory
    source: ErrorSource
    severity: ErrorSeverity
    message_key: str
    retryable: bool = False
    detail: str | None = None


class ErrorReporter(Protocol):
    def report(self, report: ErrorReport) -> None:
        ...


def to_report(
    exc: DiscoveryError,
    source: ErrorSource,
    severity: ErrorSeverity = ErrorSeverity.WARNING,
    api_message_key: str = "errors.api.genericError",
) -> ErrorReport:
    """Map an exception from the taxonomy onto a report for the sink."""
    if isinstance(exc, RateLimitError):
        category, key, retryable = ErrorCategory.RATE_LIMIT, api_message_key, True
    elif isinstance(exc, NetworkError) and exc.kind == "timeout":
        category, key, retryable = ErrorCategory.NETWORK, "errors.network.timeout", True
    elif isinstance(exc, NetworkError) and exc.kind == "offline":
        category, key, retryable = ErrorCategory.NETWORK, "errors.network.offline", True
    elif isinstance(exc, NetworkError):
        category, key, retryable = ErrorCategory.API, api_message_key, True
    elif isinstance(exc, ParseError):
        category, key, retryable = ErrorCategory.PARSE, api_message_key, False
    elif isinstance(exc, NotFoundError):
        category, key, retryable = ErrorCategory.NOT_FOUND, "errors.location.notFound", False
    elif isinstance(exc, ValidationError):
        category, key, retryable = ErrorCategory.VALIDATION, "errors.validation.coordinates", False
    else:
        category, key, retryable = ErrorCategory.UNKNOWN, api_message_key, False
    return ErrorReport(
        category=category,
        source=source,
        severity=severity,
        message_key=key,
        retryable=retryable,
        detail=str(exc) or None,
    )


_LEVELS = {
    ErrorSeverity.CRITICAL: logging.ERROR,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.INFO: logging.INFO,
}


class LoggingErrorReporter:
    """Logs reports, dropping repeats of the same signature inside a window."""

    def __init__(
        self,
        dedup_window_s: float = config.ERROR_DEDUP_WINDOW_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dedup_window_s = dedup_window_s
        self._clock = clock
        self._last_seen: dict[tuple[str, str, str], float] = {}

    def report(self, report: ErrorReport) -> None:
        signature = (report.category.value, report.source.value, report.severity.value)
        now = self._clock()
        last = self._last_seen.get(signature)
        if last is not None and now - last <= self.dedup_window_s:
            logger.debug("Duplicate error suppressed: %s", signature)
            return
        self._last_seen[signature] = now
        logger.log(
            _LEVELS[report.severity],
            "[%s] %s %s (retryable=%s): %s",
            report.source.value,
            report.category.value,
            report.message_key,
            report.retryable,
            report.detail or "",
        )

    def clear(self) -> None:
        self._last_seen.clear()
