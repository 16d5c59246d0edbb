"""Tests for error mapping and the logging reporter."""

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorSource,
    LoggingErrorReporter,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitError,
    ValidationError,
    to_report,
)


@pytest.mark.parametrize("exc,category,key,retryable", [
    (NetworkError("t", kind="timeout"), ErrorCategory.NETWORK, "errors.network.timeout", True),
    (NetworkError("o", kind="offline"), ErrorCategory.NETWORK, "errors.network.offline", True),
    (NetworkError("s", status_code=502), ErrorCategory.API, "errors.api.genericError", True),
    (RateLimitError("r"), ErrorCategory.RATE_LIMIT, "errors.api.genericError", True),
    (ParseError("p"), ErrorCategory.PARSE, "errors.api.genericError", False),
    (NotFoundError("n"), ErrorCategory.NOT_FOUND, "errors.location.notFound", False),
    (ValidationError("v"), ErrorCategory.VALIDATION, "errors.validation.coordinates", False),
])
def test_to_report_mapping(exc, category, key, retryable):
    report = to_report(exc, ErrorSource.GEO_SEARCH)
    assert report.category == category
    assert report.message_key == key
    assert report.retryable is retryable
    assert report.severity == ErrorSeverity.WARNING


def test_to_report_uses_api_message_key():
    report = to_report(NetworkError("s", status_code=500), ErrorSource.ATTRACTIONS,
                       api_message_key="errors.api.attractionsUnavailable")
    assert report.message_key == "errors.api.attractionsUnavailable"


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_duplicate_reports_are_suppressed(caplog):
    clock = Clock()
    reporter = LoggingErrorReporter(dedup_window_s=5.0, clock=clock)
    report = to_report(NetworkError("t", kind="timeout"), ErrorSource.GEO_SEARCH)

    with caplog.at_level(logging.INFO, logger="errors"):
        reporter.report(report)
        clock.now = 4.0
        reporter.report(report)
        clock.now = 10.0
        reporter.report(report)

    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 2


def test_different_sources_are_not_deduplicated(caplog):
    reporter = LoggingErrorReporter(clock=Clock())
    with caplog.at_level(logging.INFO, logger="errors"):
        reporter.report(to_report(NetworkError("t", kind="timeout"), ErrorSource.GEO_SEARCH))
        reporter.report(to_report(NetworkError("t", kind="timeout"), ErrorSource.ATTRACTIONS))
    assert len(caplog.records) == 2


def test_severity_sets_log_level(caplog):
    reporter = LoggingErrorReporter(clock=Clock())
    with caplog.at_level(logging.INFO, logger="errors"):
        reporter.report(to_report(NetworkError("o", kind="offline"), ErrorSource.SCORING,
                                  severity=ErrorSeverity.INFO))
    assert caplog.records[0].levelno == logging.INFO
    assert "scoringService" in caplog.records[0].getMessage()


def test_clear_forgets_seen_signatures(caplog):
    reporter = LoggingErrorReporter(clock=Clock())
    report = to_report(ParseError("p"), ErrorSource.ATTRACTIONS)
    with caplog.at_level(logging.INFO, logger="errors"):
        reporter.report(report)
        reporter.clear()
        reporter.report(report)
    assert len(caplog.records) == 2
