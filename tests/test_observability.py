"""Tests for logging configuration and correlation propagation."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from corehub.correlation import generate_correlation_id, header_lookup, set_correlation_id
from corehub.observability import CorrelationIdFilter, JsonLogFormatter, configure_logging


@pytest.fixture
def corehub_logger():
    logger = logging.getLogger("corehub")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_json_logging_includes_correlation_id(corehub_logger: logging.Logger) -> None:
    stream = io.StringIO()
    configure_logging("DEBUG", json_format=True, stream=stream)
    set_correlation_id("corr-log")

    logging.getLogger("corehub.publish").info("Message %s published", "msg-1")

    entry = json.loads(stream.getvalue().splitlines()[-1])
    assert entry["message"] == "Message msg-1 published"
    assert entry["logger"] == "corehub.publish"
    assert entry["level"] == "INFO"
    assert entry["correlation_id"] == "corr-log"


def test_text_logging_uses_placeholder_without_correlation(
    corehub_logger: logging.Logger,
) -> None:
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)

    logging.getLogger("corehub.dispatch").warning("no subscribers")

    line = stream.getvalue().strip()
    assert "[corehub.dispatch] [-] no subscribers" in line
    assert "WARNING" in line


def test_configure_logging_replaces_its_handler(corehub_logger: logging.Logger) -> None:
    configure_logging()
    configure_logging(json_format=True)
    own = [h for h in corehub_logger.handlers if getattr(h, "_corehub_handler", False)]
    assert len(own) == 1
    assert isinstance(own[0].formatter, JsonLogFormatter)


def test_json_formatter_renders_exceptions() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord(
            "corehub.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )
    CorrelationIdFilter().filter(record)

    entry = json.loads(JsonLogFormatter().format(record))

    assert entry["correlation_id"] == "-"
    assert "RuntimeError: boom" in entry["exc_info"]


def test_header_lookup_is_case_insensitive() -> None:
    headers = {"x-correlation-id": b"abc", "Other": "  "}
    assert header_lookup(headers, "X-Correlation-Id") == "abc"
    assert header_lookup(headers, "other") is None
    assert header_lookup(None, "X-Correlation-Id") is None


def test_generated_correlation_ids_are_unique() -> None:
    assert generate_correlation_id() != generate_correlation_id()
