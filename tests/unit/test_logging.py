"""Tests for logging setup."""

from __future__ import annotations

import io
import json
import logging

from stageload._internal.logging import get_logger, setup_logging


def test_get_logger_is_namespaced():
    assert get_logger("engine.pool").name == "stageload.engine.pool"


def test_setup_logging_is_idempotent():
    logger = setup_logging(logging.INFO, stream=io.StringIO())
    setup_logging(logging.DEBUG)
    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.DEBUG
    assert logger.propagate is False


def test_plain_format():
    stream = io.StringIO()
    setup_logging(logging.INFO, stream=stream)
    get_logger("engine.controller").info("Run state: %s -> %s", "IDLE", "RAMPING")
    line = stream.getvalue()
    assert "stageload.engine.controller" in line
    assert "Run state: IDLE -> RAMPING" in line


def test_json_format_includes_context():
    stream = io.StringIO()
    setup_logging(logging.INFO, json_format=True, stream=stream)
    get_logger("engine.controller").info("state changed", extra={"run_state": "STEADY"})
    entry = json.loads(stream.getvalue().strip())
    assert entry["level"] == "INFO"
    assert entry["logger"] == "stageload.engine.controller"
    assert entry["message"] == "state changed"
    assert entry["run_state"] == "STEADY"
    assert "user_id" not in entry
