"""
Tests unitaires de la configuration du logging.
"""
import io
import json
import logging

import pytest

from mcp_http_adapter.core.logger_config import (
    JsonLogFormatter,
    configure_logging,
    parse_log_level,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def install_logging():
    """configure_logging, puis retrait du handler installé."""
    root = logging.getLogger()
    level = root.level
    installed = []

    def _install(*args, **kwargs):
        handler = configure_logging(*args, **kwargs)
        installed.append(handler)
        return handler

    yield _install
    for handler in installed:
        root.removeHandler(handler)
    root.setLevel(level)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
        ("bogus", logging.INFO),
    ],
)
def test_parse_log_level(raw, expected):
    assert parse_log_level(raw) == expected


def test_json_formatter_merges_extra_fields():
    record = logging.LogRecord("mcp", logging.INFO, __file__, 1, "Processus %s", ("démarré",), None)
    record.pid = 1234
    record.argv = ["--team-id", "T01"]

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "Processus démarré"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "mcp"
    assert payload["time"].endswith("Z")
    assert payload["pid"] == 1234
    assert payload["argv"] == ["--team-id", "T01"]
    assert "args" not in payload


def test_configure_logging_json(install_logging):
    stream = io.StringIO()
    install_logging("warn", "json", stream=stream)

    logger = logging.getLogger("mcp_http_adapter.test")
    logger.info("ignoré")
    logger.warning("Processus interrompu", extra={"reason": "timeout"})

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["msg"] == "Processus interrompu"
    assert payload["reason"] == "timeout"


def test_configure_logging_text(install_logging):
    stream = io.StringIO()
    install_logging("debug", "text", stream=stream)

    logging.getLogger("mcp_http_adapter.test").debug("bonjour")

    output = stream.getvalue()
    assert "DEBUG" in output
    assert "bonjour" in output


def test_uvicorn_loggers_propagate(install_logging):
    install_logging("info", "json", stream=io.StringIO())
    assert logging.getLogger("uvicorn.error").propagate is True
    assert logging.getLogger("uvicorn.error").handlers == []
