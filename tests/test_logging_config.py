"""Test unified logging configuration.

Tests for src.utils.logging_config:
    - setup_logging() is idempotent (no duplicated handlers)
    - Context fields appear in human and JSON output
    - pop_context() removes selected keys or clears all
    - File handler writes JSON lines and rotates by size

Run:
    pytest tests/test_logging_config.py -v
"""

import json
import logging
import logging.handlers

import pytest

from src.utils import logging_config


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Keep root handlers/level and context untouched across tests."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    logging_config.pop_context()
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging_config.pop_context()


def _record(msg="hello", level=logging.INFO):
    return logging.LogRecord("render_harness.test", level, __file__, 1, msg, None, None)


# ============================================================================
# CONTEXT
# ============================================================================

def test_push_and_pop_context():
    logging_config.push_context(device="PIXEL_5", theme="Theme.Material")
    assert logging_config.get_context() == {"device": "PIXEL_5", "theme": "Theme.Material"}

    logging_config.pop_context(keys=["theme", "missing"])
    assert logging_config.get_context() == {"device": "PIXEL_5"}

    logging_config.pop_context()
    assert logging_config.get_context() == {}


# ============================================================================
# FORMATTERS
# ============================================================================

def test_human_format_includes_context():
    logging_config.push_context(device="NEXUS_5")
    formatter = logging_config.ContextFormatter("human", use_color=False)
    line = formatter.format(_record("Session prepared"))

    assert "| INFO     |" in line
    assert "device=NEXUS_5" in line
    assert line.endswith("Session prepared")


def test_json_format_includes_context():
    logging_config.push_context(theme="Theme.Material.Light")
    formatter = logging_config.ContextFormatter("json", use_color=False)
    data = json.loads(formatter.format(_record("captured", logging.WARNING)))

    assert data["lvl"] == "WARNING"
    assert data["msg"] == "captured"
    assert data["theme"] == "Theme.Material.Light"
    assert data["name"] == "render_harness.test"


# ============================================================================
# SETUP
# ============================================================================

def test_setup_logging_idempotent():
    logging_config.setup_logging(log_level="DEBUG", capture_warnings=False)
    logging_config.setup_logging(log_level="WARNING", capture_warnings=False)

    root = logging.getLogger()
    stream_handlers = [
        h for h in root.handlers
        if isinstance(h, logging.StreamHandler) and isinstance(h.formatter, logging_config.ContextFormatter)
    ]
    assert len(stream_handlers) == 1
    assert root.level == logging.WARNING


def test_setup_logging_json_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    info = logging_config.setup_logging(
        log_level="INFO",
        log_file=str(log_file),
        json=True,
        to_stderr=False,
        capture_warnings=False,
        context={"app": "snapshots"},
    )
    logging.getLogger("render_harness.test").info("Session disposed")
    for handler in info["handlers"]:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").strip().splitlines()
    data = json.loads(lines[-1])
    assert data["msg"] == "Session disposed"
    assert data["app"] == "snapshots"


def test_setup_logging_size_rotation(tmp_path):
    info = logging_config.setup_logging(
        log_file=str(tmp_path / "run.log"),
        max_bytes=2048,
        backup_count=2,
        to_stderr=False,
        capture_warnings=False,
    )
    (handler,) = info["handlers"]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == 2048
    assert handler.backupCount == 2


def test_setup_logging_without_rotation(tmp_path):
    info = logging_config.setup_logging(
        log_file=str(tmp_path / "run.log"), to_stderr=False, capture_warnings=False
    )
    (handler,) = info["handlers"]
    assert type(handler) is logging.FileHandler


def test_setup_logging_bad_rotation(tmp_path):
    with pytest.raises(ValueError, match="positive max_bytes"):
        logging_config.setup_logging(
            log_file=str(tmp_path / "x.log"),
            max_bytes=0,
            to_stderr=False,
            capture_warnings=False,
        )
