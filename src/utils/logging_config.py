"""Unified logging configuration for the render harness and its test runs.

Provides consistent logging across test workers, the harness facade and the
snapshot handlers:
    - Console handler plus an optional, size-rotated file handler
    - JSON lines for ingestion by CI log collectors
    - Contextual fields (test, device, theme)

Public API:
    setup_logging(log_level="INFO", context={"app": "render_harness"})
    push_context(device="NEXUS_5", theme="Theme.Material")
    pop_context(keys=["theme"])

Format examples:
    Human: 2026-10-19T13:45:12.345Z | INFO     | device=NEXUS_5 | Session prepared
    JSON: {"t":"2026-10-19T13:45:12.345+00:00","lvl":"INFO","device":"NEXUS_5","msg":"..."}

Context uses contextvars so parallel test workers don't leak fields.
Idempotent: repeated setup_logging() calls don't duplicate handlers.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


_context_var = contextvars.ContextVar('logging_context', default={})

_configured = False

_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Formatter that appends the push_context() fields to every record.

    ``fmt_mode`` is "human" (optionally colored on a TTY) or "json".
    Timestamps are always UTC.
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        context = _context_var.get()
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.fmt_mode == "json":
            return self._format_json(record, ts, context)
        return self._format_human(record, ts, context)

    def _format_json(self, record: logging.LogRecord, ts: datetime, context: dict) -> str:
        entry = {
            't': ts.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'pid': os.getpid(),
            'msg': record.getMessage(),
            **context,
        }
        if record.exc_info:
            entry['exc'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)

    def _format_human(self, record: logging.LogRecord, ts: datetime, context: dict) -> str:
        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{_COLORS.get(record.levelname, '')}{level}{_RESET}"

        parts = [ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', level]
        if context:
            parts.append(' '.join(f"{k}={v}" for k, v in context.items()))
        parts.append(record.getMessage())

        line = ' | '.join(parts)
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    max_bytes: Optional[int] = None,
    backup_count: int = 3,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Configure root logger (idempotent).

    Parameters
    ----------
    log_level : str
        Logging level: "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
    log_file : str, optional
        Log file path; None for no file logging
    json : bool
        Use JSON lines for the file handler, default False
    color : bool
        Use ANSI colors in console output, default True
    to_stderr : bool
        Log to stderr (console), default True
    max_bytes : int, optional
        Rotate the log file once it reaches this size; None never rotates
    backup_count : int
        Rotated files to keep, default 3
    capture_warnings : bool
        Capture Python warnings to logging, default True
    quiet_libs : list[str], optional
        Library names to set to WARNING level (e.g., ["PIL"])
    context : dict, optional
        Initial contextual fields (e.g., {"app": "render_harness"})

    Returns
    -------
    dict
        Configuration info: {"handlers": [...]}

    Raises
    ------
    ValueError
        If ``max_bytes`` or ``backup_count`` is not positive.

    Examples
    --------
    >>> setup_logging(log_level="DEBUG", log_file="build/logs/snapshots.log",
    ...               max_bytes=10_000_000, context={"app": "render_harness"})
    """
    global _configured

    root = logging.getLogger()
    if _configured:
        root.handlers.clear()
    root.setLevel(getattr(logging, log_level.upper()))

    handlers = []
    if to_stderr:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ContextFormatter("human", color))
        handlers.append(console_handler)
    if log_file:
        handlers.append(_create_file_handler(log_file, json, max_bytes, backup_count))
    for handler in handlers:
        root.addHandler(handler)

    if context:
        push_context(**context)
    for lib in quiet_libs or []:
        logging.getLogger(lib).setLevel(logging.WARNING)
    if capture_warnings:
        logging.captureWarnings(True)
        logging.getLogger('py.warnings').setLevel(logging.WARNING)

    _configured = True
    return {'handlers': handlers}


def _create_file_handler(
    log_file: str,
    json_format: bool,
    max_bytes: Optional[int],
    backup_count: int
) -> logging.Handler:
    """Create a file handler, size-rotated when ``max_bytes`` is set."""
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    if max_bytes is None:
        handler = logging.FileHandler(log_file)
    else:
        if max_bytes <= 0 or backup_count <= 0:
            raise ValueError(
                f"Log rotation needs positive max_bytes and backup_count, "
                f"got {max_bytes} and {backup_count}"
            )
        handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count
        )

    handler.setFormatter(ContextFormatter("json" if json_format else "human", use_color=False))
    return handler


def push_context(**kwargs) -> None:
    """Add contextual fields to all subsequent log records.

    Examples
    --------
    >>> push_context(test="ButtonTest.pressed")
    >>> logger.info("Captured")  # → "... | test=ButtonTest.pressed | Captured"
    """
    _context_var.set({**_context_var.get(), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove the given contextual fields, or all of them when ``keys`` is None."""
    if keys is None:
        _context_var.set({})
        return
    current = dict(_context_var.get())
    for key in keys:
        current.pop(key, None)
    _context_var.set(current)


def get_context() -> Dict[str, Any]:
    """Return a copy of the active contextual fields."""
    return dict(_context_var.get())
