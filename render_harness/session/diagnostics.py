"""Diagnostics accumulated over a render session's lifetime.

Backends report problems here instead of raising, so a render call can
succeed while the session still records that something went wrong. On
disposal the session manager calls :meth:`SessionLog.assert_no_errors`,
which turns any recorded error into a :class:`RenderError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from render_harness.errors import RenderError


class DiagnosticLevel(Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    level: DiagnosticLevel
    tag: str
    message: str
    exception: BaseException | None = None


class SessionLog:
    """Backend-facing logger that remembers warnings and errors."""

    def __init__(self, name: str = "render_harness.session") -> None:
        self._logger = logging.getLogger(name)
        self._diagnostics: list[Diagnostic] = []

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self._diagnostics if d.level == DiagnosticLevel.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._diagnostics if d.level == DiagnosticLevel.WARNING]

    def verbose(self, msg: str, *args: object) -> None:
        self._logger.debug(msg, *args)

    def warning(self, msg: str, *args: object, tag: str = "warning") -> None:
        message = msg % args if args else msg
        self._diagnostics.append(Diagnostic(DiagnosticLevel.WARNING, tag, message))
        self._logger.warning(message)

    def error(
        self,
        tag: str,
        msg: str,
        *args: object,
        exception: BaseException | None = None,
    ) -> None:
        message = msg % args if args else msg
        self._diagnostics.append(
            Diagnostic(DiagnosticLevel.ERROR, tag, message, exception)
        )
        self._logger.error("[%s] %s", tag, message, exc_info=exception)

    def flush_errors(self) -> list[Diagnostic]:
        """Forget recorded errors (warnings are kept); return what was dropped."""
        dropped = self.errors
        self._diagnostics = [
            d for d in self._diagnostics if d.level != DiagnosticLevel.ERROR
        ]
        return dropped

    def dump(self) -> None:
        if self._diagnostics:
            self._logger.info(
                "Session diagnostics: %d warning(s), %d error(s)",
                len(self.warnings),
                len(self.errors),
            )

    def assert_no_errors(self) -> None:
        """Raise :class:`RenderError` if any error was recorded."""
        errors = self.errors
        if not errors:
            return
        first = errors[0]
        summary = "; ".join(f"[{d.tag}] {d.message}" for d in errors)
        raise RenderError(
            f"Render session logged {len(errors)} error(s): {summary}",
            cause=first.exception,
        )
