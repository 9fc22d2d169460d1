"""Render session lifecycle: params, backend contract, diagnostics, manager."""

from render_harness.session.backend import (
    RenderBackend,
    RenderExtension,
    RenderResult,
    RenderStatus,
)
from render_harness.session.diagnostics import Diagnostic, DiagnosticLevel, SessionLog
from render_harness.session.manager import RenderSessionManager, SessionState
from render_harness.session.params import (
    SessionParams,
    SessionParamsBuilder,
    build_root_document,
)

__all__ = [
    "Diagnostic",
    "DiagnosticLevel",
    "RenderBackend",
    "RenderExtension",
    "RenderResult",
    "RenderSessionManager",
    "RenderStatus",
    "SessionLog",
    "SessionParams",
    "SessionParamsBuilder",
    "SessionState",
    "build_root_document",
]
