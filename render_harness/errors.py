"""Error taxonomy for the render-session pipeline.

Every failure the pipeline surfaces derives from :class:`HarnessError`, so a
test runner can tell harness faults apart from assertion failures in the
test body.
"""

from __future__ import annotations

from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class HarnessError(Exception):
    """Base exception for all render-harness errors."""

    pass


class RenderError(HarnessError):
    """A render pass failed or the session logged error diagnostics.

    ``cause`` holds the backend's diagnostic exception when one exists.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigError(HarnessError, ValueError):
    """Invalid configuration request; raised before any state is mutated."""

    pass


class SessionStateError(HarnessError, RuntimeError):
    """A session transition is not allowed from the current state."""

    pass


class IntegrationRequired(HarnessError):
    """A mandatory capability is absent from the runtime."""

    def __init__(self, capability: str) -> None:
        super().__init__(
            f"Required capability '{capability}' is not provided by the runtime"
        )
        self.capability = capability


# ---------------------------------------------------------------------------
# Non-fatal records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IntegrationMissing:
    """An optional capability substitution that was skipped."""

    capability: str
    reason: str = "not provided by the runtime"
