"""Process-scoped pipeline state.

Holds the few things that are shared by every session in a test worker:

    - the capability table and the registry that fills it (installed once)
    - the virtual clock
    - the slot for the single prepared session

Usage::

    runtime = get_runtime()
    runtime.bootstrap(RasterBackend)      # idempotent
    runtime.claim(session)                # SessionStateError if occupied

``reset_runtime()`` replaces the state wholesale and exists for tests.
"""

from __future__ import annotations

import logging
from typing import Any

from render_harness.errors import SessionStateError
from render_harness.runtime import capabilities as caps
from render_harness.runtime import substitutes
from render_harness.runtime.capabilities import CapabilityRegistry, HostCapabilities
from render_harness.runtime.clock import VirtualClock

logger = logging.getLogger(__name__)


def register_default_rules(registry: CapabilityRegistry, clock: VirtualClock) -> None:
    """Register the substitutes every off-device session needs."""
    registry.register(caps.TIME_SOURCE, clock.now, required=True)
    registry.register(caps.EDIT_MODE, substitutes.runtime_edit_mode, required=True)
    registry.register(caps.FRAME_TIME, clock.now)
    registry.register(caps.MATRIX_MULTIPLY_MM, substitutes.multiply_mm)
    registry.register(caps.MATRIX_MULTIPLY_MV, substitutes.multiply_mv)
    registry.register(caps.SERVICE_LOOKUP, substitutes.lookup_service)
    registry.register(caps.INPUT_METHOD_MANAGER, substitutes.input_method_manager)
    registry.register(caps.FONT_LOOKUP, substitutes.lookup_font)


class ProcessRuntime:
    """Capability table, registry, clock and the prepared-session slot."""

    def __init__(self) -> None:
        self.host = HostCapabilities()
        self.registry = CapabilityRegistry()
        self.clock = VirtualClock()
        self._active_session: Any = None

    @property
    def bootstrapped(self) -> bool:
        return self.registry.installed

    def bootstrap(self, backend_cls: Any) -> None:
        """Declare the backend's slots and install substitutes, once."""
        if self.registry.installed:
            return
        backend_cls.declare_capabilities(self.host)
        if not self.registry.rules:
            register_default_rules(self.registry, self.clock)
        self.registry.install_all(self.host)

    @property
    def active_session(self) -> Any:
        return self._active_session

    def claim(self, session: Any) -> None:
        if self._active_session is not None and self._active_session is not session:
            raise SessionStateError(
                "Another render session is already prepared in this process; "
                "dispose it before preparing a new one"
            )
        self._active_session = session

    def release(self, session: Any) -> None:
        if self._active_session is session:
            self._active_session = None


_runtime: ProcessRuntime | None = None


def get_runtime() -> ProcessRuntime:
    global _runtime
    if _runtime is None:
        _runtime = ProcessRuntime()
    return _runtime


def reset_runtime() -> ProcessRuntime:
    """Replace the process state. Test-only."""
    global _runtime
    _runtime = ProcessRuntime()
    return _runtime
