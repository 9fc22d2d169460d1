"""Process-wide runtime: capability substitution and the virtual clock."""

from render_harness.runtime.capabilities import (
    CapabilityRegistry,
    CapabilityRule,
    HostCapabilities,
)
from render_harness.runtime.clock import (
    TIME_OFFSET_NANOS,
    CallbackScheduler,
    VirtualClock,
    millis_to_nanos,
)
from render_harness.runtime.process import ProcessRuntime, get_runtime, reset_runtime

__all__ = [
    "CallbackScheduler",
    "CapabilityRegistry",
    "CapabilityRule",
    "HostCapabilities",
    "ProcessRuntime",
    "TIME_OFFSET_NANOS",
    "VirtualClock",
    "get_runtime",
    "millis_to_nanos",
    "reset_runtime",
]
