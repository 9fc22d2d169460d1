"""Device profiles, harness config loading and environment discovery."""

from render_harness.configs.environment import Environment, detect_environment
from render_harness.configs.loader import (
    apply_logging_config,
    default_session_config,
    get_device,
    load_devices,
    load_session_config,
)

__all__ = [
    "Environment",
    "apply_logging_config",
    "default_session_config",
    "detect_environment",
    "get_device",
    "load_devices",
    "load_session_config",
]
