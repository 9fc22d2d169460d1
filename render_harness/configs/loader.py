"""Device profile and harness config loading.

Usage::

    from render_harness.configs.loader import get_device, default_session_config
    device = get_device("PIXEL_5")
    config = default_session_config()                 # NEXUS_5, NORMAL
    config = load_session_config("harness.yaml")      # from harness.v1.yaml
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from render_harness.errors import ConfigError
from src.utils import validators
from src.utils.logging_config import setup_logging
from src.utils.validators import DeviceProfile, SessionConfig

logger = logging.getLogger(__name__)

DEFAULT_DEVICES_PATH = Path(__file__).with_name("devices.v1.yaml")
DEFAULT_DEVICE = "NEXUS_5"


@lru_cache(maxsize=8)
def load_devices(path: str | Path = DEFAULT_DEVICES_PATH) -> dict[str, DeviceProfile]:
    """Load device profiles keyed by name (cached per path)."""
    devices = validators.load_devices_file(path).by_name()
    logger.debug("Loaded %d device profiles from %s", len(devices), path)
    return devices


def get_device(name: str, path: str | Path = DEFAULT_DEVICES_PATH) -> DeviceProfile:
    """Return the device profile called ``name``.

    Raises
    ------
    ConfigError
        If no such profile exists.
    """
    devices = load_devices(path)
    try:
        return devices[name]
    except KeyError:
        raise ConfigError(
            f"Unknown device profile '{name}', known: {sorted(devices)}"
        ) from None


def default_session_config(**overrides) -> SessionConfig:
    """Session config with the default device and any field overrides."""
    overrides.setdefault("device", get_device(DEFAULT_DEVICE))
    return SessionConfig(**overrides)


def load_session_config(
    path: str | Path,
    devices_path: str | Path = DEFAULT_DEVICES_PATH,
) -> SessionConfig:
    """Load a harness.v1.yaml file into a :class:`SessionConfig`.

    Raises
    ------
    ConfigError
        If the file fails validation or names an unknown device.
    """
    try:
        harness_cfg = validators.load_harness_config(path)
        return harness_cfg.to_session_config(load_devices(devices_path))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def apply_logging_config(path: str | Path) -> dict:
    """Configure root logging from the ``logging`` section of a harness file."""
    log_cfg = validators.load_harness_config(path).logging
    return setup_logging(
        log_level=log_cfg.level,
        log_file=log_cfg.file,
        json=log_cfg.json_format,
        max_bytes=log_cfg.max_bytes,
        backup_count=log_cfg.backup_count,
        quiet_libs=["PIL"],
        context={"app": "render_harness"},
    )
