"""Environment discovery for the render backend.

The target platform SDK level, the package under test and its resource
packages come from the build, exported as environment variables:

    RENDER_HARNESS_COMPILE_SDK        e.g. "34"
    RENDER_HARNESS_PACKAGE            e.g. "com.example.app"
    RENDER_HARNESS_RESOURCE_PACKAGES  comma separated
    RENDER_HARNESS_RESOURCES_DIR      directory with fonts/ and other resources
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_COMPILE_SDK = 34
DEFAULT_PACKAGE = "app.render.harness"


@dataclass(frozen=True)
class Environment:
    """Build-provided inputs consumed before the first session."""

    compile_sdk_version: int = DEFAULT_COMPILE_SDK
    package_name: str = DEFAULT_PACKAGE
    resource_package_names: tuple[str, ...] = field(default_factory=tuple)
    resources_dir: Path | None = None


def detect_environment(environ: Mapping[str, str] | None = None) -> Environment:
    """Build an :class:`Environment` from ``RENDER_HARNESS_*`` variables."""
    env = os.environ if environ is None else environ

    raw_sdk = env.get("RENDER_HARNESS_COMPILE_SDK", str(DEFAULT_COMPILE_SDK))
    try:
        sdk = int(raw_sdk)
    except ValueError as exc:
        raise ValueError(f"RENDER_HARNESS_COMPILE_SDK must be an integer, got {raw_sdk!r}") from exc

    package = env.get("RENDER_HARNESS_PACKAGE", DEFAULT_PACKAGE)
    resource_packages = tuple(
        p.strip()
        for p in env.get("RENDER_HARNESS_RESOURCE_PACKAGES", "").split(",")
        if p.strip()
    )
    resources_dir = env.get("RENDER_HARNESS_RESOURCES_DIR")

    environment = Environment(
        compile_sdk_version=sdk,
        package_name=package,
        resource_package_names=resource_packages or (package,),
        resources_dir=Path(resources_dir) if resources_dir else None,
    )
    logger.debug("Detected environment: %s", environment)
    return environment
