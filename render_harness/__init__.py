"""Deterministic off-device view rendering for snapshot tests.

Packages:
    runtime   - capability substitution, virtual clock, process state
    session   - render session manager and the backend contract
    view      - attaching content views (lifecycle, accessibility)
    capture   - frame capture, post-processing, record/verify handlers
    backends  - reference numpy + Pillow raster backend
    configs   - device profiles, harness config, environment discovery
"""

from render_harness.errors import (
    ConfigError,
    HarnessError,
    IntegrationMissing,
    IntegrationRequired,
    RenderError,
    SessionStateError,
)
from render_harness.harness import Harness

__version__ = "0.4.0"

__all__ = [
    "ConfigError",
    "Harness",
    "HarnessError",
    "IntegrationMissing",
    "IntegrationRequired",
    "RenderError",
    "SessionStateError",
]
