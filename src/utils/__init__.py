"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Atomic I/O and image files (fs)
    - Image comparison metrics (metrics)
    - Hashing for reproducibility checks (hashing)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (render_harness).

Convenience imports:
    from src.utils import fs, validators, metrics
    from src.utils.logging_config import setup_logging, push_context
"""

from . import fs
from . import hashing
from . import logging_config
from . import metrics
from . import validators

from .logging_config import pop_context, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'hashing',
    'logging_config',
    'metrics',
    'validators',
    # Direct exports
    'setup_logging',
    'pop_context',
    'push_context',
]
