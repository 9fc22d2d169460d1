"""Harness-side implementations installed in place of host behaviours.

Each function here replaces a behaviour a live device would supply:
    - edit mode: views must behave as at runtime, not as in a layout editor
    - matrix maths: 4x4 column-major products without native code
    - service lookup / input methods: stubs instead of missing system services
    - font lookup: fonts come from the session's resources, never the host
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

import numpy as np
from PIL import ImageFont

logger = logging.getLogger(__name__)


def runtime_edit_mode(view: Any = None) -> bool:
    """Views always render as they would on a device."""
    return False


def _as_matrix(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float32)
    if arr.size != 16:
        raise ValueError(f"Expected 16 matrix values, got {arr.size}")
    # column-major storage
    return arr.reshape(4, 4).T


def multiply_mm(lhs: Sequence[float], rhs: Sequence[float]) -> np.ndarray:
    """Return ``lhs x rhs`` for column-major 4x4 matrices, column-major flat."""
    return (_as_matrix(lhs) @ _as_matrix(rhs)).T.reshape(16)


def multiply_mv(lhs: Sequence[float], vec: Sequence[float]) -> np.ndarray:
    """Return ``lhs x vec`` for a column-major 4x4 matrix and a 4-vector."""
    v = np.asarray(vec, dtype=np.float32)
    if v.size != 4:
        raise ValueError(f"Expected a 4-vector, got {v.size} values")
    return _as_matrix(lhs) @ v


class StubService:
    """Placeholder returned for any system service lookup."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"StubService({self.name!r})"


def lookup_service(name: str) -> StubService:
    return StubService(name)


class NoOpInputMethodManager:
    """Input method manager that never shows a soft keyboard."""

    def show_soft_input(self, view: Any) -> bool:
        return False

    def hide_soft_input(self, view: Any) -> bool:
        return False

    def is_active(self, view: Any = None) -> bool:
        return False


def input_method_manager() -> NoOpInputMethodManager:
    return NoOpInputMethodManager()


def lookup_font(context: Any, name: str | None, size_px: int) -> ImageFont.ImageFont:
    """Resolve a font through the session resources.

    Looks for ``<resources_dir>/fonts/<name>.ttf``; anything else falls back
    to Pillow's bundled default font so output never depends on host fonts.
    """
    resources_dir = getattr(context, "resources_dir", None)
    if name and resources_dir is not None:
        font_path = Path(resources_dir) / "fonts" / f"{name}.ttf"
        if font_path.exists():
            return ImageFont.truetype(str(font_path), size_px)
        logger.debug("Font %s not found in %s, using default", name, font_path.parent)
    return ImageFont.load_default(size=size_px)
