"""Render backends implementing :class:`render_harness.session.backend.RenderBackend`."""

from render_harness.backends.raster import RasterBackend
from render_harness.backends.widgets import (
    MATCH_PARENT,
    WRAP_CONTENT,
    AnimatedBox,
    Button,
    ColorBox,
    ComposeHost,
    FrameLayout,
    ImageView,
    LinearLayout,
    TextView,
    View,
    ViewGroup,
)

__all__ = [
    "AnimatedBox",
    "Button",
    "ColorBox",
    "ComposeHost",
    "FrameLayout",
    "ImageView",
    "LinearLayout",
    "MATCH_PARENT",
    "RasterBackend",
    "TextView",
    "View",
    "ViewGroup",
    "WRAP_CONTENT",
]
