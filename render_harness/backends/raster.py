"""Reference render backend: numpy + Pillow raster of the widget tree.

Implements the :class:`RenderBackend` contract end to end so the pipeline
can run without a device runtime:

    init      -> theme, scheduler, context and inflater
    inflate   -> parse the root document into the root container
    render    -> measure per rendering mode, paint theme background,
                 widgets and (optionally) system-UI chrome into RGBA

Every host behaviour the widgets consult (time, edit mode, fonts, services)
is resolved by name through the capability table, never called directly.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional
from xml.etree import ElementTree

import numpy as np
from PIL import Image, ImageFont, features

from render_harness.backends.themes import resolve_theme
from render_harness.backends.widgets import (
    MATCH_PARENT,
    WRAP_CONTENT,
    AnimationHandler,
    Canvas,
    FrameLayout,
    LayoutInflater,
    RenderContext,
    app_compat_view_factory,
)
from render_harness.errors import ConfigError
from render_harness.runtime import capabilities as caps
from render_harness.runtime.clock import CallbackScheduler
from render_harness.session.backend import RenderBackend, RenderResult, RenderStatus
from render_harness.session.params import ANDROID_NS, COMPOSITION_ROOT_TAG, PLAIN_ROOT_TAG
from src.utils.validators import SizeAction

logger = logging.getLogger(__name__)

_SIZE_VALUES = {"match_parent": MATCH_PARENT, "fill_parent": MATCH_PARENT, "wrap_content": WRAP_CONTENT}


# ---------------------------------------------------------------------------
# Live (host) behaviours, replaced by substitutes at bootstrap
# ---------------------------------------------------------------------------


def _host_edit_mode(view: Any = None) -> bool:
    return True


def _native_only(name: str) -> Callable[..., Any]:
    def unavailable(*args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError(f"{name} requires the native graphics library")
    return unavailable


def _host_service(name: str) -> Any:
    raise LookupError(f"System service '{name}' is not available off-device")


def _host_input_method_manager() -> Any:
    raise LookupError("Input method service is not available off-device")


def _host_font(context: Any, name: Optional[str], size_px: int) -> Any:
    return ImageFont.truetype(f"{name or 'DejaVuSans'}.ttf", size_px)


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class RasterBackend(RenderBackend):
    """Widget-tree rasteriser honouring the backend contract."""

    supports_lifecycle_owner = True
    has_composition_runtime = True

    @classmethod
    def declare_capabilities(cls, host: caps.HostCapabilities) -> None:
        host.declare(caps.TIME_SOURCE, time.monotonic_ns)
        host.declare(caps.FRAME_TIME, time.monotonic_ns)
        host.declare(caps.EDIT_MODE, _host_edit_mode)
        host.declare(caps.MATRIX_MULTIPLY_MM, _native_only("Matrix.multiplyMM"))
        host.declare(caps.MATRIX_MULTIPLY_MV, _native_only("Matrix.multiplyMV"))
        host.declare(caps.SERVICE_LOOKUP, _host_service)
        host.declare(caps.INPUT_METHOD_MANAGER, _host_input_method_manager)
        if features.check("freetype2"):
            host.declare(caps.FONT_LOOKUP, _host_font)
        host.declare(caps.APP_COMPAT_VIEW_FACTORY, app_compat_view_factory)

    def __init__(self, params, host, log, *, first_frame_executed: bool = True) -> None:
        super().__init__(params, host, log, first_frame_executed=first_frame_executed)
        self._scheduler = CallbackScheduler(lambda: self.host.resolve(caps.TIME_SOURCE)())
        self._context: Optional[RenderContext] = None
        self._inflater: Optional[LayoutInflater] = None
        self._root: Optional[FrameLayout] = None
        self._image: Optional[np.ndarray] = None
        self._size: Optional[tuple[int, int]] = None
        self._timeout_ms: Optional[int] = None

    # -- lifecycle ----------------------------------------------------------

    def init(self, timeout_ms: int) -> RenderResult:
        if timeout_ms <= 0:
            return RenderResult(RenderStatus.ERROR_TIMEOUT, f"Invalid timeout {timeout_ms} ms")
        self._timeout_ms = timeout_ms

        theme, exact = resolve_theme(self.params.theme)
        if not exact:
            self.log.warning(
                "Theme %s is not available, rendering with %s", self.params.theme, theme.name,
                tag="theme",
            )
        self._context = RenderContext(self.params, self.host, self._scheduler, self.log, theme)
        self._inflater = LayoutInflater(self._context)
        return RenderResult.success()

    def inflate(self) -> RenderResult:
        if self._context is None:
            return RenderResult(RenderStatus.ERROR_INFLATION, "init() has not been called")
        try:
            element = ElementTree.fromstring(self.params.root_document.encode("utf-8"))
        except ElementTree.ParseError as exc:
            return RenderResult(RenderStatus.ERROR_INFLATION, f"Bad root document: {exc}", exc)

        if element.tag not in (COMPOSITION_ROOT_TAG, PLAIN_ROOT_TAG):
            return RenderResult(RenderStatus.ERROR_INFLATION, f"Unknown root element <{element.tag}>")

        try:
            width = self._size_attr(element, "layout_width")
            height = self._size_attr(element, "layout_height")
        except ValueError as exc:
            return RenderResult(RenderStatus.ERROR_INFLATION, str(exc), exc)

        root = FrameLayout(width=width, height=height)
        root.dispatch_attached(self._context)
        self._root = root
        self._size = self._measure()
        return RenderResult.success()

    @staticmethod
    def _size_attr(element: ElementTree.Element, name: str) -> int:
        value = element.get(f"{{{ANDROID_NS}}}{name}", "match_parent")
        try:
            return _SIZE_VALUES[value]
        except KeyError:
            raise ValueError(f"Unsupported {name} '{value}' on root element") from None

    def render(self, force_measure: bool = True) -> RenderResult:
        if self._root is None:
            return RenderResult(RenderStatus.ERROR_NOT_INFLATED, "Root document is not inflated")

        if not self.first_frame_executed:
            self._scheduler.run_frame_callbacks(self.host.resolve(caps.FRAME_TIME)())
            self.first_frame_executed = True

        started = time.perf_counter()
        try:
            if force_measure or self._size is None:
                self._size = self._measure()
            self._image = self._paint()
        except Exception as exc:
            logger.exception("Render pass failed")
            return RenderResult(RenderStatus.ERROR_UNKNOWN, f"{type(exc).__name__}: {exc}", exc)

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        if elapsed_ms > self._timeout_ms:
            return RenderResult(
                RenderStatus.ERROR_TIMEOUT,
                f"Render pass took {elapsed_ms:.0f} ms (timeout {self._timeout_ms} ms)",
            )
        return RenderResult.success()

    def release(self) -> None:
        if self._root is not None and self._root.attached:
            self._root.dispatch_detached()
        self._scheduler.clear()
        AnimationHandler.reset()

    def dispose(self) -> None:
        self._root = None
        self._inflater = None
        self._context = None
        self._image = None
        self._size = None

    # -- state --------------------------------------------------------------

    @property
    def image(self) -> np.ndarray:
        if self._image is None:
            raise RuntimeError("No render pass has completed")
        return self._image

    @property
    def root_container(self) -> FrameLayout:
        if self._root is None:
            raise RuntimeError("Root document is not inflated")
        return self._root

    @property
    def scheduler(self) -> CallbackScheduler:
        return self._scheduler

    @property
    def context(self) -> RenderContext:
        if self._context is None:
            raise RuntimeError("Backend is not initialised")
        return self._context

    def inflate_view(self, name: str, **attrs: Any) -> Any:
        if self._inflater is None:
            raise RuntimeError("Backend is not initialised")
        return self._inflater.create(name, **attrs)

    def install_view_factory(self, factory: Callable[..., Any]) -> None:
        if self._inflater is None:
            raise RuntimeError("Backend is not initialised")
        if self._inflater.factory is not None and self._inflater.factory is not factory:
            raise ConfigError(
                "The layout inflater already has a view factory installed; "
                "disable app-compat or remove the other factory"
            )
        self._inflater.factory = factory

    def set_default_density(self, density_dpi: int) -> None:
        self.context.bitmap_density = density_dpi

    def reset_animation_cache(self) -> None:
        AnimationHandler.reset()

    # -- measure / paint ----------------------------------------------------

    def _insets(self) -> tuple[int, int]:
        if not self.params.decor or self._context.theme.fullscreen:
            return (0, 0)
        device = self.params.device
        return (device.status_bar_px, device.navigation_bar_px)

    def _measure(self) -> tuple[int, int]:
        device = self.params.device
        mode = self.params.rendering_mode
        top, bottom = self._insets()
        avail_w = device.width_px
        avail_h = max(device.height_px - top - bottom, 1)

        expand_w = mode.horizontal == SizeAction.EXPAND
        expand_h = mode.vertical == SizeAction.EXPAND
        measure_w = None if expand_w else avail_w
        measure_h = None if expand_h else avail_h
        root_w, root_h = self._root.measure(measure_w, measure_h)
        if expand_w:
            root_w = max(root_w, avail_w)
        if expand_h:
            root_h = max(root_h, avail_h)
        if SizeAction.SHRINK in (mode.horizontal, mode.vertical):
            content_w, content_h = self._root.measure_content(measure_w, measure_h)
            if mode.horizontal == SizeAction.SHRINK:
                root_w = content_w
            if mode.vertical == SizeAction.SHRINK:
                root_h = content_h
        root_w, root_h = max(root_w, 1), max(root_h, 1)

        self._root.measured = (root_w, root_h)
        self._root.layout(0, top)
        return (root_w, root_h + top + bottom)

    def _paint(self) -> np.ndarray:
        theme = self._context.theme
        width, height = self._size
        image = Image.new("RGBA", (width, height), theme.window_background)
        canvas = Canvas(image)
        self._root.draw(canvas)

        top, bottom = self._insets()
        if top:
            canvas.fill_rect((0, 0, width, top), theme.status_bar)
        if bottom:
            canvas.fill_rect((0, height - bottom, width, height), theme.navigation_bar)
        return np.array(image, dtype=np.uint8)
